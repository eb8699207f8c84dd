"""Anonymous, food-themed usernames such as ``GenerousBanana42``."""

from __future__ import annotations

import random
import time
from typing import Callable

ADJECTIVES = [
    "Happy", "Generous", "Kind", "Friendly", "Cheerful",
    "Helpful", "Caring", "Sharing", "Grateful", "Joyful",
    "Fresh", "Tasty", "Yummy", "Sweet", "Savory",
    "Crispy", "Juicy", "Ripe", "Golden", "Bright",
]

NOUNS = [
    "Apple", "Banana", "Carrot", "Tomato", "Pepper",
    "Lettuce", "Cucumber", "Broccoli", "Potato", "Onion",
    "Bread", "Cheese", "Milk", "Yogurt", "Butter",
    "Rice", "Pasta", "Bean", "Corn", "Pumpkin",
    "Berry", "Melon", "Orange", "Grape", "Peach",
]

THEMED = [
    "PantryPal", "ShareChef", "KindCook", "FoodSaver", "GroceryHero",
    "WasteBuster", "MunichMuncher", "BavarianBite", "IsarEater",
]

THEMED_PROBABILITY = 0.3
MAX_ATTEMPTS = 10


def generate_username(include_theme: bool = True, rng: random.Random | None = None) -> str:
    rng = rng or random
    number = rng.randrange(1000)
    if include_theme and rng.random() < THEMED_PROBABILITY:
        return f"{rng.choice(THEMED)}_{number}"
    return f"{rng.choice(ADJECTIVES)}{rng.choice(NOUNS)}{number}"


def generate_unique_username(
    is_available: Callable[[str], bool],
    include_theme: bool = True,
    rng: random.Random | None = None,
) -> str:
    """Draw usernames until ``is_available`` accepts one.

    After ``MAX_ATTEMPTS`` draws a millisecond timestamp is appended instead.
    """
    for _ in range(MAX_ATTEMPTS - 1):
        username = generate_username(include_theme, rng)
        if is_available(username):
            return username
    username = generate_username(include_theme, rng)
    return f"{username}_{int(time.time() * 1000)}"
