"""CLI entry point for the marketplace."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from .config import load_config
from .db import MarketStore
from .errors import LastBiteError
from .fees import fee_breakdown
from .images import create_image_store
from .models import Actor, Category, FoodListing, GeoLocation, ListingDraft
from .proximity import RankedListing
from .workflow import MatchWorkflow


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lastbite",
        description="Share and pick up surplus food nearby",
    )
    parser.add_argument(
        "--config", "-c", type=str, default=None, help="Path to a TOML config file"
    )
    parser.add_argument(
        "--user", "-u", type=str, default=os.environ.get("LASTBITE_USER"),
        help="Acting user id (default: $LASTBITE_USER)",
    )
    parser.add_argument(
        "--name", type=str, default=os.environ.get("LASTBITE_NAME", "Anonymous"),
        help="Acting user's display name",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("register", help="Create a profile and start the free trial")
    sub.add_parser("status", help="Show trial / subscription status")

    post = sub.add_parser("post", help="Post a food listing")
    post.add_argument("--title", required=True)
    post.add_argument("--description", required=True)
    post.add_argument("--price", default="0", help="0 for a free item")
    post.add_argument("--original-price", default=None)
    post.add_argument(
        "--category", default=Category.OTHER.value,
        help=", ".join(c.value for c in Category),
    )
    post.add_argument("--storage", default="pantry", help="pantry, refrigerated or frozen")
    post.add_argument("--package", default="sealed", help="sealed or opened")
    post.add_argument("--expiry", default="", help='Short label, e.g. "Tomorrow"')
    post.add_argument("--lat", type=float, required=True)
    post.add_argument("--lng", type=float, required=True)
    post.add_argument("--address", default="")
    post.add_argument("--city", default="")
    post.add_argument("--district", default="")
    image = post.add_mutually_exclusive_group(required=True)
    image.add_argument("--image", type=str, help="Photo file to upload")
    image.add_argument("--image-ref", type=str, help="URL of an already stored photo")

    discover = sub.add_parser("discover", help="List available food nearby")
    discover.add_argument("--lat", type=float, default=None)
    discover.add_argument("--lng", type=float, default=None)
    discover.add_argument("--radius", type=float, default=None, help="Radius in km")
    discover.add_argument("--query", "-q", type=str, default=None)
    discover.add_argument("--category", type=str, default=None)
    discover.add_argument("--json", action="store_true", help="Output as JSON")

    show = sub.add_parser("show", help="Show one listing")
    show.add_argument("listing_id")
    show.add_argument("--json", action="store_true", help="Output as JSON")

    for name, target, help_text in (
        ("request", "listing_id", "Request a listing"),
        ("approve", "request_id", "Approve a request (giver)"),
        ("reject", "request_id", "Reject a request (giver)"),
        ("complete", "listing_id", "Confirm pickup"),
        ("cancel", "listing_id", "Cancel a reservation"),
        ("delete", "listing_id", "Delete an available listing (giver)"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument(target)

    listings = sub.add_parser("listings", help="Your posted listings")
    listings.add_argument("--json", action="store_true", help="Output as JSON")
    pickups = sub.add_parser("pickups", help="Listings reserved for you")
    pickups.add_argument("--json", action="store_true", help="Output as JSON")

    requests = sub.add_parser("requests", help="Pending requests")
    requests.add_argument(
        "--outgoing", action="store_true", help="Show your own requests instead"
    )

    sub.add_parser("chats", help="Approved matches you can chat in")

    message = sub.add_parser("message", help="Send a chat message")
    message.add_argument("match_id")
    message.add_argument("text")

    messages = sub.add_parser("messages", help="Show a match's chat")
    messages.add_argument("match_id")

    fee = sub.add_parser("fee", help="Show the platform fee for a price")
    fee.add_argument("price")

    return parser


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        config = load_config(args.config)
    except (ValueError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    logging.basicConfig(
        level=getattr(logging, config.logging.level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "fee":
        _cmd_fee(config, args)
        return

    if not args.user:
        parser.error("--user (or $LASTBITE_USER) is required")

    store = MarketStore(config.database.path, timeout=config.database.timeout)
    try:
        workflow = MatchWorkflow(
            store,
            image_store=create_image_store(config),
            fee_policy=config.fees.policy(),
            radius_km=config.discovery.radius_km,
        )
        actor = Actor(args.user, args.name)
        _dispatch(workflow, actor, args)
    except (LastBiteError, ValueError, ImportError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        store.close()


def _dispatch(workflow: MatchWorkflow, actor: Actor, args) -> None:
    symbol = workflow.fee_policy.currency_symbol
    match args.command:
        case "register":
            profile = workflow.register(actor)
            print(f"Registered as {profile.username} (trial ends {profile.trial_end})")
        case "status":
            status = workflow.subscription(actor)
            if status.status == "trial":
                print(f"Trial: {status.days_remaining} day(s) remaining")
            elif status.status == "legacy-trial":
                print("Trial (legacy account)")
            else:
                print("Active: platform fees apply")
        case "post":
            _cmd_post(workflow, actor, args)
        case "discover":
            _cmd_discover(workflow, actor, args)
        case "show":
            _cmd_show(workflow, actor, args)
        case "request":
            req = workflow.request_listing(actor, args.listing_id)
            print(f"Request sent ({req.id}). Message {req.giver_display_name} to arrange pickup.")
        case "approve":
            req = workflow.approve_request(actor, args.request_id)
            print(f"Approved: \"{req.listing_title}\" is reserved for {req.seeker_display_name}.")
        case "reject":
            workflow.reject_request(actor, args.request_id)
            print("Request declined.")
        case "complete":
            listing = workflow.complete_pickup(actor, args.listing_id)
            print(f"Pickup of \"{listing.title}\" confirmed. Thanks for reducing food waste!")
        case "cancel":
            listing = workflow.cancel_reservation(actor, args.listing_id)
            print(f"Reservation for \"{listing.title}\" cancelled.")
        case "delete":
            workflow.delete_listing(actor, args.listing_id)
            print("Listing deleted.")
        case "listings":
            _print_listings(workflow.my_listings(actor), args.json, symbol)
        case "pickups":
            _print_listings(workflow.my_pickups(actor), args.json, symbol)
        case "requests":
            if args.outgoing:
                matches = workflow.outgoing_requests(actor)
            else:
                matches = workflow.incoming_requests(actor)
            if not matches:
                print("No pending requests.")
            for m in matches:
                print(f"  {m.id}  {m.listing_title:<30} {m.counterpart_name(actor.id)}")
        case "chats":
            chats = workflow.active_chats(actor)
            if not chats:
                print("No active chats.")
            for m in chats:
                role = "giver" if m.giver_id == actor.id else "seeker"
                print(f"  {m.id}  {m.listing_title:<30} with {m.counterpart_name(actor.id)} ({role})")
        case "message":
            workflow.send_message(actor, args.match_id, args.text)
        case "messages":
            for msg in workflow.list_messages(actor, args.match_id):
                who = "you" if msg.sender_id == actor.id else msg.sender_display_name
                print(f"[{msg.created_at}] {who}: {msg.text}")


def _cmd_fee(config, args) -> None:
    try:
        breakdown = fee_breakdown(
            args.price, config.fees.rate, config.fees.currency_symbol
        )
    except LastBiteError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    data = breakdown.formatted()
    print(f"Price:          {data['price']}")
    print(f"Platform fee:   {data['fee']}")
    print(f"Giver receives: {data['giver_receives']}")


def _cmd_post(workflow: MatchWorkflow, actor: Actor, args) -> None:
    draft = ListingDraft(
        title=args.title,
        description=args.description,
        price=args.price,
        original_price=args.original_price,
        category=args.category,
        storage_condition=args.storage,
        package_status=args.package,
        expiry_label=args.expiry,
        location=GeoLocation(
            lat=args.lat,
            lng=args.lng,
            address=args.address,
            city=args.city,
            district=args.district,
        ),
        image_ref=args.image_ref or "",
    )
    image_bytes = None
    suffix = ".jpg"
    if args.image:
        path = Path(args.image)
        if not path.exists():
            print(f"Image not found: {path}", file=sys.stderr)
            sys.exit(1)
        image_bytes = path.read_bytes()
        suffix = path.suffix or suffix
    listing = workflow.post_listing(actor, draft, image=image_bytes, image_suffix=suffix)
    print(f"Posted \"{listing.title}\" ({listing.id})")


def _cmd_discover(workflow: MatchWorkflow, actor: Actor, args) -> None:
    location = None
    if args.lat is not None and args.lng is not None:
        location = GeoLocation(lat=args.lat, lng=args.lng)
    ranked = workflow.discover(
        actor,
        user_location=location,
        radius_km=args.radius,
        query=args.query,
        category=args.category,
    )
    if args.json:
        data = [
            {**r.listing.to_dict(), "distance_km": r.distance_km} for r in ranked
        ]
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return
    if not ranked:
        print("No food available nearby.")
        return
    print(f"Available food ({len(ranked)}):")
    for r in ranked:
        print(_listing_line(r.listing, r, workflow.fee_policy.currency_symbol))


def _cmd_show(workflow: MatchWorkflow, actor: Actor, args) -> None:
    listing = workflow.get_listing(args.listing_id)
    breakdown = workflow.fee_breakdown(listing.id).formatted()
    my_status = workflow.request_status_for(actor, listing.id)
    if args.json:
        data = listing.to_dict()
        data["fees"] = breakdown
        data["my_request"] = my_status.value if my_status else None
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return
    print(_listing_line(listing, symbol=workflow.fee_policy.currency_symbol))
    print(f"  {listing.description}")
    print(
        f"  {listing.category.value} · {listing.storage_condition.value} · "
        f"{listing.package_status.value} · expires {listing.expiry_label or '?'}"
    )
    print(f"  Posted by {listing.creator_display_name}")
    if listing.reserved_by:
        print(f"  Reserved for {listing.reserved_by_display_name}")
    if not breakdown["is_free"]:
        print(f"  Fee {breakdown['fee']} · giver receives {breakdown['giver_receives']}")
    if my_status:
        print(f"  Your request: {my_status.value}")


def _price_label(listing: FoodListing, symbol: str = "€") -> str:
    if listing.is_free:
        return "Free"
    label = f"{symbol}{listing.price:.2f}"
    if listing.original_price is not None:
        label += f" (was {symbol}{listing.original_price:.2f})"
    return label


def _listing_line(
    listing: FoodListing, ranked: RankedListing | None = None, symbol: str = "€"
) -> str:
    where = listing.location.label() if listing.location else ""
    distance = ranked.distance_label if ranked and ranked.distance_label else ""
    return (
        f"  {listing.id}  {listing.title:<30} {_price_label(listing, symbol):<22} "
        f"{listing.status.value:<10} {distance:>8} {where}"
    ).rstrip()


def _print_listings(listings: list[FoodListing], as_json: bool, symbol: str = "€") -> None:
    if as_json:
        print(json.dumps([item.to_dict() for item in listings], ensure_ascii=False, indent=2))
        return
    if not listings:
        print("Nothing here yet.")
        return
    for listing in listings:
        print(_listing_line(listing, symbol=symbol))


if __name__ == "__main__":
    main()
