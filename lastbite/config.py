"""TOML configuration loader."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]

from .db.store import DEFAULT_DB_PATH
from .fees import DEFAULT_FEE_RATE, DEFAULT_TRIAL_DAYS, FeePolicy
from .proximity import DEFAULT_RADIUS_KM


@dataclass
class DatabaseConfig:
    path: str = DEFAULT_DB_PATH
    timeout: float = 5.0


@dataclass
class DiscoveryConfig:
    radius_km: float = DEFAULT_RADIUS_KM


@dataclass
class FeesConfig:
    rate: Decimal = DEFAULT_FEE_RATE
    trial_days: int = DEFAULT_TRIAL_DAYS
    currency_symbol: str = "€"

    def policy(self) -> FeePolicy:
        return FeePolicy(
            rate=self.rate,
            trial_days=self.trial_days,
            currency_symbol=self.currency_symbol,
        )


@dataclass
class LocalImagesConfig:
    save_dir: str = "~/.local/share/lastbite/images"


@dataclass
class GDriveImagesConfig:
    credentials_path: str = "~/.config/lastbite/gdrive_credentials.json"
    token_path: str = "~/.config/lastbite/gdrive_token.json"
    folder_id: str = ""
    public: bool = True


@dataclass
class ImagesConfig:
    backend: str = "local"
    local: LocalImagesConfig = field(default_factory=LocalImagesConfig)
    gdrive: GDriveImagesConfig = field(default_factory=GDriveImagesConfig)


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class MarketConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    fees: FeesConfig = field(default_factory=FeesConfig)
    images: ImagesConfig = field(default_factory=ImagesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | Path | None = None) -> MarketConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    The database path and Drive folder can be overridden via environment
    variables when the file leaves them unset.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    dbs = raw.get("database", {})
    dsc = raw.get("discovery", {})
    fee = raw.get("fees", {})
    img = raw.get("images", {})
    log = raw.get("logging", {})

    local_cfg = img.get("local", {})
    gdrive_cfg = img.get("gdrive", {})

    # Resolve overridable values: config file → environment variable → default
    db_path = dbs.get("path") or os.environ.get("LASTBITE_DB_PATH") or DEFAULT_DB_PATH
    folder_id = gdrive_cfg.get("folder_id", "") or os.environ.get(
        "LASTBITE_GDRIVE_FOLDER_ID", ""
    )

    radius = float(dsc.get("radius_km", DEFAULT_RADIUS_KM))
    if radius <= 0:
        raise ValueError(f"discovery.radius_km must be positive (got {radius})")

    rate = Decimal(str(fee.get("rate", DEFAULT_FEE_RATE)))
    if not (0 <= rate < 1):
        raise ValueError(f"fees.rate must be in [0, 1) (got {rate})")

    return MarketConfig(
        database=DatabaseConfig(
            path=db_path,
            timeout=float(dbs.get("timeout", 5.0)),
        ),
        discovery=DiscoveryConfig(radius_km=radius),
        fees=FeesConfig(
            rate=rate,
            trial_days=int(fee.get("trial_days", DEFAULT_TRIAL_DAYS)),
            currency_symbol=fee.get("currency_symbol", "€"),
        ),
        images=ImagesConfig(
            backend=img.get("backend", "local"),
            local=LocalImagesConfig(
                save_dir=local_cfg.get("save_dir", "~/.local/share/lastbite/images"),
            ),
            gdrive=GDriveImagesConfig(
                credentials_path=gdrive_cfg.get(
                    "credentials_path",
                    "~/.config/lastbite/gdrive_credentials.json",
                ),
                token_path=gdrive_cfg.get(
                    "token_path",
                    "~/.config/lastbite/gdrive_token.json",
                ),
                folder_id=folder_id,
                public=gdrive_cfg.get("public", True),
            ),
        ),
        logging=LoggingConfig(level=str(log.get("level", "WARNING")).upper()),
    )
