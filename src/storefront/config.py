from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_COUNTRY = "US"
DEFAULT_DB_TIMEOUT_SEC = 10.0
DEFAULT_WEBHOOK_TOLERANCE_SEC = 300


def _optional(name: str) -> str | None:
    value = os.getenv(name)
    if not value:
        return None
    trimmed = value.strip()
    return trimmed or None


@dataclass(slots=True, frozen=True)
class Settings:
    root_dir: Path
    data_dir: Path
    db_path: Path
    logs_dir: Path
    exports_dir: Path
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None
    stripe_webhook_tolerance_sec: int = DEFAULT_WEBHOOK_TOLERANCE_SEC
    db_timeout_sec: float = DEFAULT_DB_TIMEOUT_SEC
    default_country: str = DEFAULT_COUNTRY

    @classmethod
    def load(cls, base_dir: Path | None = None) -> Settings:
        load_dotenv(override=False)

        root_env = os.getenv("STOREFRONT_HOME")
        root_dir = Path(root_env).expanduser().resolve() if root_env else (base_dir or Path.cwd()).resolve()

        data_dir = Path(os.getenv("STOREFRONT_DATA_DIR", root_dir / "data")).expanduser().resolve()
        db_path = Path(os.getenv("STOREFRONT_DB_PATH", data_dir / "storefront.sqlite3")).expanduser().resolve()
        logs_dir = Path(os.getenv("STOREFRONT_LOG_DIR", root_dir / "logs")).expanduser().resolve()
        exports_dir = Path(os.getenv("STOREFRONT_EXPORT_DIR", root_dir / "exports")).expanduser().resolve()

        db_timeout_sec = float(os.getenv("STOREFRONT_DB_TIMEOUT_SEC", str(DEFAULT_DB_TIMEOUT_SEC)))
        tolerance_sec = int(os.getenv("STRIPE_WEBHOOK_TOLERANCE_SEC", str(DEFAULT_WEBHOOK_TOLERANCE_SEC)))
        default_country = (_optional("STOREFRONT_DEFAULT_COUNTRY") or DEFAULT_COUNTRY).upper()

        return cls(
            root_dir=root_dir,
            data_dir=data_dir,
            db_path=db_path,
            logs_dir=logs_dir,
            exports_dir=exports_dir,
            stripe_secret_key=_optional("STRIPE_SECRET_KEY"),
            stripe_webhook_secret=_optional("STRIPE_WEBHOOK_SECRET"),
            stripe_webhook_tolerance_sec=tolerance_sec,
            db_timeout_sec=db_timeout_sec,
            default_country=default_country,
        )

    def ensure_directories(self) -> None:
        for path in [self.root_dir, self.data_dir, self.logs_dir, self.exports_dir]:
            path.mkdir(parents=True, exist_ok=True)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
