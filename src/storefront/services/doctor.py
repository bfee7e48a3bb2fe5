from __future__ import annotations

import platform
import sqlite3
import sys

from storefront.config import Settings
from storefront.core.db import StorefrontRepository, pending_migrations


def _check(name: str, ok: bool, detail: str) -> dict[str, str]:
    return {"check": name, "status": "ok" if ok else "warn", "detail": detail}


def _database_checks(settings: Settings) -> list[dict[str, str]]:
    if not settings.db_path.exists():
        return [_check("database", False, f"{settings.db_path} not initialized, run `storefront init`")]
    try:
        with StorefrontRepository(settings.db_path, timeout_sec=settings.db_timeout_sec) as repository:
            pending = [path.name for path in pending_migrations(repository.connection)]
            zones = [] if pending else repository.list_shipping_zones(enabled_only=True)
    except sqlite3.Error as exc:
        return [_check("database", False, f"{exc.__class__.__name__}: {exc}")]

    checks = [_check("migrations", not pending, ", ".join(pending) or "up to date")]
    if not pending:
        checks.append(
            _check(
                "shipping_zones",
                bool(zones),
                ", ".join(zone.name for zone in zones) or "no enabled zones, fallback rates apply",
            )
        )
    return checks


def run_doctor_checks(settings: Settings) -> list[dict[str, str]]:
    checks = [
        _check("python_version", sys.version_info >= (3, 11), platform.python_version()),
        _check("db_parent", settings.db_path.parent.exists(), str(settings.db_path.parent)),
    ]
    checks.extend(_database_checks(settings))
    checks.append(
        _check(
            "stripe_webhook_secret",
            bool(settings.stripe_webhook_secret),
            "configured" if settings.stripe_webhook_secret else "STRIPE_WEBHOOK_SECRET is not set, fake gateway in use",
        )
    )
    checks.append(
        _check(
            "stripe_secret_key",
            bool(settings.stripe_secret_key),
            "configured" if settings.stripe_secret_key else "STRIPE_SECRET_KEY is not set, line items unavailable",
        )
    )
    return checks
