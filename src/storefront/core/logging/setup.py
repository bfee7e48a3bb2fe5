from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from pythonjsonlogger.json import JsonFormatter

NOISY_LOGGERS = ("stripe", "urllib3")


class RequestContextFilter(logging.Filter):
    """Stamps every record with the invocation's correlation id and a payment ref slot."""

    def __init__(self, correlation_id: str):
        super().__init__()
        self._correlation_id = correlation_id

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = self._correlation_id
        if not hasattr(record, "external_ref"):
            record.external_ref = "-"
        return True


def configure_logging(
    log_dir: Path,
    correlation_id: str,
    level: int = logging.INFO,
    console: bool = True,
) -> None:
    log_dir.mkdir(parents=True, exist_ok=True)
    utc_day = datetime.now(timezone.utc).strftime("%Y-%m-%d")

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    context_filter = RequestContextFilter(correlation_id)
    text_formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(correlation_id)s] [%(external_ref)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    json_formatter = JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(correlation_id)s %(external_ref)s %(message)s",
        rename_fields={"levelname": "level"},
    )

    handlers: list[logging.Handler] = [
        _file_handler(log_dir / f"storefront-{utc_day}.log", text_formatter),
        _file_handler(log_dir / f"storefront-{utc_day}.jsonl", json_formatter),
    ]
    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(text_formatter)
        handlers.append(stream_handler)

    for handler in handlers:
        handler.addFilter(context_filter)
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _file_handler(path: Path, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(formatter)
    return handler


def get_logger(name: str, correlation_id: str, external_ref: str | None = None) -> logging.LoggerAdapter:
    extra = {"correlation_id": correlation_id}
    if external_ref:
        extra["external_ref"] = external_ref
    return logging.LoggerAdapter(logging.getLogger(name), extra=extra)


def bind_external_ref(
    logger: logging.Logger | logging.LoggerAdapter, external_ref: str
) -> logging.LoggerAdapter:
    """Same logger, with every record tagged with one payment reference."""
    if isinstance(logger, logging.LoggerAdapter):
        extra = dict(logger.extra or {})
        extra["external_ref"] = external_ref
        return logging.LoggerAdapter(logger.logger, extra=extra)
    return logging.LoggerAdapter(logger, extra={"external_ref": external_ref})
