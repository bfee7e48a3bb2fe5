from .setup import bind_external_ref, configure_logging, get_logger

__all__ = ["bind_external_ref", "configure_logging", "get_logger"]
