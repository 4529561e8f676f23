import logging
import sys

from retailpos.config import settings

_ROOT = "retailpos"


def _configure_root() -> logging.Logger:
    root = logging.getLogger(_ROOT)
    if not root.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(
            logging.Formatter("[%(prefix)s] %(levelname)s %(name)s: %(message)s")
        )
        h.addFilter(_PrefixFilter())
        root.addHandler(h)
        root.setLevel(settings.LOG_LEVEL.upper())
        root.propagate = False
    return root


class _PrefixFilter(logging.Filter):
    """Derive the bracketed prefix from the logger name (retailpos.services.stock_check -> STOCK_CHECK)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.prefix = record.name.rsplit(".", 1)[-1].upper()
        return True


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger under the ``retailpos`` hierarchy.

    Usage:
        log = get_logger(__name__)
    """
    _configure_root()
    if not name.startswith(_ROOT):
        name = f"{_ROOT}.{name}"
    return logging.getLogger(name)
