from __future__ import annotations

import logging
import logging.handlers
import os
import re
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_FILE = "hyperwire.log"

# 32-byte hex strings. Transaction hashes share the shape and are masked too.
_SECRET_RE = re.compile(r"(?<![0-9a-fA-F])(0x)?[0-9a-fA-F]{64}(?![0-9a-fA-F])")


def mask_secrets(text: str) -> str:
    return _SECRET_RE.sub(lambda m: (m.group(1) or "") + "***", text)


class SecretFilter(logging.Filter):
    """Masks anything shaped like a private key before a record is emitted."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask_secrets(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def _resolve_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    name = (level or os.environ.get("HYPERWIRE_LOG_LEVEL", "INFO")).upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(log_dir: Path | None = None, *, level: str | int | None = None) -> None:
    """Install console and rotating file handlers on the root logger.

    The level comes from ``level`` or ``HYPERWIRE_LOG_LEVEL``. Every handler
    carries a ``SecretFilter``.
    """
    resolved = _resolve_level(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    secrets_filter = SecretFilter()

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                log_dir / LOG_FILE,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setLevel(resolved)
        handler.setFormatter(formatter)
        handler.addFilter(secrets_filter)
        root_logger.addHandler(handler)

    # aiohttp logs every websocket frame at DEBUG
    for name in ("aiohttp.client", "aiohttp.websocket", "aiohttp.access"):
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
