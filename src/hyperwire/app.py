from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from .logging import configure_logging

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Console entry point for ``hyperwire``.

    Logs go to ``HYPERWIRE_LOG_DIR`` (default ``./logs``); an empty value
    keeps logging on the console only.
    """
    args = sys.argv[1:] if argv is None else argv

    log_dir = os.environ.get("HYPERWIRE_LOG_DIR", "logs")
    configure_logging(Path(log_dir) if log_dir else None)

    from .cli import run_cli

    try:
        run_cli(args)
    except SystemExit as exc:
        if exc.code is None:
            return 0
        return exc.code if isinstance(exc.code, int) else 1
    except Exception:
        logger.exception("unhandled error running %s", " ".join(args) or "hyperwire")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
