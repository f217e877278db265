from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

import uvicorn

from .app import create_app
from .settings import WebUISettings, load_webui_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_MAX_BYTES = 2 * 1024 * 1024
LOG_BACKUPS = 5
QUIET_LOGGERS: tuple[str, ...] = ("uvicorn.access", "httpx", "urllib3", "requests", "apscheduler")

logger = logging.getLogger(__name__)


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    handler.setLevel(level)
    return handler


def configure_logging(log_file: Path) -> None:
    """Everything to a rotating ``server.log``; only warnings reach stderr."""
    log_file.parent.mkdir(parents=True, exist_ok=True)
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.addHandler(
        _handler(
            logging.handlers.RotatingFileHandler(
                log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
            ),
            logging.DEBUG,
        )
    )
    root.addHandler(_handler(logging.StreamHandler(), logging.WARNING))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)


def _serve(settings: WebUISettings) -> None:
    logger.info("serving %s from baseline %s", settings.base_path, settings.baseline_location)
    # uvicorn keeps its hands off the handlers installed above
    uvicorn.run(
        create_app(),
        host=settings.bind_host,
        port=settings.bind_port,
        log_config=None,
        access_log=False,
    )


def main() -> int:
    settings = load_webui_settings()
    configure_logging(settings.logs_dir / "server.log")
    _serve(settings)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
