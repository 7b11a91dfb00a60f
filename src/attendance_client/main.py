from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parent
SRC_DIR = PACKAGE_DIR.parent
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from attendance_client.config.settings import Settings, settings
from attendance_client.ui.app import AttendanceApp

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging(app_settings: Settings) -> None:
    handlers: list[logging.Handler] = []
    try:
        app_settings.log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(app_settings.log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        )
    except OSError as exc:
        print(f"File logging disabled: {exc}", file=sys.stderr)

    logging.basicConfig(
        level=app_settings.log_level,
        format=LOG_FORMAT,
        handlers=handlers or None,
        force=True,
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger(__name__).debug(app_settings.__print__())


def main() -> None:
    configure_logging(settings)
    app = AttendanceApp(settings)
    sys.exit(app.run())


if __name__ == "__main__":
    main()
