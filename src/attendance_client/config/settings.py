from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parents[2]
ENV_PATH = BASE_DIR / ".env"
load_dotenv(ENV_PATH)

DOCUMENTS_PATH = Path(os.path.expanduser("~")) / "Documents"
APP_NAME = os.getenv("APP_NAME", "Attendance Client")
APP_DATA_DIR = Path(os.getenv("APP_DATA_DIR", str(DOCUMENTS_PATH / APP_NAME))).expanduser()

LOGIN_PATH = "/api-auth/v1/login/"
TOKEN_REFRESH_PATH = "/api-auth/v1/token/refresh/"
REGISTRATION_PATH = "/api-auth/v1/registration/"
PASSWORD_RESET_PATH = "/api-auth/v1/password/reset/"
PASSWORD_CHANGE_PATH = "/api-auth/v1/password/change/"
ATTENDANCE_PATH = "/api/v1/attendance/"
USER_UPDATE_PATH = "/api/v1/user/update/"



@dataclass(frozen=True)
class Settings:
    app_name: str = APP_NAME
    api_base_url: str = os.getenv("API_BASE_URL", "http://localhost:8000")
    request_timeout_seconds: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "15"))
    submit_settle_seconds: float = float(os.getenv("SUBMIT_SETTLE_SECONDS", "3"))
    qr_camera_index: int = int(os.getenv("QR_CAMERA_INDEX", "0"))
    app_data_dir: Path = APP_DATA_DIR
    storage_path: Path = Path(
        os.getenv("STORAGE_PATH", str(APP_DATA_DIR / "client_storage.json"))
    ).expanduser()
    log_path: Path = APP_DATA_DIR / "attendance_client.log"
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    def __print__(self) -> str:
        return (
            f"Settings(app_name={self.app_name}, "
            f"api_base_url={self.api_base_url}, "
            f"request_timeout_seconds={self.request_timeout_seconds}, "
            f"submit_settle_seconds={self.submit_settle_seconds}, "
            f"qr_camera_index={self.qr_camera_index}, "
            f"storage_path={self.storage_path}, "
            f"log_level={self.log_level})"
        )


settings = Settings()
