"""Runtime configuration loaded from the environment (and ``.env``)."""

from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Worker settings. Build with :meth:`from_env`."""

    environment: str = "development"
    log_level: str = "INFO"
    log_file_path: Optional[str] = None
    cors_origins: list[str] = ["*"]

    # Shared secret for inbound verification and outbound signing
    hmac_secret: Optional[str] = None
    signature_tolerance_seconds: int = 300

    # Controller callbacks
    callback_base_url: Optional[str] = None
    callback_timeout_seconds: float = 10.0

    # Google Sheets service account
    google_service_account_email: Optional[str] = None
    google_private_key: Optional[str] = None

    # Automation target
    target_base_url: str = "https://aoikumo.com"
    target_login_url: Optional[str] = None
    target_username: Optional[str] = None
    target_password: Optional[str] = None

    # Browser
    browser_headless: bool = True
    browser_timeout_ms: int = 30000
    screenshot_dir: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        private_key = os.getenv("GOOGLE_PRIVATE_KEY")
        if private_key:
            private_key = private_key.replace("\\n", "\n")

        return cls(
            environment=os.getenv("ENVIRONMENT", "development").lower(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_file_path=os.getenv("LOG_FILE_PATH") or None,
            cors_origins=os.getenv("CORS_ORIGINS", "*").split(","),
            hmac_secret=os.getenv("HMAC_SECRET") or None,
            signature_tolerance_seconds=int(os.getenv("SIGNATURE_TOLERANCE_SECONDS", "300")),
            callback_base_url=os.getenv("CALLBACK_BASE_URL") or None,
            callback_timeout_seconds=float(os.getenv("CALLBACK_TIMEOUT_SECONDS", "10")),
            google_service_account_email=os.getenv("GOOGLE_SERVICE_ACCOUNT_EMAIL") or None,
            google_private_key=private_key or None,
            target_base_url=os.getenv("TARGET_BASE_URL", "https://aoikumo.com"),
            target_login_url=os.getenv("TARGET_LOGIN_URL") or None,
            target_username=os.getenv("TARGET_USERNAME") or None,
            target_password=os.getenv("TARGET_PASSWORD") or None,
            browser_headless=_env_bool("BROWSER_HEADLESS", True),
            browser_timeout_ms=int(os.getenv("BROWSER_TIMEOUT_MS", "30000")),
            screenshot_dir=os.getenv("SCREENSHOT_DIR") or None,
        )

    def missing_required(self) -> list[str]:
        """Names of required environment variables that are not set."""
        required = {
            "HMAC_SECRET": self.hmac_secret,
            "CALLBACK_BASE_URL": self.callback_base_url,
            "GOOGLE_SERVICE_ACCOUNT_EMAIL": self.google_service_account_email,
            "GOOGLE_PRIVATE_KEY": self.google_private_key,
            "TARGET_LOGIN_URL": self.target_login_url,
            "TARGET_USERNAME": self.target_username,
            "TARGET_PASSWORD": self.target_password,
        }
        return [name for name, value in required.items() if not value]
