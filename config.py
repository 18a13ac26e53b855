import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

load_dotenv()


DEFAULT_APP_URL = "https://chefdeck.ru"
DEFAULT_UPLOAD_API_URL = "https://pro.filma4.ru/api/v1"
PLACEHOLDER_TOKEN = "placeholder"


@dataclass
class Settings:
    """Application settings loaded from environment."""

    mongodb_uri: str
    mongodb_db: str = "chefdeck"
    port: int = 3000
    webhook_url: str = ""
    app_url: str = DEFAULT_APP_URL
    default_bot_token: str = PLACEHOLDER_TOKEN
    upload_api_url: str = DEFAULT_UPLOAD_API_URL
    upload_api_key: str = ""
    admin_api_key: str = ""
    static_dir: str = "dist"
    debug_log: bool = False


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def get_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Return settings from environment variables."""
    if env is None:
        env = os.environ
    webhook_url = (env.get("WEBHOOK_URL") or "").rstrip("/")
    return Settings(
        mongodb_uri=env.get("MONGODB_URI") or "mongodb://localhost:27017",
        mongodb_db=env.get("MONGODB_DB") or "chefdeck",
        port=_int_env(env, "PORT", 3000),
        webhook_url=webhook_url,
        app_url=(env.get("APP_URL") or webhook_url or DEFAULT_APP_URL).rstrip("/"),
        default_bot_token=env.get("TELEGRAM_BOT_TOKEN") or PLACEHOLDER_TOKEN,
        upload_api_url=(env.get("UPLOAD_API_URL") or DEFAULT_UPLOAD_API_URL).rstrip("/"),
        upload_api_key=env.get("UPLOAD_API_KEY") or "",
        admin_api_key=env.get("ADMIN_API_KEY") or "",
        static_dir=env.get("STATIC_DIR") or "dist",
        debug_log=(env.get("DEBUG_LOG") or "0").lower() in {"1", "true", "yes"},
    )
