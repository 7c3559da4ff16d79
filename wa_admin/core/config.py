# wa_admin/core/config.py
"""
Application configuration - loads from environment variables.
Single source of truth for all settings. No credentials live in source.
"""
import os
from typing import Optional
from urllib.parse import quote_plus
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables FIRST
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_path = BASE_DIR / '.env'
load_dotenv(dotenv_path=env_path)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() not in ("0", "false", "no")


# ────────────────────────────────────────────
# WhatsApp / Graph API Configuration
# ────────────────────────────────────────────
TOKEN: str = os.getenv("WHATSAPP_TOKEN") or os.getenv("WHATSAPP_ACCESS_TOKEN") or ""
PHONE_ID: str = os.getenv("WHATSAPP_PHONE_ID") or os.getenv("WHATSAPP_PHONE_NUMBER_ID") or ""
BUSINESS_ACCOUNT_ID: str = os.getenv("WHATSAPP_BUSINESS_ACCOUNT_ID") or os.getenv("WHATSAPP_WABA_ID") or ""
VERIFY_TOKEN: str = os.getenv("WHATSAPP_VERIFY_TOKEN") or os.getenv("VERIFY_TOKEN") or ""

GRAPH_API_BASE_URL: str = os.getenv("GRAPH_API_BASE_URL", "https://graph.facebook.com")
GRAPH_API_VERSION: str = os.getenv("GRAPH_API_VERSION", "v22.0")
GRAPH_TIMEOUT: float = float(os.getenv("GRAPH_TIMEOUT", "30"))

# ────────────────────────────────────────────
# Messaging window / templates
# ────────────────────────────────────────────
SESSION_TEMPLATE: str = os.getenv("SESSION_TEMPLATE", "hello_world")
SESSION_LANGUAGE: str = os.getenv("SESSION_LANGUAGE", "en_US")
FALLBACK_TEMPLATE: str = os.getenv("FALLBACK_TEMPLATE", "hello_world")
FALLBACK_LANGUAGE: str = os.getenv("FALLBACK_LANGUAGE", "en_US")
AUTO_SESSION: bool = _env_bool("AUTO_SESSION", "true")

INBOX_MAX_ITEMS: int = int(os.getenv("INBOX_MAX_ITEMS", "5000"))

# ────────────────────────────────────────────
# Runtime
# ────────────────────────────────────────────
APP_ENV: str = os.getenv("APP_ENV", "production")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR: str = os.getenv("LOG_DIR", str(BASE_DIR / "logs"))

# ────────────────────────────────────────────
# Database Configuration
# ────────────────────────────────────────────
DB_USER = os.getenv("DB_USER", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "wa_admin")
DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")

# Build DATABASE_URL
if not DATABASE_URL:
    encoded_password = quote_plus(DB_PASSWORD)
    DATABASE_URL = f"postgresql://{DB_USER}:{encoded_password}@{DB_HOST}:{DB_PORT}/{DB_NAME}"


# ────────────────────────────────────────────
# Settings Class
# ────────────────────────────────────────────
class Settings:
    """
    Runtime settings. Defaults come from the environment; keyword
    overrides let tests and scripts build isolated instances.
    """
    DATABASE_URL: str = DATABASE_URL
    TOKEN: str = TOKEN
    PHONE_ID: str = PHONE_ID
    BUSINESS_ACCOUNT_ID: str = BUSINESS_ACCOUNT_ID
    VERIFY_TOKEN: str = VERIFY_TOKEN
    GRAPH_API_BASE_URL: str = GRAPH_API_BASE_URL
    GRAPH_API_VERSION: str = GRAPH_API_VERSION
    GRAPH_TIMEOUT: float = GRAPH_TIMEOUT
    SESSION_TEMPLATE: str = SESSION_TEMPLATE
    SESSION_LANGUAGE: str = SESSION_LANGUAGE
    FALLBACK_TEMPLATE: str = FALLBACK_TEMPLATE
    FALLBACK_LANGUAGE: str = FALLBACK_LANGUAGE
    AUTO_SESSION: bool = AUTO_SESSION
    INBOX_MAX_ITEMS: int = INBOX_MAX_ITEMS
    APP_ENV: str = APP_ENV
    LOG_LEVEL: str = LOG_LEVEL
    LOG_DIR: str = LOG_DIR

    def __init__(self, **overrides):
        for key, value in overrides.items():
            if not hasattr(type(self), key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("development", "dev", "local")


settings = Settings()
