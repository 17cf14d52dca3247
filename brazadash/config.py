import os
from pathlib import Path
from dotenv import load_dotenv

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)

PLATFORM_FEE_RATE = "0.08"
DEFAULT_DELIVERY_FEE = "3.99"
CURRENCY = "usd"
STATEMENT_DESCRIPTOR = "BRAZADASH"

CREDENTIALS_CACHE_TTL = 5 * 60


def database_url():
    return os.getenv("DATABASE_URL")


def jwt_secret():
    return os.getenv("JWT_SECRET")


def public_base_url():
    return os.getenv("PUBLIC_BASE_URL", "http://localhost:5000").rstrip("/")


def log_level():
    return os.getenv("LOG_LEVEL", "INFO").upper()
