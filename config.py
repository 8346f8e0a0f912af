import os
from pathlib import Path

from dotenv import load_dotenv

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent

# Values from a local .env never override the real environment
load_dotenv(BASE_DIR / ".env")


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# SQLite database location (any SQLAlchemy URL works)
DATABASE_URL = os.environ.get("DATABASE_URL", f"sqlite:///{BASE_DIR / 'communities.db'}")

# "database" or "memory"
STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "database").strip().lower()

# Fallback webhook target when a submission does not carry its own.
DISCORD_WEBHOOK_URL = os.environ.get("DISCORD_WEBHOOK_URL") or None

# When set, a submission with no webhook target fails with a configuration error.
WEBHOOK_REQUIRED = _env_flag("WEBHOOK_REQUIRED")

# Accepted webhook hosts (subdomains such as ptb.discord.com are allowed too)
DISCORD_WEBHOOK_HOSTS = ("discord.com", "discordapp.com")
DISCORD_WEBHOOK_PATH = "/api/webhooks/"

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

TEMPLATES_DIR = BASE_DIR / "templates"
