import os
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')

DEFAULT_API_URL = "http://127.0.0.1:8000"
DEFAULT_CACHE_FILE = "~/.daystart/cache.json"

# Staleness windows for the in-memory session queries, in seconds.
SETTINGS_STALE_SECONDS = 10 * 60
AUTH_STALE_SECONDS = 5 * 60


def api_base_url() -> str:
    return (os.environ.get("DAYSTART_API_URL") or DEFAULT_API_URL).rstrip("/")


def api_token():
    return os.environ.get("DAYSTART_API_TOKEN") or None


def cache_file() -> Path:
    return Path(os.environ.get("DAYSTART_CACHE_FILE") or DEFAULT_CACHE_FILE).expanduser()
