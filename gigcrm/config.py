"""
GigCRM Configuration
Loads settings from environment variables with sensible defaults.
"""

import logging
import os
from pathlib import Path
from urllib.parse import urlparse
from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

# Load .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

_LOCAL_HOSTS = {'localhost', '127.0.0.1', '::1'}


def _int_env(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


class Config:
    """Application configuration."""

    # Booking backend
    API_BASE_URL = os.getenv('GIGCRM_API_URL', 'http://localhost:5000/api').rstrip('/')
    API_TOKEN = os.getenv('GIGCRM_API_TOKEN', '')
    TIMEOUT_SECONDS = _int_env('GIGCRM_TIMEOUT_SECONDS', '30')

    # Public IP lookup for signed responses
    IP_LOOKUP_URL = os.getenv('GIGCRM_IP_LOOKUP_URL', 'https://api.ipify.org?format=json')

    # Musician id the planner uses for "no assignments yet" rows
    PLACEHOLDER_MUSICIAN_ID = _int_env('GIGCRM_PLACEHOLDER_MUSICIAN_ID', '999')

    # Query cache freshness window
    CACHE_TTL_SECONDS = _int_env('GIGCRM_CACHE_TTL_SECONDS', '60')

    # Concurrent requests per bulk accept/reject
    BULK_MAX_WORKERS = _int_env('GIGCRM_BULK_MAX_WORKERS', '8')

    # A sent contract with no response after this many days needs a reminder
    RESPONSE_OVERDUE_DAYS = _int_env('GIGCRM_RESPONSE_OVERDUE_DAYS', '3')

    # Signatures and IP addresses travel to the backend; warn on plaintext remote hosts
    _parsed = urlparse(API_BASE_URL)
    if _parsed.scheme == 'http' and _parsed.hostname not in _LOCAL_HOSTS:
        _logger.warning(
            f"GIGCRM_API_URL uses plain HTTP for remote host {_parsed.hostname!r}. "
            "Musician signatures and API tokens will be sent unencrypted. Use HTTPS."
        )
    del _parsed


# Singleton instance
config = Config()
