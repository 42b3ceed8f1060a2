"""
ContractGov - Configuration
Settings are supplied through the environment.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).parent.parent


def _int_env(key: str, default: int) -> int:
    try:
        return int(os.environ.get(key, default))
    except (TypeError, ValueError):
        return default


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'contractgov-dev-key')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # Backend-as-a-service; when unset the local SQLite backend is used
    SUPABASE_URL = os.environ.get('SUPABASE_URL', '').rstrip('/')
    SUPABASE_ANON_KEY = os.environ.get('SUPABASE_ANON_KEY', '')
    REQUEST_TIMEOUT = _int_env('REQUEST_TIMEOUT', 30)

    DB_PATH = Path(os.environ.get('CONTRACTGOV_DB_PATH', BASE_DIR / 'data' / 'contracts.db'))

    # Deadline window for the approaching-deadlines alert
    DEADLINE_WINDOW_DAYS = 15

    @classmethod
    def use_remote_backend(cls) -> bool:
        return bool(cls.SUPABASE_URL and cls.SUPABASE_ANON_KEY)
