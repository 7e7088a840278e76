import os
from pathlib import Path

from .constants import DATA_DIR, DB_FILE_NAME

BASE_DIR = Path(__file__).resolve().parent
DATA_PATH = BASE_DIR / DATA_DIR

# PHONE_POS_DB_PATH points the app at another store file (tests, second till)
_env_db = os.getenv("PHONE_POS_DB_PATH")
DB_PATH = Path(_env_db) if _env_db else DATA_PATH / DB_FILE_NAME

# PHONE_POS_LOG_LEVEL sets the package logger level (DEBUG shows job tracebacks)
LOG_LEVEL = os.getenv("PHONE_POS_LOG_LEVEL", "INFO").upper()
