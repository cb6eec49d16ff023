import os
from pathlib import Path

# Project Root (sqliteext/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Directory the HTTP API and MCP tools are allowed to open databases from
DATA_ROOT = Path(os.environ.get("SQLITEEXT_DATA_ROOT", PROJECT_ROOT / "data"))

# Default database
DB_FILE = Path(os.environ.get("SQLITEEXT_DB_FILE", DATA_ROOT / "main.db"))

# Connection settings
CONNECT_TIMEOUT = float(os.environ.get("SQLITEEXT_TIMEOUT", "30"))

# Query limits
MAX_QUERY_ROWS = int(os.environ.get("SQLITEEXT_MAX_QUERY_ROWS", "500"))

# Logging
LOG_LEVEL = os.environ.get("SQLITEEXT_LOG_LEVEL", "INFO")

DB_SUFFIXES = {".db", ".sqlite", ".sqlite3"}
