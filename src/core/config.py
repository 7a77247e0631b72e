"""
Runtime configuration for the CRM command interpreter.
All settings come from environment variables with development defaults.
"""

import os
from pathlib import Path

# Document store configuration
DB_PATH = os.getenv("DB_PATH", "./data/crm.db")
STORE_BUSY_TIMEOUT_SEC = float(os.getenv("STORE_BUSY_TIMEOUT_SEC", "5"))
COUNTER_RETRY_LIMIT = int(os.getenv("COUNTER_RETRY_LIMIT", "5"))
COUNTER_RETRY_BACKOFF_SEC = float(os.getenv("COUNTER_RETRY_BACKOFF_SEC", "0.05"))

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Oracle (generative model) configuration
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3.1:8b")
ORACLE_TIMEOUT_SEC = float(os.getenv("ORACLE_TIMEOUT_SEC", "30"))
ORACLE_TEMPERATURE = float(os.getenv("ORACLE_TEMPERATURE", "0.1"))
FEW_SHOT_FIXTURE = os.getenv(
    "FEW_SHOT_FIXTURE",
    str(Path(__file__).resolve().parent.parent / "agents" / "fixtures" / "few_shot_examples.json"),
)

# API surface
COMMAND_API_ENABLED = os.getenv("COMMAND_API_ENABLED", "true").lower() == "true"
ADMIN_API_ENABLED = os.getenv("ADMIN_API_ENABLED", "true").lower() == "true"
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origin.strip()
]

# Dispatcher defaults
DEFAULT_METRICS_LIMIT = int(os.getenv("DEFAULT_METRICS_LIMIT", "10"))
EXPENSE_REPORT_NUMBER_START = int(os.getenv("EXPENSE_REPORT_NUMBER_START", "1000"))

# Version string
VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled. Re-reads the environment so tests can toggle it."""
    return os.getenv("DEBUG", "true" if DEBUG else "false").lower() == "true"


def ensure_db_directory():
    """Ensure the database directory exists."""
    db_dir = Path(DB_PATH).parent
    db_dir.mkdir(parents=True, exist_ok=True)


def get_oracle_timeout():
    """Get the bounded oracle call timeout in seconds."""
    return ORACLE_TIMEOUT_SEC


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if ORACLE_TIMEOUT_SEC <= 0:
        issues.append("ORACLE_TIMEOUT_SEC must be > 0")

    if COUNTER_RETRY_LIMIT < 1:
        issues.append("COUNTER_RETRY_LIMIT must be >= 1")

    if COUNTER_RETRY_BACKOFF_SEC < 0:
        issues.append("COUNTER_RETRY_BACKOFF_SEC must be >= 0")

    if DEFAULT_METRICS_LIMIT < 1:
        issues.append("DEFAULT_METRICS_LIMIT must be >= 1")

    if not Path(FEW_SHOT_FIXTURE).exists():
        issues.append(f"FEW_SHOT_FIXTURE not found: {FEW_SHOT_FIXTURE}")

    return issues
