"""
Application configuration using python-dotenv.

This module loads environment variables from .env file into os.environ
for use throughout the application.
"""

import os
import pathlib
from decimal import Decimal
from dotenv import load_dotenv


# Determine if we're running in a test environment
# Don't load .env file during testing to ensure predictable test behavior
is_testing = os.getenv("PYTEST_VERSION") is not None or any("pytest" in str(frame) for frame in __import__('inspect').stack(0))

# Load .env file into os.environ (only outside of testing)
if not is_testing:
    # Try multiple possible locations for .env file
    possible_paths = [
        pathlib.Path(__file__).parent.parent.parent / ".env",  # backend/.env (when run from backend/src)
        pathlib.Path(__file__).parent.parent.parent.parent / ".env",  # .env (when run from src)
        pathlib.Path.cwd() / ".env",  # .env in current directory
        pathlib.Path.cwd().parent / ".env",  # .env in parent directory
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(env_path)
            break


# Configuration constants with defaults
# These match the environment variables defined in .env.example
def get_database_url():
    """Get the database URL from environment."""
    return os.getenv(
        "DATABASE_URL",
        "sqlite:///./clinic_pricing.db"
    )


def get_default_administrative_fee() -> Decimal:
    """Get the clinic's default administrative fee from environment."""
    return Decimal(os.getenv("DEFAULT_ADMINISTRATIVE_FEE", "20000"))


DATABASE_URL = get_database_url()
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Pricing
DEFAULT_ADMINISTRATIVE_FEE = get_default_administrative_fee()

# Voucher validation service
VOUCHER_SERVICE_URL = os.getenv("VOUCHER_SERVICE_URL", "http://localhost:8001")
VOUCHER_SERVICE_TIMEOUT_SECONDS = float(os.getenv("VOUCHER_SERVICE_TIMEOUT_SECONDS", "10"))

# Clinic timezone (hours from UTC, WIB by default)
CLINIC_UTC_OFFSET_HOURS = int(os.getenv("CLINIC_UTC_OFFSET_HOURS", "7"))
