"""Application constants and configuration values."""

from decimal import Decimal

from core.config import FRONTEND_URL

# Database field lengths
MAX_STRING_LENGTH = 255

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
# Note: production URLs should be added via FRONTEND_URL environment variable
_CORS_ORIGINS_RAW = [
    "http://localhost:5173",      # React dev server (Vite) - localhost
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Percentage bounds for discounts and commissions
PERCENTAGE_MIN = Decimal("0")
PERCENTAGE_MAX = Decimal("100")

# Commission rule match scores (higher wins)
SCORE_PRACTITIONER_AND_PROCEDURE = 100
SCORE_PRACTITIONER_AND_CATEGORY = 80
SCORE_PRACTITIONER_ONLY = 75
SCORE_CATEGORY_ONLY = 60
SCORE_DEFAULT_FALLBACK = 40
SCORE_NO_MATCH = 0

# Voucher validation endpoint path on the voucher service
VOUCHER_VALIDATE_PATH = "/vouchers/validate"
