"""Library-wide defaults; settings modules may override the tunable ones."""

from decimal import Decimal

DEFAULT_HISTORY_LIMIT = 30
DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 500

# "Expiring soon" views on reports vs. the imminent-expiry badge on dashboards.
DEFAULT_EXPIRING_SOON_DAYS = 30
DEFAULT_IMMINENT_EXPIRY_DAYS = 2

QR_PAYLOAD_TYPE = "attendance"

MONEY_QUANT = Decimal("0.01")
MONEY_TOLERANCE = Decimal("0.01")
