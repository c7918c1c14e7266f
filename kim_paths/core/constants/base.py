GAS_BUFFER_MULTIPLIER = 1.1
SUGGESTED_PRIORITY_FEE_MULTIPLIER = 1.5
SUGGESTED_GAS_PRICE_MULTIPLIER = 1.5
MAX_BASE_FEE_GROWTH_MULTIPLIER = 2

DEFAULT_HTTP_TIMEOUT = 30.0  # HTTP client timeout
DEFAULT_TRANSACTION_TIMEOUT = 180  # Transaction receipt timeout (seconds)
DEFAULT_CONFIRMATIONS = 1

# Deadline windows (seconds from submission)
DEFAULT_DEADLINE_SECONDS = 300
LIQUIDITY_DEADLINE_SECONDS = 60

DAYS_PER_YEAR = 365
