DEBUG = False

# Transfer window when the sender does not provide one
DEFAULT_EXPIRY_HOURS = 72

# Allow-list of currencies funds may be held in while in escrow,
# in order of preference. The source currency is always a candidate.
HOLDING_CURRENCIES = ["USDC", "USDT", "ETH", "BTC"]

# Expected cost of holding funds in a currency:
#   - fee_bps: settlement fee in basis points
#   - settlement_seconds: expected settlement delay
HOLDING_CURRENCY_PROFILES = {
    "USD": {"fee_bps": 15, "settlement_seconds": 86400},
    "EUR": {"fee_bps": 15, "settlement_seconds": 86400},
    "GBP": {"fee_bps": 20, "settlement_seconds": 86400},
    "JPY": {"fee_bps": 25, "settlement_seconds": 172800},
    "USDC": {"fee_bps": 2, "settlement_seconds": 15},
    "USDT": {"fee_bps": 3, "settlement_seconds": 15},
    "ETH": {"fee_bps": 30, "settlement_seconds": 300},
    "BTC": {"fee_bps": 40, "settlement_seconds": 3600},
}
DEFAULT_CURRENCY_PROFILE = {"fee_bps": 50, "settlement_seconds": 259200}

# Holding currency score = FEE_WEIGHT * fee (bps) + SETTLEMENT_DELAY_WEIGHT * delay (seconds)
FEE_WEIGHT = 1.0
SETTLEMENT_DELAY_WEIGHT = 0.0001

# Fee deducted from converted amounts, in basis points
CONVERSION_FEE_BPS = 10

# Maximum deviation between quoted and realized conversion, in basis points
MAX_SLIPPAGE_BPS = 50

# Expiry sweeper
SWEEP_INTERVAL_SECONDS = 60
SWEEP_BATCH_SIZE = 500

# Retries of ledger, payout rail and rate oracle calls
LEDGER_MAX_ATTEMPTS = 4
LEDGER_BACKOFF_BASE = 0.05
LEDGER_BACKOFF_MAX = 2.0
