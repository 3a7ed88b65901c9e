"""Protocol constants and seeds."""

# Capacity
MAX_ASSETS = 33
MAX_POSITIONS = 16
MAX_RISK_PAIRS = (MAX_ASSETS * (MAX_ASSETS + 1)) // 2
MAX_PRICE_ENTRIES = 64

# Seeds for canonical address derivation
SEED_MARKET = b"market"
SEED_ASSET_REG = b"asset-reg"
SEED_RISK_REG = b"risk-reg"
SEED_PRICE_CACHE = b"price-cache"
SEED_POOL = b"pool"
SEED_VAULT = b"vault"
SEED_OBLIGATION = b"obligation"

# Program identity used when deriving and checking account owners
PROGRAM_ID = "zodial-v2"

SECS_YEAR = 365 * 24 * 60 * 60

# Basis points (100% = 10_000)
BPS_DENOM = 10_000
MAX_BORROW_APY_BPS_HARD = 10_000  # 100% APY, protocol-wide ceiling

# Health scores are scaled by 1000; 1000 sits exactly on the risk boundary
HEALTH_ONE = 1_000

# Integer widths
U16_MAX = 2**16 - 1
U128_MAX = 2**128 - 1
HEALTH_MAX = U128_MAX
