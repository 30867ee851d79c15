"""
Application Constants

Fixed strategy weights and loop limits.
"""

# RSI mean-reversion confidence model
BASE_CONFIDENCE = 0.6  # starting confidence for any RSI-triggered BUY/SELL
RSI_STRENGTH_WEIGHT = 0.3  # weight of the fractional distance into the threshold zone
MA_CONFIRMATION_BOOST = 0.1  # per moving-average confirmation

# Injected test signals (synthetic indicator source only)
TEST_SIGNAL_RATE = 0.25  # fraction of buckets promoted from HOLD
TEST_BUY_CUTOFF = 0.125  # factors below this become BUY, the rest of the band SELL
TEST_SIGNAL_BASE_CONFIDENCE = 0.5

# Automation interval bounds (minutes)
MIN_INTERVAL_MINUTES = 1
MAX_INTERVAL_MINUTES = 1440

# Client order id prefixes used to attribute orders on the broker side
AUTOMATION_ORDER_PREFIX = "automation_"
MANUAL_ORDER_PREFIX = "manual_"

# Trade history paging
MAX_HISTORY_LIMIT = 500
