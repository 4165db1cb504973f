MAX_STAY = 30

DEFAULT_REGION = "ap-south-1"
DEFAULT_CURRENCY = "inr"

USER_INDEX_NAME = "user_id-index"

RECONCILE_MAX_ATTEMPTS = 3

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

TREND_MONTHS = 6
