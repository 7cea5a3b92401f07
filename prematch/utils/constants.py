"""Named constants for prematch. No magic numbers."""

# --- Application ---
APP_NAME = "prematch"
APP_VERSION = "0.1.0"

# --- Hash Extraction ---
HASH_MIN_LENGTH = 32  # md5
HASH_MAX_LENGTH = 40  # sha1

# --- Dehash Retry Budget ---
# dehash_status starts at 0 and loses one point per failed hash lookup.
# A release is eligible while floor < status <= 0; reaching the floor exhausts it.
DEFAULT_RETRY_FLOOR = -6
DEHASH_STATUS_MATCHED = 1

# --- Selection Windows ---
DEFAULT_RECENT_WINDOW_HOURS = 3
DEFAULT_GROUP_BATCH_LIMIT = 1000
DEFAULT_GLOBAL_BATCH_LIMIT = 5000

# --- Release Status ---
NZB_STATUS_PUBLISHED = 1

# --- Categories ---
CATEGORY_OTHER_MISC = 10
CATEGORY_OTHER_HASHED = 20
OTHER_CATEGORY_GROUP = (CATEGORY_OTHER_MISC, CATEGORY_OTHER_HASHED)

# --- Query Cache ---
CACHE_EXPIRY_MEDIUM_SECONDS = 600

# --- PreDB Listing ---
DEFAULT_PAGE_SIZE = 50
UNMATCHED_PAGE_SIZE = 500

# --- Stage Arguments ---
GLOBAL_STAGE = "global"

# --- Paths ---
DEFAULT_CONFIG_FILENAME = "config.yaml"
DEFAULT_DB_FILENAME = "prematch.db"
