"""
Reconciler Constants

Static configuration values that rarely change: collection names,
batch caps, pool sizes and sweep defaults.
"""

# --- Collections ---

MEMBERS_COLLECTION = "members"

# Roles whose member documents receive admin-side badge notifications
ADMIN_ROLES = ("admin", "developer")

# Tag that marks a member as a test account
TEST_MEMBER_TAG = "test"

# --- Batching ---

BATCH_CAP = 500  # Max candidates handled by one remover batch
DEFAULT_BATCH_SIZE = 100  # Default scan page size
MEMBER_PAGE_SIZE = 500  # Page size when loading the live member id set

# Warn when the fallback scan loads more live member ids than this
LIVE_SET_WARN_THRESHOLD = 100_000

# --- Concurrency ---

DEFAULT_CONCURRENCY = 3  # Small on purpose: store-side rate limits

# --- Sweep ---

SWEEP_BATCH_SIZE = 50
SWEEP_MAX_DURATION_MS = 20_000  # Leaves headroom under a 60s invocation limit
