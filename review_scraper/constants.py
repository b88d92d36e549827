"""Application-wide constants.

This module centralizes all magic numbers and configuration constants
to ensure a single source of truth and easier maintenance.

Settings in review_scraper/config.py use these values as defaults; every one
of them can be overridden via environment variables.
"""

# =============================================================================
# Request Defaults
# =============================================================================

# Number of reviews returned when the caller does not ask for a count
DEFAULT_REVIEW_COUNT = 5

# =============================================================================
# Selector Discovery
# =============================================================================

# Maximum characters per HTML chunk sent to the inference service
DEFAULT_CHUNK_SIZE_CHARS = 20000

# Chunks without this marker are skipped before inference
REVIEW_CHUNK_MARKER = "rating"

# Sampling temperature for selector inference (deterministic output)
DEFAULT_INFERENCE_TEMPERATURE = 0.0

# =============================================================================
# Browser Timing
# =============================================================================

# Timeout for the initial page navigation (seconds)
BROWSER_PAGE_LOAD_TIMEOUT_SECONDS = 30.0

# Timeout waiting for <body> after navigation (seconds)
BODY_WAIT_TIMEOUT_SECONDS = 10.0

# Wait after dismissing an overlay/popup (seconds)
OVERLAY_SETTLE_SECONDS = 1.0

# Wait after clicking the next-page control (seconds)
NEXT_PAGE_SETTLE_SECONDS = 3.0

# Close control of the store-selection popup some retail sites show on load
DEFAULT_OVERLAY_CLOSE_SELECTOR = ".store-selection-popup--close"

# Chromium flags for container deployments
BROWSER_LAUNCH_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--mute-audio",
)

# =============================================================================
# Pagination
# =============================================================================

# Hard ceiling on visited review pages per session
DEFAULT_MAX_PAGES = 50

# =============================================================================
# Rating Normalization
# =============================================================================

MIN_RATING = 0
MAX_RATING = 5
