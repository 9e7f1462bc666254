"""Shared constants for the Oura -> Roam sync."""

import re

# API
OURA_API_BASE = "https://api.ouraring.com/v2/usercollection"
ROAM_API_BASE = "https://api.roamresearch.com"

# Pages
DEFAULT_PAGE_PREFIX = "ouraring"
CONFIG_PAGE_TITLE = "roam/js/ouraring"

# Validation
ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Performance tuning
MAX_DAYS_PER_REQUEST = 7
# The graph does not see very recent writes right away; wait this long
# after every mutating call before issuing the next one.
MUTATION_DELAY_SECONDS = 0.1
YIELD_BATCH_SIZE = 3

# Block identity
HEADER_TAG = "#ouraring"
OURA_DATE_PROPERTY = "oura-date"
# Only one managed day block lives on a page, so every one of them shares this key
ROOT_BLOCK_KEY = "oura-daily"
SECTION_NAMES = ("Sleep", "Readiness", "Activity", "Heart rate", "Workouts", "Tags")
