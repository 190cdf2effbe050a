"""Engine-wide constants.

This module defines constants used throughout the engine
to avoid magic numbers and ensure consistency.
"""

import re


# Reserved role ranks
SUPER_ROLE_LEVEL = 0
DEFAULT_ROLE_LEVEL = 99

# Identifiers of the seeded system roles
SUPER_ROLE_ID = "owner"
DEFAULT_ROLE_ID = "guest"

# Permission ids: "resource:action", action may itself be namespaced
PERMISSION_ID_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*(:[a-z][a-z0-9_-]*)+$")

# String field lengths
MAX_PERMISSION_ID_LENGTH = 150
MAX_ROLE_ID_LENGTH = 100
MAX_ROLE_NAME_LENGTH = 100
MAX_ACTOR_ID_LENGTH = 255
MAX_CATEGORY_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 255

# Audit actor used for seeded data
SYSTEM_ACTOR = "system"

# Custom role ids are "role_" + 12 hex chars
CUSTOM_ROLE_ID_PREFIX = "role_"
CUSTOM_ROLE_ID_HEX_LENGTH = 12

# Display order of permission categories in listings
CATEGORY_ORDER = ("system", "settings", "user", "finance", "project")

# Decision cache defaults
DEFAULT_CACHE_MAX_ENTRIES = 10_000

# Reconciliation defaults
DEFAULT_RECONCILE_CONCURRENCY = 10

# Role change propagation between processes
ROLE_EVENT_RETRY_SECONDS = 1.0
ROLE_EVENT_MAX_RETRY_SECONDS = 30.0
DEFAULT_ROLE_POLL_INTERVAL_SECONDS = 30.0
