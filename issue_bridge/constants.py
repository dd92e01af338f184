"""Centralized constants for the tracker integration."""

# Retries on HTTP 429 before the response is surfaced
MAX_RETRIES = 5

DEFAULT_API_BASE_PATH = "/rest/api/latest"

# =============================================================================
# REQUEST HEADERS
# =============================================================================

USER_AGENT = "obsidian-jira-issue-plugin"
ATLASSIAN_TOKEN_HEADER = "X-Atlassian-Token"
ATLASSIAN_TOKEN_VALUE = "no-check"

# =============================================================================
# SEARCH DEFAULTS
# =============================================================================

DEFAULT_SEARCH_LIMIT = 50
DEFAULT_SEARCH_FIELDS = ("*all",)
USER_SEARCH_LIMIT = 20

# Avatar size requested when prefetching reporter/assignee images
AVATAR_RESOLUTION = "16x16"

# =============================================================================
# IMAGE SNIFFING (first four bytes, upper-case hex)
# =============================================================================

IMAGE_MAGIC_NUMBERS = {
    "89504E47": "image/png",
    "47494638": "image/gif",
    "FFD8FFDB": "image/jpeg",
    "FFD8FFE0": "image/jpeg",
    "FFD8FFE1": "image/jpeg",
    "3C737667": "image/svg+xml",
    "3C3F786D": "image/svg+xml",
}
