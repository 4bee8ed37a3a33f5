"""Default values shared across bucketcrew modules."""

DEFAULT_MODEL = "anthropic:claude-sonnet-4-20250514"
DEFAULT_TOP_K = 20
DEFAULT_FALLBACK_SIMILARITY = 1.0
DEFAULT_MAX_TOOL_TURNS = 5
DEFAULT_THINKING_BUDGET = 10000

DEFAULT_STREAM_POLL_INTERVAL = 1.5
DEFAULT_STREAM_LIFESPAN = 5 * 60

DEFAULT_QUEUE = "runs"

SOURCE_FALLBACK_RELEVANCE = "Referenced during analysis"
GENERIC_SUMMARY = "Analysis complete. Please review the detailed findings below."
