"""Global configuration constants for bookmark sorter."""

from __future__ import annotations

# Default number of classification requests in flight at once.
DEFAULT_CONCURRENCY: int = 5

# Default OpenAI model used for categorisation (overridable via OPENAI_MODEL).
DEFAULT_MODEL: str = "gpt-4o-mini"

# Retry policy for the classifier: delay = base * 2**k + jitter.
RETRY_BASE_DELAY: float = 0.4
RETRY_MAX_JITTER: float = 0.1
MAX_RETRIES: int = 4
