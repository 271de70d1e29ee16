"""Retry Anthropic API calls on overload (529), rate limit (429) and dropped connections.

Blog posts are generated with 16k-token responses and translations fan out
to several locales at once, so overload errors are common. This helper
retries with exponential backoff so a single hiccup doesn't roll a keyword
back to pending.
"""

import time

import anthropic
from anthropic._exceptions import OverloadedError, RateLimitError

# OverloadedError is not re-exported from anthropic in some SDK versions
RETRYABLE = (OverloadedError, RateLimitError, anthropic.APIConnectionError)

MAX_RETRIES = 4
BASE_DELAY = 5  # seconds; 5, 10, 20
MAX_DELAY = 60


def messages_create_with_retry(client: anthropic.Anthropic, label: str = "", **kwargs):
    """Call client.messages.create(**kwargs) with retries on transient API errors."""
    for attempt in range(MAX_RETRIES):
        try:
            return client.messages.create(**kwargs)
        except RETRYABLE as e:
            if attempt == MAX_RETRIES - 1:
                raise
            delay = min(BASE_DELAY * (2**attempt), MAX_DELAY)
            prefix = f"{label} " if label else ""
            print(
                f"  .. {prefix}API {type(e).__name__}, retrying in {delay}s "
                f"(attempt {attempt + 1}/{MAX_RETRIES})..."
            )
            time.sleep(delay)
    raise RuntimeError("retry loop exited without return or raise")


def response_text(message) -> str:
    """Join the text blocks of a Messages API response."""
    return "\n".join(block.text for block in message.content if block.type == "text")
