"""
Time utilities for the relay.
"""

import time


def unix_now() -> int:
    """Current Unix time in whole seconds (OpenAI `created` field)."""
    return int(time.time())


def unix_ms() -> int:
    """Current Unix time in milliseconds."""
    return int(time.time() * 1000)
