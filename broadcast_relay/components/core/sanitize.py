"""
Sanitizing of client-provided text before it reaches the logs.
"""

from __future__ import annotations

import re
from typing import Any

from broadcast_relay.components.core.constants import RelayConstants

# ASCII control characters, zero-width marks and bidi overrides
_UNSAFE_CHARS = re.compile(
    r"[\x00-\x1f\x7f-\x9f"
    r"\u200b-\u200f\u202a-\u202e\u2066-\u2069\ufeff]"
)


def sanitize_log_data(
    data: Any, max_length: int = RelayConstants.LOG_PREVIEW_LENGTH
) -> str:
    """
    Turn arbitrary client input into a short, single-line log preview.

    Truncates first, then strips control and direction-override characters,
    so the preview length is stable.
    """
    text = data if isinstance(data, str) else repr(data)
    truncated = len(text) > max_length
    preview = _UNSAFE_CHARS.sub("", text[:max_length])
    return preview + "..." if truncated else preview
