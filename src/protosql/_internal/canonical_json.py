"""Byte-stable JSON serialization for validation reports.

Identical reports must serialize to identical bytes, so every report write
and every determinism test goes through canonical_dumps().
"""

import json
from typing import Any


def canonical_dumps(obj: Any) -> str:
    """
    Canonical JSON serialization.

    Rules:
    - Sorted keys
    - Compact separators (",", ":")
    - Non-ASCII kept as UTF-8 (ensure_ascii=False)
    - List order is the caller's; report issues are already ordered

    Args:
        obj: JSON-compatible Python object

    Returns:
        Canonical JSON string
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
