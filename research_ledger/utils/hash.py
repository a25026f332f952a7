"""Stable hashing of research item payload fields.

Used to detect whether the fields feeding the duplicate-search projection
changed since the projection row was last computed.
"""

import hashlib
import json
from typing import Any, Mapping, Sequence


def payload_fingerprint(data: Mapping[str, Any], fields: Sequence[str], **extra: Any) -> str:
    """Calculate a stable SHA-256 hash over selected payload fields.

    Nested fields use dotted paths ("source.title"). Missing fields and
    explicit nulls hash identically.

    Args:
        data: Research item JSON payload.
        fields: Field paths to include.
        **extra: Additional values to include (e.g. the item type id).

    Returns:
        SHA-256 hash prefixed with 'sha256:' for clarity.
    """
    selected = {path: _lookup(data, path) for path in fields}
    selected.update(extra)

    json_str = json.dumps(selected, sort_keys=True, separators=(",", ":"), default=str)
    hash_bytes = hashlib.sha256(json_str.encode("utf-8")).hexdigest()

    return f"sha256:{hash_bytes}"


def _lookup(data: Mapping[str, Any], path: str) -> Any:
    value: Any = data
    for part in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value
