from typing import Any, Dict, Mapping, Optional

from fastapi.encoders import jsonable_encoder

_MISSING = object()


def build_create_payload(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Only non-empty values go into an INSERT."""
    return {k: v for k, v in data.items() if v is not None and v != ""}


def without_blanks(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v != ""}


def build_update_payload(
    data: Mapping[str, Any], original: Optional[Mapping[str, Any]]
) -> Dict[str, Any]:
    """Only changed values go into an UPDATE.

    ``data`` should already be coerced to the column types, so the ``"1"`` a
    select posts equals a stored ``1``. Values are then compared in their
    JSON form. Blank strings are never written; ``None`` is, when it differs,
    so a column can be cleared.
    """
    base = jsonable_encoder(dict(original or {}))
    payload = {}
    for key, value in data.items():
        if value == "":
            continue
        if jsonable_encoder(value) == base.get(key, _MISSING):
            continue
        payload[key] = value
    return payload
