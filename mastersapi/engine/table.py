import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

from fastapi.encoders import jsonable_encoder

from mastersapi.models.form import MasterConfig

DEFAULT_PAGE_SIZE = 7


def table_columns(config: MasterConfig) -> List[Dict[str, Any]]:
    configured = (config.datatable_config or {}).get("default_columns") or []
    if configured:
        return [
            {"key": c["accessorKey"], "label": c.get("header", c["accessorKey"]), "width": c.get("width")}
            for c in configured
            if isinstance(c, Mapping) and c.get("accessorKey")
        ]
    return [
        {"key": f.name, "label": f.label, "width": None}
        for s in config.sections
        if s.in_list and not s.is_child
        for f in s.fields
    ]


def _searchable_text(value: Any) -> Optional[str]:
    # match what the client is shown, e.g. ISO dates
    value = jsonable_encoder(value)
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def search_rows(
    rows: Sequence[Mapping[str, Any]], term: Optional[str], columns: Sequence[str]
) -> List[Mapping[str, Any]]:
    if not term:
        return list(rows)
    needle = term.lower()
    matched = []
    for row in rows:
        for key in columns:
            text = _searchable_text(row.get(key))
            if text is not None and needle in text.lower():
                matched.append(row)
                break
    return matched


def paginate(rows: Sequence[Any], page: int = 1, per_page: int = DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
    if per_page < 1:
        raise ValueError("per_page must be at least 1")
    total = len(rows)
    total_pages = math.ceil(total / per_page)
    page = min(max(page, 1), max(total_pages, 1))
    start = (page - 1) * per_page
    return {
        "items": list(rows[start:start + per_page]),
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": total_pages,
    }
