# agency_api/common/paging.py
"""
List endpoints share one query-string contract:

    ?page=2&size=50        1-based page, size clamped to MAX_SIZE
    ?sort=due_date,-title  comma list, "-" for descending, unknown keys dropped
    ?q=acme                free-text filter, applied by each blueprint
"""
from flask import request

DEFAULT_PAGE = 1
DEFAULT_SIZE = 20
MAX_SIZE = 100


def _int_arg(name, default, lo, hi=None):
    try:
        n = int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default
    n = max(n, lo)
    return min(n, hi) if hi else n


def page_limit():
    return _int_arg("page", DEFAULT_PAGE, 1), _int_arg("size", DEFAULT_SIZE, 1, MAX_SIZE)


def sort_params(allowed: dict[str, object]):
    """(column, ascending) pairs for the keys of ``allowed`` named in ?sort=."""
    order = []
    for part in request.args.get("sort", "").split(","):
        part = part.strip()
        col = allowed.get(part.lstrip("-")) if part else None
        if col is not None:
            order.append((col, not part.startswith("-")))
    return order


def text_q():
    return request.args.get("q", "").strip() or None


def paginate(query, allowed_sort: dict, default_order):
    order = sort_params(allowed_sort)
    if order:
        query = query.order_by(*[c.asc() if asc else c.desc() for c, asc in order])
    else:
        query = query.order_by(default_order)
    page, size = page_limit()
    total = query.count()
    items = query.offset((page - 1) * size).limit(size).all()
    return items, {"page": page, "size": size, "total": total}
