"""
Query helpers shared by the list endpoints.
"""

from django.db.models import Q


def tag_filter(tags):
    """
    Match records carrying any of ``tags`` in their JSON ``tags`` list.

    The lookup compares against the serialized list, so each tag is quoted
    to avoid matching substrings of longer tags.
    """
    condition = Q()
    for tag in tags:
        condition |= Q(tags__icontains=f'"{tag}"')
    return condition


def ordering(filters, allowed, default):
    """
    Build an ``order_by`` expression from ``sort``/``order`` query values.

    Unknown sort fields fall back to ``default``; ordering is descending
    unless ``order`` is ``asc``.
    """
    sort = filters.get('sort') or default
    if sort not in allowed:
        sort = default
    return sort if filters.get('order') == 'asc' else f'-{sort}'
