from __future__ import annotations

from django.conf import settings
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class DefaultPagination(PageNumberPagination):
    page_size = getattr(settings, "API_PAGE_SIZE", 25)
    page_size_query_param = "page_size"
    max_page_size = getattr(settings, "API_MAX_PAGE_SIZE", 100)


def paginate(request, queryset, serializer_class, *, paginator: PageNumberPagination | None = None) -> Response:
    """
    List responses always look like {count, next, previous, results}.
    The queryset must already be ordered with a unique tiebreak.
    """
    pager = paginator or DefaultPagination()
    page = pager.paginate_queryset(queryset, request)
    context = {"request": request}
    if page is None:
        return Response(serializer_class(queryset, many=True, context=context).data)
    return pager.get_paginated_response(serializer_class(page, many=True, context=context).data)
