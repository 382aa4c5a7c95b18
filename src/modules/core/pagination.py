"""Pagination classes shared by the API modules."""

from __future__ import annotations

import math
from typing import Any, List

from django.core.paginator import Page
from rest_framework.exceptions import NotFound
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class StandardResultsSetPagination(PageNumberPagination):
    """Default page-number pagination (``?page=`` / ``?page_size=``)."""

    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 100


class OrderHistoryPagination(PageNumberPagination):
    """Storefront order history pagination (``?page=`` / ``?limit=``).

    Response shape::

        {"orders": [...], "pagination": {"current_page": 1, "total_pages": 3,
         "total_orders": 25, "has_next": true, "has_prev": false}}
    """

    page_size = 10
    page_size_query_param = "limit"
    max_page_size = 50

    def paginate_queryset(self, queryset, request, view=None):
        """Answer a page past the end with an empty list instead of a 404."""
        try:
            return super().paginate_queryset(queryset, request, view)
        except NotFound:
            number = request.query_params.get(self.page_query_param, "")
            if not number.isdigit() or int(number) < 1:
                raise
            paginator = self.django_paginator_class(
                queryset, self.get_page_size(request)
            )
            self.page = Page([], int(number), paginator)
            self.request = request
            return []

    def get_paginated_response(self, data: List[Any]) -> Response:
        page = self.page
        total = page.paginator.count
        per_page = page.paginator.per_page
        return Response(
            {
                "orders": data,
                "pagination": {
                    "current_page": page.number,
                    "total_pages": math.ceil(total / per_page) if total else 0,
                    "total_orders": total,
                    "has_next": page.has_next(),
                    "has_prev": page.has_previous(),
                },
            }
        )

