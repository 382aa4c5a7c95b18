"""Coupon API views.

``GET /coupons/`` lists the active coupons for the storefront banner;
``POST /coupons/validate/`` previews the discount a code would give.
"""

from __future__ import annotations

from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import ViewSet

from modules.coupons.dtos import ValidateCouponDTO
from modules.coupons.repositories.django_repository import CouponDjangoRepository
from modules.coupons.serializers import (
    AppliedCouponSerializer,
    CouponSerializer,
    ValidateCouponSerializer,
)
from modules.coupons.services import CouponService


class CouponViewSet(ViewSet):
    permission_classes = [AllowAny]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = CouponService(repository=CouponDjangoRepository())

    def list(self, request: Request) -> Response:
        """GET /api/v1/coupons/"""
        coupons = self._service.list_active()
        return Response(CouponSerializer(coupons, many=True).data)

    @action(detail=False, methods=["post"], url_path="validate")
    def validate(self, request: Request) -> Response:
        """POST /api/v1/coupons/validate/"""
        serializer = ValidateCouponSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = ValidateCouponDTO(**serializer.validated_data)

        applied = self._service.validate(dto.code, dto.subtotal)
        return Response(AppliedCouponSerializer(applied).data)
