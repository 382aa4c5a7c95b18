"""Django ORM implementation of the Coupon repository."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from django.core.exceptions import ValidationError

from modules.coupons.models import Coupon
from modules.coupons.repositories.interfaces import ICouponRepository


class CouponDjangoRepository(ICouponRepository):
    def get_by_id(self, id: str) -> Optional[Coupon]:
        try:
            return Coupon.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Coupon]:
        queryset = Coupon.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def save(self, entity: Coupon) -> Coupon:
        entity.save()
        return entity

    def get_active_by_code(self, code: str) -> Optional[Coupon]:
        return Coupon.objects.filter(code=code.strip().upper(), is_active=True).first()

    def list_active(self) -> List[Coupon]:
        return list(Coupon.objects.filter(is_active=True))
