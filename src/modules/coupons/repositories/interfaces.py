"""Coupon repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.coupons.models import Coupon


class ICouponRepository(IRepository["Coupon"]):
    @abstractmethod
    def get_active_by_code(self, code: str) -> Optional[Coupon]:
        """Active coupon matching ``code`` case-insensitively, else ``None``."""

    @abstractmethod
    def list_active(self) -> List[Coupon]:
        """All active coupons, cheapest threshold first."""
