"""Coupon URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.coupons.views import CouponViewSet

router = DefaultRouter(trailing_slash=True)
router.register("coupons", CouponViewSet, basename="coupon")

urlpatterns = router.urls
