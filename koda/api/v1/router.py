from fastapi import APIRouter

from koda.api.v1.endpoints.health import router as health_router
from koda.api.v1.endpoints.me import router as me_router
from koda.api.v1.endpoints.products import router as products_router
from koda.api.v1.endpoints.reviews import router as reviews_router
from koda.api.v1.endpoints.sellers import router as sellers_router
from koda.api.v1.endpoints.cart import router as cart_router
from koda.api.v1.endpoints.purchases import router as purchases_router
from koda.api.v1.endpoints.messaging import router as messaging_router
from koda.api.v1.endpoints.notifications import router as notifications_router
from koda.api.v1.endpoints.admin import router as admin_router
from koda.api.v1.endpoints.internal import router as internal_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(me_router, tags=["me"])
router.include_router(products_router, tags=["products"])
router.include_router(reviews_router, tags=["reviews"])
router.include_router(sellers_router, tags=["sellers"])
router.include_router(cart_router, tags=["cart"])
router.include_router(purchases_router, tags=["purchases"])
router.include_router(messaging_router, tags=["messaging"])
router.include_router(notifications_router, tags=["notifications"])
router.include_router(admin_router, tags=["admin"])
router.include_router(internal_router, tags=["internal"])
