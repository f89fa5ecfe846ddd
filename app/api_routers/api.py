from fastapi import APIRouter

from app.features.admin.routes.referrals import router as admin_referrals_router
from app.features.referrals.routes.referral import router as referrals_router

api_router = APIRouter()

# Register all feature routes
api_router.include_router(referrals_router)
api_router.include_router(admin_referrals_router)
