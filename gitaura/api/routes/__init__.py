from fastapi import APIRouter

from gitaura.api.routes.admin import router as admin_router
from gitaura.api.routes.aura import router as aura_router
from gitaura.api.routes.leaderboard import router as leaderboard_router

router = APIRouter()

router.include_router(leaderboard_router, prefix="/leaderboard", tags=["leaderboard"])
router.include_router(aura_router, prefix="/aura", tags=["aura"])
router.include_router(admin_router, prefix="/admin", tags=["admin"])
