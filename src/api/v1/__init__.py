"""API v1 router configuration."""

from fastapi import APIRouter

from api.v1.routes.acceptance import router as acceptance_router
from api.v1.routes.invitations import router as invitations_router

router = APIRouter()
router.include_router(invitations_router)
router.include_router(acceptance_router)
