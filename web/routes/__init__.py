"""
HTTP routes split by concern.

Each sub-module defines its own APIRouter which is composed
into the top-level router exposed by this package.
"""
from fastapi import APIRouter

from .health import router as health_router
from .state import router as state_router
from .webhooks import router as webhooks_router

router = APIRouter()

router.include_router(health_router)
router.include_router(state_router)
router.include_router(webhooks_router)
