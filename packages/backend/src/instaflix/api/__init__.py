"""API route aggregation.

All routers registered here get mounted in main.py. Health and auth are
open; /auth/me protects itself with get_current_principal. Link routes
(served elsewhere) mount with dependencies=[Depends(get_current_principal)].
"""

from fastapi import APIRouter

from instaflix.api.auth import router as auth_router
from instaflix.api.health import router as health_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
