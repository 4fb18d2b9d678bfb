"""V1 API router -- aggregates all v1 endpoint routers under /api/v1."""

from __future__ import annotations

from fastapi import APIRouter

from src.app.api.v1 import (
    activity,
    auth,
    data_room,
    deals,
    financing,
    invitations,
    nda,
    storage,
    team,
    users,
)

router = APIRouter(prefix="/api/v1")

router.include_router(auth.router)
router.include_router(deals.router)
router.include_router(team.router)
router.include_router(data_room.router)
router.include_router(activity.router)
router.include_router(nda.router)
router.include_router(invitations.router)
router.include_router(financing.router)
router.include_router(storage.router)
router.include_router(users.router)
