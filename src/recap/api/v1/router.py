"""V1 API router -- aggregates the public v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.recap.api.v1 import digests, health, transcripts

router = APIRouter()

router.include_router(health.router)
router.include_router(transcripts.router, prefix="/api/v1")
router.include_router(digests.router, prefix="/api/v1")
