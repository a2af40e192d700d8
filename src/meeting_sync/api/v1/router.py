"""V1 API router -- aggregates all v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.meeting_sync.api.v1 import health, webhook

router = APIRouter()

router.include_router(health.router)
router.include_router(webhook.router)
