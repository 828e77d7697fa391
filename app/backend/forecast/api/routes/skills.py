"""Skill id resolution endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from forecast.services.forecast_service import ForecastService, get_forecast_service

router = APIRouter(prefix="/skills", tags=["skills"])


class SkillResolvePayload(BaseModel):
    skill_ids: list[str] = Field(default_factory=list)


@router.post("/resolve")
async def post_resolve_skills(
    payload: SkillResolvePayload,
    service: ForecastService = Depends(get_forecast_service),
) -> dict[str, object]:
    return await service.resolve_skills(payload.skill_ids)
