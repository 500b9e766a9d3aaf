"""Meal analysis endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Request

from meal_inference.api.models import ImageAnalysisRequest, TextAnalysisRequest

if TYPE_CHECKING:
    from meal_inference.containers import AppContainer

router = APIRouter(prefix="/analysis", tags=["analysis"])


@router.post("/text")
async def analyze_text(
    payload: TextAnalysisRequest, request: Request
) -> dict[str, object]:
    """Estimate the nutrition of a described meal."""
    container: AppContainer = request.app.state.container
    result = await container.pipeline.analyze_text(payload.description)
    return result.model_dump(by_alias=True, mode="json")


@router.post("/image")
async def analyze_image(
    payload: ImageAnalysisRequest, request: Request
) -> dict[str, object]:
    """Estimate the nutrition of a stored meal or package photo."""
    container: AppContainer = request.app.state.container
    result = await container.pipeline.analyze_image(
        payload.image_locator, caption=payload.caption
    )
    return result.model_dump(by_alias=True, mode="json")
