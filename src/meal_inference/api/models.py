"""Pydantic models for analysis request payloads."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TextAnalysisRequest(BaseModel):
    """Free-text meal description."""

    description: str = Field(min_length=1)


class ImageAnalysisRequest(BaseModel):
    """Locator of an already-stored photo, with an optional caption."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    image_locator: str = Field(min_length=1)
    caption: str | None = None
