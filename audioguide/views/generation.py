"""Schema for the single-call narration endpoint."""

from pydantic import BaseModel, Field, field_validator


class GenerateAudioRequest(BaseModel):
    name: str = Field(min_length=1, max_length=500)
    category: str = Field(min_length=1, max_length=100)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    language: str = Field(default="English", max_length=50)

    @field_validator("name", "category", "language", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("language")
    @classmethod
    def _default_language(cls, value: str) -> str:
        return value or "English"
