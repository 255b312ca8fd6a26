"""Wire models for the HTTP endpoints and the character store."""

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field


class SpeechRequest(BaseModel):
    """Body of POST /api/speech."""
    text: Optional[str] = None
    voice: Optional[str] = None
    language: Optional[str] = None


class SegmentBody(BaseModel):
    start: float
    end: float
    text: str


class TranscriptionResponse(BaseModel):
    """Body returned by POST /api/transcription."""
    model_config = ConfigDict(populate_by_name=True)

    text: str
    segments: List[SegmentBody] = Field(default_factory=list)
    language: Optional[str] = None
    duration_in_seconds: Optional[float] = Field(default=None, alias="durationInSeconds")
    warnings: List[str] = Field(default_factory=list)


class ErrorBody(BaseModel):
    error: str
    message: Optional[str] = None


class Character(BaseModel):
    """A character card record as stored by the character store."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    description: str = ""
    character_card: str = Field(default="", alias="characterCard")
    user_id: Optional[str] = Field(default=None, alias="userId")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class CharacterOverrides(BaseModel):
    """Fields that may be replaced when cloning a character."""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    character_card: Optional[str] = Field(default=None, alias="characterCard")
