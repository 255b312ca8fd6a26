"""Transcription and synthesis result models."""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any


@dataclass
class TranscriptionSegment:
    """Timed piece of recognized text."""
    start: float
    end: float
    text: str


@dataclass
class TranscriptionResult:
    """Result of a transcription operation."""
    text: str
    segments: List[TranscriptionSegment] = field(default_factory=list)
    language: Optional[str] = None
    duration_seconds: Optional[float] = None
    warnings: List[str] = field(default_factory=list)
    service: str = ""
    processing_time: float = 0.0

    @classmethod
    def empty(cls) -> "TranscriptionResult":
        return cls(text="")

    @classmethod
    def from_json(cls, body: Dict[str, Any], service: str = "", processing_time: float = 0.0) -> "TranscriptionResult":
        """Build a result from the transcription endpoint's JSON body."""
        segments = [
            TranscriptionSegment(
                start=float(seg.get("start", seg.get("startSecond", 0.0))),
                end=float(seg.get("end", seg.get("endSecond", 0.0))),
                text=seg.get("text", ""),
            )
            for seg in body.get("segments") or []
        ]
        return cls(
            text=body.get("text") or "",
            segments=segments,
            language=body.get("language"),
            duration_seconds=body.get("durationInSeconds"),
            warnings=list(body.get("warnings") or []),
            service=service,
            processing_time=processing_time,
        )


@dataclass
class SynthesizedAudio:
    """Audio bytes produced by a speech backend."""
    data: bytes
    content_type: str = "audio/mpeg"
