"""
GeneratedContent - the immutable record handed back to the application.

Created only after a fragment passes theory validation. Persistence, soft
delete and ownership checks belong to the content-management collaborator;
this record plus its timeline reference is everything it needs to store.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from chuk_mcp_musicgen.compiler.notation import notation_dict
from chuk_mcp_musicgen.compiler.timeline import PlaybackTimeline
from chuk_mcp_musicgen.models.fragment import MusicFragment
from chuk_mcp_musicgen.models.request import GenerationRequest


def new_content_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class GeneratedContent:
    """A validated fragment with its notation blob and playback timeline."""

    fingerprint: str
    fragment: MusicFragment
    notation: str  # notation/v1 JSON blob
    timeline: PlaybackTimeline  # Realised at the request tempo
    request: GenerationRequest
    id: str = field(default_factory=new_content_id)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    # Provenance
    owner_id: str | None = None
    provider: str = ""
    attempts: int = 1
    warnings: tuple[str, ...] = ()

    @property
    def timeline_ref(self) -> str:
        """Reference the storage collaborator keeps for the rendered audio."""
        return f"timeline:{self.id}@{self.timeline.tempo}"

    def to_api_dict(self) -> dict[str, Any]:
        """Outbound JSON shape of the content API."""
        return {
            "id": self.id,
            "type": self.request.content_type.value,
            "musicData": notation_dict(self.fragment),
            "notationBlob": self.notation,
            "audioTimelineRef": self.timeline_ref,
            "difficulty": self.request.difficulty.value,
            "key": self.fragment.key.canonical_name(),
            "tempo": self.timeline.tempo,
            "style": self.request.style,
            "createdAt": self.created_at.isoformat(),
        }

    def summary(self) -> dict[str, Any]:
        """Generate a summary for quick inspection."""
        fragment = self.fragment
        pitches = [n.pitch.midi for n in fragment.sounding_notes if n.pitch]
        return {
            "id": self.id,
            "key": str(fragment.key),
            "time_signature": str(fragment.time_signature),
            "measures": fragment.measures,
            "notes": len(fragment.notes),
            "chords": [c.symbol for c in fragment.chords],
            "pitch_range": (min(pitches), max(pitches)) if pitches else (0, 0),
            "timeline_events": len(self.timeline.events),
            "duration_seconds": round(self.timeline.duration, 3),
            "provider": self.provider,
            "attempts": self.attempts,
            "warnings": list(self.warnings),
        }
