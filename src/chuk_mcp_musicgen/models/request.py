"""
Inbound request models - GenerationRequest and UserContext.

A GenerationRequest is immutable once submitted. Its canonical JSON
serialization is hashed to form the fingerprint used as the cache key, so
two requests that mean the same thing ('C' vs 'C_major', 'Swing' vs 'swing')
share a fingerprint.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, Field, field_serializer, field_validator

from chuk_mcp_musicgen.constants import ContentType, Difficulty
from chuk_mcp_musicgen.core.rhythm import TimeSignature
from chuk_mcp_musicgen.core.scale import Key


def _freeze(value: Any) -> Any:
    """Read-only copy of decoded JSON: mappings become proxies, lists tuples."""
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


class GenerationRequest(BaseModel):
    """
    Parameters for one piece of generated content.

    ``parameters`` is an opaque mapping of generation knobs; recognised ones
    are interpreted by the provider (e.g. ``seed``, ``time_signature``) and
    the format converter (e.g. ``swing_ratio``).
    """

    content_type: ContentType = Field(
        ContentType.LEAD_SHEET, alias="type", description="Kind of content to generate"
    )
    key: str = Field(..., description="Key (e.g. 'C', 'Am', 'F#_minor')")
    difficulty: Difficulty = Field(Difficulty.INTERMEDIATE, description="Difficulty tier")
    style: str = Field("pop", description="Style tag (e.g. 'swing', 'classical')")
    tempo: int = Field(120, ge=40, le=240, description="Tempo in BPM")
    length: int = Field(8, ge=1, le=64, description="Length in measures")
    parameters: Mapping[str, Any] = Field(
        default_factory=lambda: MappingProxyType({}), description="Generation knobs (read-only)"
    )

    model_config = {"frozen": True, "populate_by_name": True}

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Validate key format."""
        Key.parse(v)
        return v.strip()

    @field_validator("style")
    @classmethod
    def validate_style(cls, v: str) -> str:
        """Normalise style tags to lower snake case."""
        normalized = v.strip().lower().replace(" ", "_").replace("-", "_")
        if not normalized:
            raise ValueError("Style must not be empty")
        return normalized

    @field_validator("parameters")
    @classmethod
    def validate_parameters(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        """Require JSON-compatible knobs and freeze a detached copy."""
        try:
            decoded = json.loads(json.dumps(_thaw(v), sort_keys=True))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Parameters must be JSON-serializable: {e}") from e
        return _freeze(decoded)

    @field_serializer("parameters")
    def serialize_parameters(self, v: Mapping[str, Any]) -> dict[str, Any]:
        return _thaw(v)

    def parameters_dict(self) -> dict[str, Any]:
        """Mutable copy of the parameters."""
        return _thaw(self.parameters)

    def get_key(self) -> Key:
        """Get parsed Key object."""
        return Key.parse(self.key)

    def get_time_signature(self) -> TimeSignature:
        """Time signature requested through parameters (default 4/4)."""
        return TimeSignature.parse(str(self.parameters.get("time_signature", "4/4")))

    def canonical_dict(self) -> dict[str, Any]:
        return {
            "type": self.content_type.value,
            "key": self.get_key().canonical_name(),
            "difficulty": self.difficulty.value,
            "style": self.style,
            "tempo": self.tempo,
            "length": self.length,
            "parameters": self.parameters_dict(),
        }

    def canonical_json(self) -> str:
        """Key-sorted, whitespace-free serialization used for fingerprinting."""
        return json.dumps(self.canonical_dict(), sort_keys=True, separators=(",", ":"))

    def fingerprint(self) -> str:
        """Stable SHA-256 of the canonical serialization."""
        return hashlib.sha256(self.canonical_json().encode("utf-8")).hexdigest()


class UserContext(BaseModel):
    """
    The caller, as seen by the generation core.

    Account details live in the surrounding application; the core only logs
    the user and records them as the content owner.
    """

    user_id: str = Field(..., min_length=1, description="Opaque user identifier")
    display_name: str | None = Field(None, description="Name for logs")
    tier: str = Field("free", description="Subscription tier tag")

    model_config = {"frozen": True}
