"""
Real-time playback of timelines.
"""

from chuk_mcp_musicgen.playback.scheduler import AudioScheduler, TransportState
from chuk_mcp_musicgen.playback.sinks import (
    MidoPortSink,
    RecordedEvent,
    RecordingSink,
    SynthesisSink,
)

__all__ = [
    "AudioScheduler",
    "TransportState",
    "SynthesisSink",
    "RecordingSink",
    "RecordedEvent",
    "MidoPortSink",
]
