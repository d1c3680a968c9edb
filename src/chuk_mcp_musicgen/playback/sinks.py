"""
Synthesis sinks - where the scheduler sends timeline events.

A sink only has to accept ``send(channel, event)``. Two are provided:
- RecordingSink: keeps every event with its dispatch time (tests, previews)
- MidoPortSink: forwards note_on/note_off messages to a mido output port
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import mido

from chuk_mcp_musicgen.compiler.timeline import SynthEvent, SynthEventKind

logger = logging.getLogger(__name__)


@runtime_checkable
class SynthesisSink(Protocol):
    def send(self, channel: int, event: SynthEvent) -> None: ...


@dataclass(frozen=True)
class RecordedEvent:
    elapsed: float  # Seconds since the sink was created
    channel: int
    event: SynthEvent


class RecordingSink:
    """Collects dispatched events in order."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._origin = clock()
        self.events: list[RecordedEvent] = []

    def send(self, channel: int, event: SynthEvent) -> None:
        self.events.append(RecordedEvent(self._clock() - self._origin, channel, event))

    def note_ons(self) -> list[RecordedEvent]:
        return [e for e in self.events if e.event.kind == SynthEventKind.NOTE_ON]

    def pitches(self) -> list[int]:
        """Pitches of the note-ons received, in dispatch order."""
        return [e.event.pitch for e in self.note_ons()]

    def clear(self) -> None:
        self.events.clear()

    def __len__(self) -> int:
        return len(self.events)


class MidoPortSink:
    """
    Sends events to a MIDI output port.

    Pass an already-open port (anything with ``send``), or a port name to
    open with ``mido.open_output``; the sink only closes ports it opened.
    """

    def __init__(self, port: Any | None = None, port_name: str | None = None) -> None:
        self._owns_port = port is None
        self.port = port if port is not None else mido.open_output(port_name)
        logger.info(f"MIDI output connected to: {getattr(self.port, 'name', port_name)}")

    @staticmethod
    def available_ports() -> list[str]:
        return list(mido.get_output_names())

    def send(self, channel: int, event: SynthEvent) -> None:
        message = mido.Message(
            event.kind.value, note=event.pitch, velocity=event.velocity, channel=channel
        )
        self.port.send(message)

    def close(self) -> None:
        if self._owns_port and self.port is not None:
            self.port.close()
            self.port = None
