"""
Audio scheduler - plays a timeline into a sink in real time.

One asyncio task per playback session. Timing is absolute: each event is
due at ``base + event.time`` on the loop clock, so small sleep overruns do
not accumulate. Sleeps wait on a wake event, so transport commands (pause,
stop, seek) interrupt a long gap immediately.

Nothing is dispatched once stop or pause is observed: the cancellation flag
is checked right before every send. A sink that raises ends the session in
the stopped state; the error is logged, not re-raised by later commands.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from chuk_mcp_musicgen.compiler.timeline import PlaybackTimeline
from chuk_mcp_musicgen.playback.sinks import SynthesisSink

logger = logging.getLogger(__name__)


class TransportState(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"


class AudioScheduler:
    """
    Transport for one timeline.

    Args:
        timeline: Events to play
        sink: Receiver of synth events
        loop: Restart from the beginning when the end is reached
    """

    def __init__(self, timeline: PlaybackTimeline, sink: SynthesisSink, loop: bool = False) -> None:
        self.timeline = timeline
        self.sink = sink
        self.loop = loop
        self.state = TransportState.STOPPED
        self.dispatched = 0
        self.loops_completed = 0

        self._position = 0  # Index of the next event
        self._offset = 0.0  # Seconds into the timeline while not playing
        self._base = 0.0  # Loop time at which timeline offset 0 falls
        self._cancelled = False
        self._wake = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def position(self) -> int:
        return self._position

    @property
    def elapsed(self) -> float:
        """Current playback offset in seconds."""
        if self.state == TransportState.PLAYING:
            return asyncio.get_running_loop().time() - self._base
        return self._offset

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start, or resume after pause, from the current position."""
        if self.state == TransportState.PLAYING:
            return
        if self.state == TransportState.FINISHED:
            self._position, self._offset = 0, 0.0

        self._cancelled = False
        self._wake.clear()
        self._base = asyncio.get_running_loop().time() - self._offset
        self.state = TransportState.PLAYING
        self._task = asyncio.create_task(self._run())
        logger.debug(f"Playback started at {self._offset:.3f}s (event {self._position})")

    async def pause(self) -> None:
        """Freeze playback, keeping the position."""
        if self.state != TransportState.PLAYING:
            return
        self._offset = self.elapsed
        await self._halt()
        self.state = TransportState.PAUSED
        logger.debug(f"Playback paused at {self._offset:.3f}s")

    async def stop(self) -> None:
        """Stop playback and discard the remaining events."""
        await self._halt()
        self._position, self._offset = 0, 0.0
        self.state = TransportState.STOPPED
        logger.debug("Playback stopped")

    async def seek(self, offset: float) -> None:
        """Move to the first event at or after ``offset`` seconds."""
        offset = min(max(offset, 0.0), self.timeline.duration)
        self._position = self.timeline.index_at(offset)
        self._offset = offset
        if self.state == TransportState.PLAYING:
            self._base = asyncio.get_running_loop().time() - offset
            self._wake.set()
        elif self.state == TransportState.FINISHED:
            self.state = TransportState.STOPPED
        logger.debug(f"Seeked to {offset:.3f}s (event {self._position})")

    def set_loop(self, loop: bool) -> None:
        self.loop = loop

    async def wait(self) -> None:
        """Wait until the current session ends (finish, pause or stop)."""
        if self._task is not None:
            await self._task

    async def _halt(self) -> None:
        self._cancelled = True
        self._wake.set()
        if self._task is not None:
            await self._task
            self._task = None

    # ------------------------------------------------------------------
    # Dispatch loop
    # ------------------------------------------------------------------

    async def _sleep_until(self, deadline: float) -> None:
        """Sleep until a loop-clock deadline or a transport wake-up."""
        delay = deadline - asyncio.get_running_loop().time()
        if delay <= 0:
            return
        self._wake.clear()
        try:
            await asyncio.wait_for(self._wake.wait(), delay)
        except asyncio.TimeoutError:
            pass

    async def _run(self) -> None:
        clock = asyncio.get_running_loop()
        events = self.timeline.events

        while not self._cancelled:
            if self._position >= len(events):
                end = self._base + self.timeline.duration
                if clock.time() < end:
                    await self._sleep_until(end)
                    continue
                if not self.loop or not events:
                    self.state = TransportState.FINISHED
                    self._offset = self.timeline.duration
                    logger.debug("Playback finished")
                    return
                self.loops_completed += 1
                self._position = 0
                self._base = clock.time()
                continue

            item = events[self._position]
            due = self._base + item.time
            if clock.time() < due:
                await self._sleep_until(due)
                continue

            if self._cancelled:
                return
            try:
                self.sink.send(item.channel, item.event)
            except Exception:
                logger.exception(f"Sink failed at event {self._position}; stopping playback")
                self._position, self._offset = 0, 0.0
                self.state = TransportState.STOPPED
                return
            self.dispatched += 1
            self._position += 1
