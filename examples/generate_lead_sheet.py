#!/usr/bin/env python3
"""
Example: Generate practice pieces and export them to MIDI.

This runs the whole pipeline with the built-in rule-based provider, so no
API key is needed: request, generate, validate, cache, re-time and export.

Usage:
    python examples/generate_lead_sheet.py
    # Creates: examples/output/*.mid
"""

import asyncio
from pathlib import Path

from chuk_mcp_musicgen.compiler import fragment_to_midi
from chuk_mcp_musicgen.config import ProviderSettings
from chuk_mcp_musicgen.generation import GenerationEvent, GenerationOrchestrator
from chuk_mcp_musicgen.models import GenerationRequest
from chuk_mcp_musicgen.providers import create_provider


def print_event(event: GenerationEvent) -> None:
    suffix = " (cached)" if event.cached else ""
    print(f"    {event.state.value:<16} attempt {event.attempt}{suffix}")


async def main() -> None:
    """Generate a few pieces and save them as MIDI."""
    output_dir = Path(__file__).parent / "output"
    output_dir.mkdir(exist_ok=True)

    orchestrator = GenerationOrchestrator(create_provider(ProviderSettings()))
    orchestrator.add_listener(print_event)

    requests = [
        GenerationRequest(type="melody", key="C", difficulty="beginner", style="folk", length=4),
        GenerationRequest(type="chord_progression", key="Bb", style="jazz", tempo=140),
        GenerationRequest(type="lead_sheet", key="A_minor", style="classical", tempo=96),
    ]

    for request in requests:
        print(f"\nGenerating {request.content_type.value} in {request.key}...")
        content = await orchestrator.generate(request)
        summary = content.summary()
        print(f"  Chords: {' '.join(summary['chords']) or '-'}")
        print(f"  Notes: {summary['notes']}, {summary['duration_seconds']}s")

        path = output_dir / f"{request.content_type.value}_{request.key}.mid"
        fragment_to_midi(content.fragment).save(str(path))
        print(f"  Created: {path}")

    # A repeated request comes straight from the cache
    print("\nRepeating the first request...")
    await orchestrator.generate(requests[0])

    # Re-timing needs no new generation
    content = await orchestrator.generate(requests[2])
    slow = orchestrator.retime(content, 60)
    print(f"\nRe-timed to 60 BPM: {content.timeline.duration:.1f}s -> {slow.duration:.1f}s")

    print(f"\nCache: {orchestrator.cache.stats()}")
    print("\nDone! Open the MIDI files in your DAW to hear them.")


if __name__ == "__main__":
    asyncio.run(main())
