#!/usr/bin/env python3
"""
Simple Generation Example
=========================

Generates a single clip with Vidu and lays it on a one-clip Shotstack
timeline, without the cache, budget or chaining of a full story run.
"""

import asyncio
import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from petflix.api import get_task_client, ShotstackClient
from petflix.context import ThemeCatalog


async def main():
    """Single clip example."""

    # Check for API keys
    if not os.getenv("VIDU_API_KEY") or not os.getenv("SHOTSTACK_API_KEY"):
        print("Please set VIDU_API_KEY and SHOTSTACK_API_KEY environment variables")
        return

    if len(sys.argv) < 2:
        print("Usage: python examples/simple_generation.py <pet photo>")
        return

    image = sys.argv[1]
    scene = ThemeCatalog().get_scenes("superhero")[1]

    print("=== Simple Clip Generation ===")
    print(f"Image: {image}")
    print(f"Prompt: {scene.prompt_text}")

    async with get_task_client("vidu", api_key=os.getenv("VIDU_API_KEY")) as client:
        task_id = await client.create_task(scene.prompt_text, image)
        print(f"\nTask: {task_id}")

        clip = await client.poll_task(
            task_id,
            on_progress=lambda p: print(f"  polling... {p:.0%}"),
        )
        print(f"Clip URL: {clip.video_ref} ({clip.duration_seconds:.1f}s, {clip.duration.kind.value})")

    async with ShotstackClient(api_key=os.getenv("SHOTSTACK_API_KEY")) as stitcher:
        print("\nRendering...")
        url = await stitcher.stitch([clip], resolution="sd")
        print(f"Rendered: {url}")


if __name__ == "__main__":
    asyncio.run(main())
