#!/usr/bin/env python3
"""
CLI Script: Generate Story
==========================

Command-line tool for turning a pet photo into a themed story video.

Usage:
    python scripts/generate_story.py --image my_pet.jpg --theme fairy-tale
    python scripts/generate_story.py -i https://example.com/pet.jpg -t superhero --provider minimax
    python scripts/generate_story.py --list-themes
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from petflix import Config, GenerationOrchestrator, ProgressChannel, ThemeCatalog, setup_logging
from petflix.core.exceptions import ConfigurationError
from petflix.core.security import validate_api_key_format
from petflix.workflow import POLICY_ABORT, POLICY_STITCH_AVAILABLE


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Generate a five-scene story video from a pet photo",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s -i my_pet.jpg -t fairy-tale
  %(prog)s -i my_pet.jpg -t crime-drama --partial-policy stitch_available
  %(prog)s --list-themes
        """,
    )

    parser.add_argument(
        "-i", "--image",
        help="Pet photo (path, file:// URI or URL)",
    )
    parser.add_argument(
        "-t", "--theme",
        help="Theme id (see --list-themes)",
    )
    parser.add_argument(
        "--list-themes",
        action="store_true",
        help="List available themes and exit",
    )

    # Settings
    parser.add_argument(
        "--config",
        help="Path to config file",
    )
    parser.add_argument(
        "--provider",
        choices=["vidu", "minimax"],
        help="Generation provider (default: from config)",
    )
    parser.add_argument(
        "--partial-policy",
        choices=[POLICY_ABORT, POLICY_STITCH_AVAILABLE],
        help="What to do when a clip fails (default: from config)",
    )
    parser.add_argument(
        "--resolution",
        choices=["sd", "hd", "1080"],
        help="Output resolution of the stitched video",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def print_progress(state) -> None:
    clip = f" [clip {state.current_clip_index}/{state.total_clips}]" if state.current_clip_index else ""
    print(f"  {state.overall_progress:6.1%}  {state.stage.value:<12}{clip} {state.message}")


async def main(argv=None) -> int:
    """Main CLI entry point."""
    args = parse_args(argv)

    try:
        config = Config.load(args.config)
        if args.provider:
            # Credentials belong to the configured provider; reload them for the new one
            config.generation.provider = args.provider
            config.generation.api_key = None
            config.generation.group_id = None
            config.generation.validate()
            config.apply_env_credentials()
        if args.partial_policy:
            config.generation.partial_policy = args.partial_policy
        if args.resolution:
            config.render.resolution = args.resolution
            config.render.validate()
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}")
        return 1

    setup_logging("DEBUG" if args.verbose else config.logging.level, config.logging.file)

    gen = config.generation
    if gen.api_key and not validate_api_key_format(gen.api_key, "vda_" if gen.provider == "vidu" else ""):
        print(f"Warning: the {gen.provider} API key looks like a placeholder")

    if args.list_themes:
        catalog = ThemeCatalog(
            themes=config.get_themes(),
            subject_description=config.generation.subject_description,
        )
        for theme_id in catalog.list_themes():
            print(theme_id)
        return 0

    if not args.image or not args.theme:
        print("Error: --image and --theme are required")
        return 1

    print("=" * 50)
    print("PetFlix Story Generator")
    print("=" * 50)
    print(f"Image: {args.image}")
    print(f"Theme: {args.theme}")
    print(f"Provider: {config.generation.provider}")
    print()

    channel = ProgressChannel()
    channel.subscribe(print_progress)

    async with GenerationOrchestrator.from_config(config) as orchestrator:
        result = await orchestrator.generate(args.image, args.theme, channel)

    print("\n" + "-" * 50)
    if result.success:
        source = " (from cache)" if result.from_cache else ""
        print(f"Video URL{source}: {result.video_ref}")
        if result.failed_clip_indices:
            print(f"Skipped clips: {', '.join(map(str, result.failed_clip_indices))}")
    else:
        print(f"Failed ({result.error_kind.value}): {result.error_message}")
    print("=" * 50)

    return 0 if result.success else 1


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nCancelled")
        sys.exit(130)
