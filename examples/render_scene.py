#!/usr/bin/env python3
"""Render a scene to a PNG file.

Renders the Cornell box (default), the single-sphere scene, or a scene
description loaded from a JSON file, with progressive refinement.

Usage:
    python -m examples.render_scene [options]

Options:
    --scene NAME|PATH   "cornell", "sphere" or a JSON scene file (default: cornell)
    --width WIDTH       Image width in pixels (default: 512)
    --height HEIGHT     Image height in pixels (default: 512)
    --samples SAMPLES   Number of samples per pixel (default: 100)
    --max-depth DEPTH   Maximum surface interactions per path (default: 16)
    --rr-start DEPTH    Depth at which Russian roulette starts (default: 5)
    --no-rr             Disable Russian roulette
    --estimator MODE    "nee" or "brdf" (default: nee)
    --seed SEED         Sampling seed (default: 0)
    --exposure SCALE    Linear exposure scale (default: 1.0)
    --gamma GAMMA       Display gamma (default: 2.2)
    --tone-map METHOD   none, clamp, reinhard or exposure (default: reinhard)
    --output OUTPUT     Output file path (default: render.png)
    --batch-size SIZE   Samples per progress update (default: 10)
    --cpu               Force the CPU backend
    --quiet             Suppress progress output

Example:
    python -m examples.render_scene --width 256 --height 256 --samples 50
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path

import taichi as ti

logger = logging.getLogger("render")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a scene with the path tracer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--scene", default="cornell", help="cornell, sphere or a JSON file")
    parser.add_argument("--width", type=int, default=512, help="Image width in pixels")
    parser.add_argument("--height", type=int, default=512, help="Image height in pixels")
    parser.add_argument("--samples", type=int, default=100, help="Samples per pixel")
    parser.add_argument("--max-depth", type=int, default=16, help="Maximum path depth")
    parser.add_argument("--rr-start", type=int, default=5, help="Russian roulette start depth")
    parser.add_argument("--no-rr", action="store_true", help="Disable Russian roulette")
    parser.add_argument("--estimator", choices=("nee", "brdf"), default="nee")
    parser.add_argument("--seed", type=int, default=0, help="Sampling seed")
    parser.add_argument("--exposure", type=float, default=1.0, help="Linear exposure scale")
    parser.add_argument("--gamma", type=float, default=2.2, help="Display gamma")
    parser.add_argument(
        "--tone-map",
        choices=("none", "clamp", "reinhard", "exposure"),
        default="reinhard",
    )
    parser.add_argument("--output", type=str, default="render.png", help="Output PNG path")
    parser.add_argument("--batch-size", type=int, default=10, help="Samples per update")
    parser.add_argument("--cpu", action="store_true", help="Force the CPU backend")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args(argv)


def load_scene(name: str):
    """Build the scene named on the command line."""
    # Lazy imports to allow Taichi initialization first
    from pathtracer.scene import (
        create_cornell_box_scene,
        create_single_sphere_scene,
        scene_from_dict,
    )

    if name == "cornell":
        return create_cornell_box_scene()
    if name == "sphere":
        return create_single_sphere_scene()
    with open(name, encoding="utf-8") as f:
        return scene_from_dict(json.load(f))


def render(args: argparse.Namespace) -> Path:
    """Render the scene described by args and save it.

    Returns:
        Path to the saved image file.
    """
    from pathtracer.core.config import RenderConfig
    from pathtracer.core.progressive import ProgressiveRenderer

    config = RenderConfig(
        width=args.width,
        height=args.height,
        samples_per_pixel=args.samples,
        max_depth=args.max_depth,
        rr_start_depth=args.rr_start,
        russian_roulette=not args.no_rr,
        seed=args.seed,
        estimator=args.estimator,
        exposure=args.exposure,
        gamma=args.gamma,
        tone_map=args.tone_map,
    ).validate()

    logger.info("Loading scene %r (%dx%d)", args.scene, args.width, args.height)
    scene = load_scene(args.scene)
    renderer = ProgressiveRenderer(scene, args.width, args.height, config)

    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        if args.quiet:
            return
        elapsed = time.time() - start_time
        samples_per_sec = current / elapsed if elapsed > 0 else 0
        print(
            f"\r  Progress: {current}/{target} samples "
            f"({current / target * 100:.1f}%) - {samples_per_sec:.1f} spp/s",
            end="",
            flush=True,
        )

    renderer.render(
        num_samples=config.samples_per_pixel,
        batch_size=args.batch_size,
        callback=progress_callback,
    )
    if not args.quiet:
        print()

    output_file = Path(args.output)
    renderer.save_image(str(output_file))
    logger.info("Saved %s in %.2fs", output_file.absolute(), time.time() - start_time)
    return output_file


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cpu:
        ti.init(arch=ti.cpu)
    else:
        # Falls back to CPU when no GPU backend is available
        ti.init(arch=ti.gpu)

    try:
        render(args)
    except (OSError, ValueError, RuntimeError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
