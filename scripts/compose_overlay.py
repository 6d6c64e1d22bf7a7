#!/usr/bin/env python3
"""
Compose Overlay - run the overlay pipeline on local files

Useful for calibrating extraction constants against real screenshots
without starting the API:

    python scripts/compose_overlay.py screenshot.png photo.heic -o story.png
    python scripts/compose_overlay.py screenshot.png photo.jpg --preset classic
    python scripts/compose_overlay.py screenshot.png photo.jpg --dump-masks ./masks

Tuning comes from the same environment variables / .env file as the API.
"""

import sys
import time
import base64
import asyncio
import logging
import argparse
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.config import settings  # noqa: E402
from src.core.exceptions import OverlayBaseException  # noqa: E402
from src.engines.overlay import decoder, extractor  # noqa: E402
from src.engines.overlay.presets import apply_preset, list_presets  # noqa: E402
from src.pipeline.runner import run_overlay_pipeline  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def read_payload(path: Path) -> str:
    return base64.b64encode(path.read_bytes()).decode("ascii")


def dump_masks(screenshot_payload: str, config, out_dir: Path) -> None:
    """Write the binarized route and stats masks at source size."""
    out_dir.mkdir(parents=True, exist_ok=True)
    screenshot = decoder.decode_image(screenshot_payload)
    extractor.binarize_route(screenshot, config.route).save(out_dir / "route_mask.png")
    extractor.binarize_stats(screenshot, config.stats).save(out_dir / "stats_mask.png")
    logger.info(f"Masks written to {out_dir}")


def compose(screenshot: Path, background: Path, output: Path, preset=None, masks_dir=None) -> bool:
    config = apply_preset(settings.pipeline_config(), preset)
    strava_image = read_payload(screenshot)
    base_image = read_payload(background)

    if masks_dir is not None:
        dump_masks(strava_image, config, masks_dir)

    start = time.time()
    result = asyncio.run(
        run_overlay_pipeline(
            strava_image,
            base_image,
            config,
            input_size_limit_bytes=settings.INPUT_SIZE_LIMIT_BYTES,
            timeout_seconds=settings.PROCESSING_TIMEOUT_SECONDS,
        )
    )

    _, body = decoder.split_data_uri(result.result_image)
    output.write_bytes(base64.b64decode(body))

    logger.info("=" * 60)
    logger.info(f"Wrote {output} ({result.metadata['canvas_size'][0]}x{result.metadata['canvas_size'][1]})")
    logger.info(f"Total time: {time.time() - start:.2f}s")
    for name, stage in result.metadata["stages"].items():
        logger.info(f"  {name}: {stage['duration_ms']}ms")
    logger.info("=" * 60)
    return True


def main():
    parser = argparse.ArgumentParser(
        description="Overlay an activity screenshot's route and stats onto a background photo"
    )
    parser.add_argument("screenshot", type=Path, help="Activity app screenshot")
    parser.add_argument("background", type=Path, help="Background photo (JPEG, PNG, WebP or HEIC)")
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=Path("overlay.png"),
        help="Where to write the PNG result"
    )
    parser.add_argument(
        "--preset",
        choices=list_presets(),
        default=None,
        help="Named tuning preset"
    )
    parser.add_argument(
        "--dump-masks",
        type=Path,
        default=None,
        metavar="DIR",
        help="Also write the intermediate binary masks to DIR"
    )

    args = parser.parse_args()

    try:
        success = compose(
            args.screenshot,
            args.background,
            args.output,
            preset=args.preset,
            masks_dir=args.dump_masks,
        )
    except OverlayBaseException as e:
        logger.error(f"Overlay failed at {e.stage or 'unknown'}: {e.message}")
        success = False

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
