"""
cli.py — Render a template JSON file to a PNG from the command line.

    cardrender template.json -o card.png -i name="Fire Drake" -i rarity=rare
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from pydantic import ValidationError

from cardrender.config import get_settings
from cardrender.dsl.schema import Template
from cardrender.engine.compositor import render_template_sync
from cardrender.exceptions import CardRenderError
from cardrender.renderer.fonts import FontRegistry
from cardrender.renderer.images import PillowImageLoader
from cardrender.renderer.pillow_backend import PillowBackend

logger = logging.getLogger(__name__)


def parse_input(item: str) -> tuple[str, Any]:
    """Parse ``name=value``; values that are valid JSON are decoded."""
    name, separator, raw = item.partition("=")
    if not separator or not name:
        raise argparse.ArgumentTypeError(f"Input must look like name=value, got '{item}'")
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return name.strip(), value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cardrender", description="Render a card template to an image")
    parser.add_argument("template", type=Path, help="Template JSON file")
    parser.add_argument("-o", "--output", type=Path, default=Path("card.png"), help="Output image path")
    parser.add_argument(
        "-i", "--input", dest="inputs", action="append", type=parse_input, default=[],
        metavar="NAME=VALUE", help="Input value (repeatable)",
    )
    parser.add_argument("--inputs-file", type=Path, help="JSON file with input values")
    parser.add_argument("--font-dir", help="Directory searched for fonts by family name")
    parser.add_argument("--log-level", help="Logging level (default from CARDRENDER_LOG_LEVEL)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()

    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    inputs: dict[str, Any] = {}
    try:
        if args.inputs_file:
            inputs.update(json.loads(args.inputs_file.read_text()))
        inputs.update(dict(args.inputs))
        template = Template.from_json(args.template.read_bytes())
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Could not load template: {e}")
        return 1

    fonts = FontRegistry(font_dir=args.font_dir, base_dir=args.template.parent)
    try:
        image = render_template_sync(
            template,
            inputs,
            backend=PillowBackend(fonts),
            image_loader=PillowImageLoader(base_dir=args.template.parent),
            font_registry=fonts,
        )
        image.save(args.output)
    except (CardRenderError, OSError) as e:
        logger.error(f"Render failed: {e}")
        return 1

    logger.info(f"Wrote {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
