"""Export the ledger API's OpenAPI document, or check a committed copy is current."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from target_ledger.main import create_application

logger = logging.getLogger(__name__)

DEFAULT_DESTINATION = Path("docs/openapi.json")


def build_document() -> dict[str, Any]:
    return create_application().openapi()


def render(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2, sort_keys=True) + "\n"


def export(destination: Path) -> Path:
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(render(build_document()), encoding="utf-8")
    logger.info("OpenAPI document written to %s", destination)
    return destination


def is_current(destination: Path) -> bool:
    """True when the committed document matches the routes as they are now."""

    if not destination.exists():
        return False
    return destination.read_text(encoding="utf-8") == render(build_document())


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--output", type=Path, default=DEFAULT_DESTINATION)
    parser.add_argument("--check", action="store_true", help="exit non-zero if the document is stale")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    if args.check:
        if is_current(args.output):
            return 0
        logger.error("%s is out of date; rerun without --check", args.output)
        return 1
    export(args.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
