from __future__ import annotations

import argparse
import json
import logging
import re
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

from .config import load_settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Reconcile AI plate/vehicle readings with the vehicle registry.")
    parser.add_argument(
        "--analysis",
        required=True,
        help="JSON file with OCR candidates, vehicle attributes and violation types.",
    )
    parser.add_argument("--file", default=None, help="Traffic photo to run specialized text detection on.")
    parser.add_argument(
        "--registry",
        default=None,
        help="JSON list of registry rows to use instead of the registry service.",
    )
    parser.add_argument(
        "--output-dir",
        default="output",
        help="Directory where result JSON files are saved (default: output).",
    )
    parser.add_argument(
        "--ocr-engine",
        default=None,
        choices=["auto", "paddle", "easy"],
        help="Override OCR engine for this run.",
    )
    parser.add_argument("--no-detector", action="store_true", help="Skip specialized text detection.")
    return parser


def _safe_stem(path: Path) -> str:
    stem = re.sub(r"[^A-Za-z0-9_.-]+", "_", path.stem).strip("._")
    return stem or "analysis"


def save_result_json(payload: dict[str, Any], input_file: str, output_dir: str) -> Path:
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    src = Path(input_file)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    filename = f"{_safe_stem(src)}_{timestamp}.json"
    out_path = out_dir / filename
    out_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    return out_path


def _read_json(path: str) -> Any:
    if not Path(path).exists():
        raise SystemExit(f"Input file does not exist: {path}")
    return json.loads(Path(path).read_text(encoding="utf-8"))


def main() -> None:
    from .reconcile import process_image
    from .registry import StaticRegistry, records_from_rows

    parser = build_parser()
    args = parser.parse_args()

    settings = load_settings()
    if args.ocr_engine:
        settings = replace(settings, ocr_engine=args.ocr_engine)
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    analysis = _read_json(args.analysis)
    registry = StaticRegistry(records_from_rows(_read_json(args.registry))) if args.registry else None
    if args.file and not Path(args.file).exists():
        raise SystemExit(f"Input file does not exist: {args.file}")

    result = process_image(
        analysis,
        file_path=args.file,
        settings=settings,
        registry=registry,
        use_detector=not args.no_detector,
    )
    payload = result.to_dict()
    out_path = save_result_json(payload, input_file=args.file or args.analysis, output_dir=args.output_dir)
    payload["output_file"] = str(out_path)
    print(json.dumps(payload, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
