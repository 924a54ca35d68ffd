"""Headless entry point: script in, scene breakdown and storyboard frames out."""
from __future__ import annotations

import argparse
import base64
import json
import logging
import sys
from pathlib import Path

from .config import CONFIG_DIR, IMAGE_SIZES


def _setup_logging() -> None:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(CONFIG_DIR / "sketchflow.log"),
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _write_frames(scenes, output_dir: Path) -> int:
    written = 0
    for idx, scene in enumerate(scenes):
        if not scene.storyboard_image_url:
            continue
        payload = scene.storyboard_image_url.split(",", 1)[-1]
        path = output_dir / f"scene_{idx:03d}.png"
        path.write_bytes(base64.b64decode(payload))
        written += 1
    return written


def run_headless(
    script_path: Path,
    output_dir: Path | None = None,
    size: str | None = None,
    storyboards: bool = False,
) -> int:
    """Analyze a script file (and optionally draw its storyboards), printing progress."""
    from .config import Config
    from .studio import Studio

    config = Config.load()
    if not config.gemini_api_key:
        print("⚠  No GEMINI_API_KEY found; set it or save one in ~/.sketchflow/config.json.")
        return 1

    def progress(msg: str) -> None:
        print(msg)

    studio = Studio(config, progress_cb=progress)
    if size:
        studio.set_image_size(size)

    studio.load_script_file(script_path)
    project = studio.submit_script()
    if studio.error or project is None:
        print(f"Error: {studio.error or 'script is empty'}")
        return 1

    if storyboards:
        studio.generate_all_storyboards()

    out = Path(output_dir or config.output_dir)
    out.mkdir(parents=True, exist_ok=True)
    (out / "scenes.json").write_text(
        json.dumps([s.to_dict() for s in studio.project.scenes], indent=2),
        encoding="utf-8",
    )
    frames = _write_frames(studio.project.scenes, out)
    print(f"\n✅ {len(studio.project.scenes)} scenes, {frames} frames written to {out}")

    if studio.error:
        print(f"Error: {studio.error}")
        return 1
    return 0


def main(argv: list[str] | None = None) -> None:
    _setup_logging()

    parser = argparse.ArgumentParser(description="SketchFlow: script to pencil-sketch storyboard")
    parser.add_argument("--script", required=True, type=Path, help="Plain-text script file")
    parser.add_argument("--output", type=Path, default=None, help="Output directory")
    parser.add_argument("--size", choices=IMAGE_SIZES, default=None, help="Storyboard resolution tier")
    parser.add_argument("--storyboards", action="store_true", help="Draw every scene's storyboard")
    args = parser.parse_args(argv)

    if not args.script.exists():
        print(f"Script not found: {args.script}")
        sys.exit(1)

    code = run_headless(args.script, args.output, args.size, args.storyboards)
    sys.exit(code)


if __name__ == "__main__":
    main()
