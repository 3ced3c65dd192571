from __future__ import annotations
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import typer

from .annotator import Annotator
from .errors import FrameLabelError
from .media import AnnotationWriter, load_frame_sources
from .tracker import load_tracker_config


def parse_box(text: str) -> Tuple[int, int, int, int]:
    """'x,y,w,h' (commas or spaces) -> pixel rectangle."""
    parts = text.replace(",", " ").split()
    if len(parts) != 4:
        raise typer.BadParameter(f"expected x,y,w,h, got {text!r}")
    try:
        x, y, w, h = (int(round(float(p))) for p in parts)
    except ValueError as exc:
        raise typer.BadParameter(f"non-numeric box {text!r}") from exc
    if w <= 0 or h <= 0:
        raise typer.BadParameter(f"box needs a positive size, got {text!r}")
    return x, y, w, h


def default_output(source: Path) -> Path:
    if source.is_dir():
        return source.parent / f"{source.name}.annotations"
    return source.with_suffix(".annotations")


app = typer.Typer(add_help_option=True)


@app.command()
def main(
    source: Path = typer.Argument(..., help="Video file or directory of frame images"),
    box: List[str] = typer.Option(..., "--box", help="Seed box in pixels as x,y,w,h (repeatable)"),
    label: Optional[List[str]] = typer.Option(None, "--label", help="Label per --box; presets cycle when omitted"),
    frame: int = typer.Option(0, "--frame", help="Index of the frame the seed boxes are drawn on"),
    out: Optional[Path] = typer.Option(None, "--out", help="Annotation file (defaults to <source>.annotations)"),
    step: int = typer.Option(1, "--step", min=1, help="Keep every n-th frame of the source"),
    max_frames: Optional[int] = typer.Option(None, "--max-frames", min=1, help="Stop reading after this many frames"),
    config: Optional[Path] = typer.Option(None, "--config", help="Tracker YAML overriding the packaged tracker.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log per-frame progress"),
):
    """Draw seed boxes on one frame and track them to the end of the sequence."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    rects = [parse_box(b) for b in box]
    labels = list(label or [])

    try:
        sources = load_frame_sources(source, step=step, max_frames=max_frames)
    except FrameLabelError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    if not sources:
        typer.echo(f"No frames found in {source}", err=True)
        raise typer.Exit(code=1)

    annotator = Annotator.import_frames(sources, config=load_tracker_config(config))
    if not 0 <= frame < annotator.frame_count:
        typer.echo(f"--frame {frame} is outside 0..{annotator.frame_count - 1}", err=True)
        raise typer.Exit(code=1)
    annotator.seek(frame)

    preset_names = {p.label for p in annotator.presets}
    try:
        for i, rect in enumerate(rects):
            preset = annotator.presets[i % len(annotator.presets)] if annotator.presets else None
            name = labels[i] if i < len(labels) else (labels[-1] if labels else None)
            if name is None and preset is not None:
                name = preset.label
            color = None if name in preset_names else (preset.color if preset else (255, 0, 0, 255))
            annotator.choose_label(name, color)
            annotator.draw_box(rect)
        width, height = annotator.store.frame_size(frame)
        annotator.select_multi((0, 0, width, height))

        started = annotator.start_tracking(frame, wait=True)
    except KeyboardInterrupt:
        annotator.stop_tracking()
        typer.echo("Tracking interrupted; keeping frames tracked so far.")
        started = True
    except FrameLabelError as exc:
        typer.echo(f"Cannot track: {exc}", err=True)
        raise typer.Exit(code=1)
    if annotator.session.error is not None:
        typer.echo(f"Tracking failed: {annotator.session.error}", err=True)
        raise typer.Exit(code=1)
    if not started:
        typer.echo("Nothing to track after the seed frame.")

    out_path = out if out is not None else default_output(source)
    writer = AnnotationWriter(out_path)
    writer.write_store(annotator.store)
    writer.close()
    typer.echo(f"Saved {writer.count} annotation(s) for {annotator.frame_count} frame(s) to {out_path}")


if __name__ == "__main__":
    app()
