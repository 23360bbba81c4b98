"""GestureTree CLI - the main entry point.

Usage:
    gesture-tree run            Webcam + window: open hand grows the tree
    gesture-tree serve          Stream the tree to browsers over WebSocket
    gesture-tree record         Record landmark data from the camera
    gesture-tree replay         Replay a recording through the coordinator
    gesture-tree benchmark      Time classification and animation ticks
    gesture-tree show-config    Print the effective configuration as YAML
"""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Optional

import typer
import yaml

from gesture_tree.config import AppConfig, ConfigError, load_config

app = typer.Typer(
    name="gesture-tree",
    help="🎄 Grow a particle tree with an open hand, clear it with a fist.",
    add_completion=False,
)

logger = logging.getLogger("gesture_tree.cli")


def _setup(config_path: Optional[str], log_level: str) -> AppConfig:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return load_config(config_path)
    except ConfigError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)


def _open_camera(index: int, width: int, height: int):
    import cv2

    cap = cv2.VideoCapture(index)
    if not cap.isOpened():
        typer.echo(f"❌ Could not open camera {index}", err=True)
        raise typer.Exit(1)
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    return cap


def _make_detector(config: AppConfig):
    from gesture_tree.detector import HandDetector

    try:
        return HandDetector(
            model_complexity=config.detector.model_complexity,
            min_detection_confidence=config.detector.min_detection_confidence,
            min_tracking_confidence=config.detector.min_tracking_confidence,
        )
    except ImportError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)


@app.command()
def run(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    camera: Optional[int] = typer.Option(None, help="Camera device index"),
    show_camera: Optional[bool] = typer.Option(None, "--show-camera/--hide-camera", help="Draw the camera image under the particles"),
    log_level: str = typer.Option("info", help="Log level"),
):
    """Open the camera and a window; gestures drive the particle tree."""
    import cv2
    from gesture_tree.canvas import ImageSurface
    from gesture_tree.pipeline import GestureEvent, TreeCoordinator

    cfg = _setup(config, log_level)
    display = cfg.display
    if camera is not None:
        display.camera_index = camera
    if show_camera is not None:
        display.show_camera = show_camera

    cap = _open_camera(display.camera_index, display.width, display.height)
    detector = _make_detector(cfg)
    coordinator = TreeCoordinator.from_config(cfg)
    surface = ImageSurface(display.width, display.height)

    def on_gesture(event: GestureEvent):
        if event.accepted:
            typer.echo(f"   🤚 {event.label.value} → {event.request.value}")

    coordinator.on_gesture(on_gesture)

    typer.echo("🎄 Open your hand to grow the tree, close it to clear. Press 'q' to quit.")
    frame_interval = 1.0 / display.fps
    window = "GestureTree"

    try:
        while True:
            t0 = time.monotonic()
            ret, frame = cap.read()
            if ret:
                if display.mirror:
                    frame = cv2.flip(frame, 1)
                frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
                with coordinator.profiler.stage("detection"):
                    landmarks = detector.detect(frame_rgb)
                coordinator.on_landmarks(landmarks)

            coordinator.tick(surface)

            if ret and display.show_camera:
                shown = surface.composite_over(frame)
            else:
                shown = surface.image
            cv2.imshow(window, shown)

            wait_ms = max(1, int((frame_interval - (time.monotonic() - t0)) * 1000))
            if cv2.waitKey(wait_ms) & 0xFF == ord("q"):
                break
    except KeyboardInterrupt:
        pass
    finally:
        cap.release()
        detector.close()
        cv2.destroyAllWindows()

    stats = coordinator.stats
    typer.echo(f"\nProcessed {stats.total_frames} frames, {stats.total_transitions} transitions")


@app.command()
def serve(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Port"),
    no_camera: bool = typer.Option(False, "--no-camera", help="Do not open the camera (use /api/gesture)"),
    log_level: str = typer.Option("info", help="Log level"),
):
    """Start the WebSocket streaming server."""
    import uvicorn
    from gesture_tree.server import app as fastapi_app, state

    cfg = _setup(config, log_level)
    state.configure(cfg)
    state.camera_enabled = not no_camera

    host = host or cfg.server.host
    port = port or cfg.server.port
    typer.echo(f"🚀 Starting GestureTree server on {host}:{port}")
    typer.echo(f"   Open http://{host}:{port} in a browser")
    uvicorn.run(fastapi_app, host=host, port=port, log_level=log_level)


@app.command()
def record(
    output: str = typer.Option("recording.json", "-o", help="Output file path"),
    duration: float = typer.Option(0, help="Recording duration in seconds (0 = until Ctrl+C)"),
    compact: bool = typer.Option(False, help="Save in compact .npz format"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    camera: Optional[int] = typer.Option(None, help="Camera device index"),
):
    """Record hand landmarks (and their labels) from the camera."""
    import cv2
    from gesture_tree.classifier import GestureClassifier
    from gesture_tree.recorder import LandmarkRecorder

    cfg = _setup(config, "warning")
    index = cfg.display.camera_index if camera is None else camera
    cap = _open_camera(index, cfg.display.width, cfg.display.height)
    detector = _make_detector(cfg)
    classifier = GestureClassifier(rules=cfg.classifier.rules())
    recorder = LandmarkRecorder()

    typer.echo(f"🎥 Recording from camera {index}... press Ctrl+C to stop")
    recorder.start()
    start = time.monotonic()

    try:
        while True:
            ret, frame = cap.read()
            if not ret:
                continue

            if cfg.display.mirror:
                frame = cv2.flip(frame, 1)
            landmarks = detector.detect(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
            label = classifier.classify(landmarks).value if landmarks is not None else None
            recorder.add_frame(landmarks, label)

            if recorder.frame_count % 30 == 0:
                elapsed = time.monotonic() - start
                typer.echo(f"\r   Frames: {recorder.frame_count} | {elapsed:.1f}s | {label or '-'}     ", nl=False)

            if duration > 0 and (time.monotonic() - start) >= duration:
                break
    except KeyboardInterrupt:
        pass
    finally:
        recorder.stop()
        cap.release()
        detector.close()

    typer.echo(f"\n\n📼 Recorded {recorder.frame_count} frames ({recorder.duration:.1f}s)")
    path = recorder.save_compact(output) if compact else recorder.save(output)
    typer.echo(f"💾 Saved to: {path}")


@app.command()
def replay(
    recording: str = typer.Argument(..., help="Path to recording file"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    video: Optional[str] = typer.Option(None, help="Write the rendered tree to this .mp4 file"),
    fps: int = typer.Option(30, help="Ticks per recorded second"),
    seed: Optional[int] = typer.Option(None, help="Random seed for particle generation"),
):
    """Replay a recording through the classifier and particle field, headless."""
    import cv2
    from gesture_tree.canvas import ImageSurface
    from gesture_tree.pipeline import GestureEvent, TreeCoordinator
    from gesture_tree.recorder import LandmarkPlayer

    path = Path(recording)
    if not path.exists():
        typer.echo(f"❌ Recording not found: {recording}", err=True)
        raise typer.Exit(1)

    cfg = _setup(config, "warning")
    player = LandmarkPlayer.load(path)
    typer.echo(f"▶️  Replaying {path.name} ({player.frame_count} frames, {player.duration:.1f}s)")

    coordinator = TreeCoordinator.from_config(cfg, seed=seed)

    def on_gesture(event: GestureEvent):
        action = event.request.value if event.request else event.decision.value
        typer.echo(f"   {event.timestamp:7.2f}s  {event.label.value:>6} → {action}")

    coordinator.on_gesture(on_gesture)

    surface = ImageSurface(cfg.display.width, cfg.display.height)
    writer = None
    if video:
        fourcc = cv2.VideoWriter_fourcc(*"mp4v")
        writer = cv2.VideoWriter(video, fourcc, fps, (surface.width, surface.height))

    def write_frame(count: int):
        writer.write(surface.image)

    try:
        coordinator.replay(
            player.play(),
            tick_rate=fps,
            surface=surface if writer else None,
            on_tick=write_frame if writer else None,
        )
    finally:
        if writer:
            writer.release()

    stats = coordinator.stats
    recorded = player.recorded_transitions()
    typer.echo(f"\n✅ Replay complete. {stats.total_transitions} transitions, {stats.particles} particles left.")
    if recorded:
        typer.echo(f"   Recorded labels changed {len(recorded)} times during the session.")
    if video:
        typer.echo(f"🎞  Video written to {video}")


@app.command()
def benchmark(
    iterations: int = typer.Option(1000, help="Number of iterations"),
    width: int = typer.Option(1280, help="Render width"),
    height: int = typer.Option(720, help="Render height"),
):
    """Time classification, physics ticks and rendering."""
    import numpy as np
    from gesture_tree.canvas import ImageSurface
    from gesture_tree.classifier import GestureClassifier
    from gesture_tree.particles import ParticleField
    from gesture_tree.profiler import PipelineProfiler

    typer.echo(f"⚡ Running benchmark: {iterations} iterations at {width}x{height}")

    rng = np.random.default_rng(42)
    classifier = GestureClassifier()
    field = ParticleField(width, height, seed=42)
    surface = ImageSurface(width, height)
    profiler = PipelineProfiler()
    field.spawn()

    for i in range(iterations):
        landmarks = rng.random((21, 3)).astype(np.float32)
        with profiler.stage("classification"):
            classifier.classify(landmarks)
        with profiler.stage("advance"):
            field.advance()
        with profiler.stage("render"):
            field.render(surface)
        if i % 200 == 199:
            field.spawn()

    typer.echo(f"\n📈 Stage breakdown ({field.count} particles):")
    for name, stats in profiler.summary().items():
        typer.echo(f"   {name:16s} avg={stats['avg_ms']:.3f}ms  p95={stats['p95_ms']:.3f}ms")
    for loop, stats in profiler.loop_summary().items():
        typer.echo(f"   {loop} loop: {stats['avg_ms']:.3f}ms of {stats['budget_ms']:.1f}ms budget")


@app.command("show-config")
def show_config(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """Print the effective configuration."""
    cfg = _setup(config, "warning")
    yaml.safe_dump(cfg.to_dict(), sys.stdout, default_flow_style=False, sort_keys=False)


def main():
    app()


if __name__ == "__main__":
    main()
