"""WebSocket streaming server for the particle tree.

Captures from the server's webcam, classifies the hand, and streams both
gesture events and rendered particle frames to every connected browser.
The page at `/` draws the streamed discs on an HTML canvas.

Two independent asyncio tasks share the coordinator:
- `capture_loop` reads the camera and feeds `TreeCoordinator.on_landmarks`
- `animation_loop` calls `TreeCoordinator.tick` and broadcasts the frame

Usage:
    gesture-tree serve
    # or
    uvicorn gesture_tree.server:app --host 0.0.0.0 --port 8765
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Optional

try:
    from fastapi import FastAPI, WebSocket, WebSocketDisconnect
    from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse
    _HAS_FASTAPI = True
except ImportError:
    _HAS_FASTAPI = False

if not _HAS_FASTAPI:
    raise ImportError("FastAPI required. Install with: pip install fastapi uvicorn")

import cv2

from gesture_tree import __version__
from gesture_tree.canvas import CommandSurface
from gesture_tree.config import AppConfig
from gesture_tree.detector import HandDetector
from gesture_tree.gestures import GestureLabel
from gesture_tree.metrics import MetricsCollector
from gesture_tree.pipeline import GestureEvent, TreeCoordinator

logger = logging.getLogger("gesture_tree.server")

app = FastAPI(title="GestureTree", version=__version__)

WEB_DIR = Path(__file__).parent / "web"


# --- State ---

class ServerState:
    """Everything the server owns; configured at startup."""

    def __init__(self, config: Optional[AppConfig] = None):
        self.configure(config or AppConfig())
        self.clients: set[WebSocket] = set()
        self.capture: Optional[object] = None
        self.detector: Optional[HandDetector] = None
        self.running = False
        self.camera_enabled = True
        self.fps = 0.0
        self.last_gesture: Optional[dict] = None
        self.outbox: list[dict] = []

    def configure(self, config: AppConfig):
        self.config = config
        self.metrics = MetricsCollector()
        self.coordinator = TreeCoordinator.from_config(config, metrics=self.metrics)
        self.coordinator.on_gesture(self._queue_event)
        self.surface = CommandSurface(config.display.width, config.display.height)

    def _queue_event(self, event: GestureEvent):
        message = event.to_dict()
        self.last_gesture = message
        self.outbox.append(message)


state = ServerState()


# --- Web client ---

@app.get("/")
async def index():
    index_path = WEB_DIR / "index.html"
    if index_path.exists():
        return FileResponse(index_path)
    return HTMLResponse("<h1>GestureTree Server</h1><p>Web client not found.</p>")


# --- API endpoints ---

@app.get("/api/status")
async def api_status():
    stats = state.coordinator.stats
    return {
        "running": state.running,
        "clients": len(state.clients),
        "fps": round(state.fps, 1),
        "state": stats.state,
        "particles": stats.particles,
        "total_frames": stats.total_frames,
        "total_transitions": stats.total_transitions,
        "last_gesture": state.last_gesture,
        "profiler": stats.profiler_summary,
        "loops": state.coordinator.profiler.loop_summary(),
    }


@app.get("/api/config")
async def api_config():
    return state.config.to_dict()


@app.post("/api/gesture/{label}")
async def api_gesture(label: str):
    """Inject a gesture without a camera (demo and testing aid)."""
    try:
        gesture = GestureLabel(label)
    except ValueError:
        return PlainTextResponse(f"Unknown gesture: {label}", status_code=400)
    event = state.coordinator.handle_label(gesture)
    return event.to_dict()


@app.get("/metrics")
async def metrics():
    state.metrics.set_connections(len(state.clients))
    return PlainTextResponse(
        state.metrics.render(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()

    try:
        await ws.send_json({
            "type": "connected",
            "width": state.surface.width,
            "height": state.surface.height,
            "state": state.coordinator.state.value,
        })
        state.clients.add(ws)
        logger.info("Client connected (%d total)", len(state.clients))

        while True:
            try:
                msg = await asyncio.wait_for(ws.receive_text(), timeout=30)
            except asyncio.TimeoutError:
                await ws.send_json({"type": "ping"})
                continue
            try:
                await handle_client_message(ws, json.loads(msg))
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                logger.warning("Ignoring bad client message: %s", e)
                await ws.send_json({"type": "error", "message": "bad message"})
    except WebSocketDisconnect:
        pass
    finally:
        state.clients.discard(ws)
        logger.info("Client disconnected (%d total)", len(state.clients))


async def handle_client_message(ws: WebSocket, data: dict):
    if data.get("type") == "ping":
        await ws.send_json({"type": "pong", "server_time": time.time()})
    elif data.get("type") == "resize":
        width, height = int(data["width"]), int(data["height"])
        if width <= 0 or height <= 0:
            raise ValueError(f"bad size {width}x{height}")
        state.coordinator.resize(width, height)
        state.surface = CommandSurface(width, height)


async def broadcast(message: dict):
    """Send a message to every client, dropping the ones that fail."""
    if not state.clients:
        return
    dead = set()
    payload = json.dumps(message)
    for ws in state.clients:
        try:
            await ws.send_text(payload)
        except Exception:
            dead.add(ws)
    state.clients -= dead


# --- Loops ---

async def capture_loop():
    """Read camera frames and feed the coordinator."""
    cfg = state.config
    try:
        state.detector = HandDetector(
            model_complexity=cfg.detector.model_complexity,
            min_detection_confidence=cfg.detector.min_detection_confidence,
            min_tracking_confidence=cfg.detector.min_tracking_confidence,
        )
    except ImportError as e:
        logger.error("Hand detector unavailable: %s", e)
        return

    state.capture = cv2.VideoCapture(cfg.server.camera_index)
    if not state.capture.isOpened():
        logger.error("Could not open camera %d", cfg.server.camera_index)
        state.detector.close()
        return

    logger.info("Camera capture started")
    try:
        while state.running:
            ret, frame = state.capture.read()
            if not ret:
                await asyncio.sleep(0.01)
                continue

            frame_rgb = cv2.cvtColor(cv2.flip(frame, 1), cv2.COLOR_BGR2RGB)
            with state.coordinator.profiler.stage("detection"):
                landmarks = state.detector.detect(frame_rgb)
            state.coordinator.on_landmarks(landmarks)

            await asyncio.sleep(0.001)
    finally:
        state.capture.release()
        state.detector.close()
        logger.info("Camera capture stopped")


async def animation_loop():
    """Tick the particle field at a fixed rate and stream each frame."""
    interval = 1.0 / state.config.server.fps
    frame_times: list[float] = []

    while state.running:
        t_start = time.monotonic()

        state.coordinator.tick(state.surface)

        pending, state.outbox = state.outbox, []
        for message in pending:
            await broadcast(message)
        await broadcast(state.surface.to_message())

        elapsed = time.monotonic() - t_start
        frame_times.append(elapsed)
        frame_times = frame_times[-30:]
        await asyncio.sleep(max(0.0, interval - elapsed))
        state.fps = 1.0 / max(interval, sum(frame_times) / len(frame_times))


@app.on_event("startup")
async def startup():
    state.running = True
    asyncio.create_task(animation_loop())
    if state.camera_enabled:
        asyncio.create_task(capture_loop())


@app.on_event("shutdown")
async def shutdown():
    state.running = False
