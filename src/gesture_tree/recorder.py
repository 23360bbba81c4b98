"""Landmark session recording and replay.

Record a camera session once, then replay it through the coordinator:
- reproducible tests without a camera
- headless runs on CI machines
- offline rendering of a session to video
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Iterator, Optional

import numpy as np

from gesture_tree.gestures import NUM_LANDMARKS


@dataclass
class RecordedFrame:
    """A single detector frame."""
    timestamp: float  # seconds from recording start
    landmarks: Optional[list[list[float]]]  # (21, 3) as nested lists, None = no hand
    label: Optional[str] = None  # classified label at record time


class LandmarkRecorder:
    """Collects per-frame landmarks and labels.

    Usage:
        recorder = LandmarkRecorder()
        recorder.start()
        recorder.add_frame(landmarks, "open")
        recorder.save("session.json")
    """

    def __init__(self):
        self._frames: list[RecordedFrame] = []
        self._start_time: Optional[float] = None
        self._recording = False

    def start(self):
        self._frames = []
        self._start_time = time.monotonic()
        self._recording = True

    def stop(self) -> int:
        """Stop recording. Returns number of frames captured."""
        self._recording = False
        return len(self._frames)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        if not self._frames:
            return 0.0
        return self._frames[-1].timestamp

    def add_frame(
        self,
        landmarks: Optional[np.ndarray],
        label: Optional[str] = None,
        timestamp: Optional[float] = None,
    ):
        """Append a frame. `timestamp` defaults to time since `start()`."""
        if not self._recording:
            return

        if timestamp is None:
            timestamp = time.monotonic() - self._start_time

        self._frames.append(RecordedFrame(
            timestamp=float(timestamp),
            landmarks=np.asarray(landmarks, dtype=np.float32).tolist() if landmarks is not None else None,
            label=label,
        ))

    def save(self, path: str | Path) -> Path:
        """Save as JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "version": 1,
            "frame_count": len(self._frames),
            "duration": self.duration,
            "frames": [asdict(f) for f in self._frames],
        }
        with open(path, "w") as f:
            json.dump(data, f)
        return path

    def save_compact(self, path: str | Path) -> Path:
        """Save as compressed numpy archive (.npz)."""
        path = Path(path).with_suffix(".npz")
        path.parent.mkdir(parents=True, exist_ok=True)

        n = len(self._frames)
        timestamps = np.array([f.timestamp for f in self._frames], dtype=np.float64)
        present = np.array([f.landmarks is not None for f in self._frames], dtype=bool)
        hands = np.zeros((n, NUM_LANDMARKS, 3), dtype=np.float32)
        for i, f in enumerate(self._frames):
            if f.landmarks is not None:
                arr = np.asarray(f.landmarks, dtype=np.float32)
                hands[i, : arr.shape[0], : arr.shape[1]] = arr[:NUM_LANDMARKS, :3]
        labels = np.array([f.label or "" for f in self._frames], dtype=str)

        np.savez_compressed(path, timestamps=timestamps, hands=hands, present=present, labels=labels)
        return path


class LandmarkPlayer:
    """Replays a recorded session.

    Usage:
        player = LandmarkPlayer.load("session.json")
        for frame in player.play():
            coordinator.on_landmarks(frame.landmarks, now=frame.timestamp)
    """

    def __init__(self, frames: list[RecordedFrame]):
        self._frames = frames

    @classmethod
    def load(cls, path: str | Path) -> LandmarkPlayer:
        path = Path(path)
        if path.suffix == ".npz":
            return cls._load_compact(path)

        with open(path) as f:
            data = json.load(f)

        frames = [
            RecordedFrame(
                timestamp=f["timestamp"],
                landmarks=f.get("landmarks"),
                label=f.get("label"),
            )
            for f in data["frames"]
        ]
        return cls(frames)

    @classmethod
    def _load_compact(cls, path: Path) -> LandmarkPlayer:
        data = np.load(path, allow_pickle=False)
        timestamps = data["timestamps"]
        hands = data["hands"]
        present = data["present"]
        labels = data["labels"]

        frames = []
        for i in range(len(timestamps)):
            frames.append(RecordedFrame(
                timestamp=float(timestamps[i]),
                landmarks=hands[i].tolist() if present[i] else None,
                label=str(labels[i]) or None,
            ))
        return cls(frames)

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        if not self._frames:
            return 0.0
        return self._frames[-1].timestamp

    @staticmethod
    def _as_numpy(frame: RecordedFrame) -> RecordedFrame:
        return RecordedFrame(
            timestamp=frame.timestamp,
            landmarks=np.array(frame.landmarks, dtype=np.float32) if frame.landmarks is not None else None,
            label=frame.label,
        )

    def play(self) -> Iterator[RecordedFrame]:
        """Iterate through all frames with landmarks as numpy arrays, no timing."""
        for frame in self._frames:
            yield self._as_numpy(frame)

    def play_realtime(self, speed: float = 1.0) -> Iterator[RecordedFrame]:
        """Replay at the recorded pace, scaled by `speed`."""
        if not self._frames:
            return

        start = time.monotonic()
        for frame in self.play():
            target_time = frame.timestamp / speed
            elapsed = time.monotonic() - start
            if target_time > elapsed:
                time.sleep(target_time - elapsed)
            yield frame

    def get_frame(self, index: int) -> Optional[RecordedFrame]:
        if 0 <= index < len(self._frames):
            return self._as_numpy(self._frames[index])
        return None

    def recorded_transitions(self) -> list[tuple[float, str]]:
        """Label changes as classified at record time, edge-triggered.

        Frames without a hand and unknown frames reset the edge, like the
        live classifier with its default settings.
        Use it to compare a replay against what the recording session saw.
        """
        transitions = []
        last = None
        for frame in self._frames:
            if frame.landmarks is None:
                last = None
                continue
            if frame.label is None:
                continue
            if frame.label == "unknown":
                last = None
                continue
            if frame.label != last:
                transitions.append((frame.timestamp, frame.label))
                last = frame.label
        return transitions
