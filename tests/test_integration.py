"""End-to-end: landmarks through classification, coordination and rendering."""

import numpy as np
import pytest

from gesture_tree.canvas import ImageSurface
from gesture_tree.config import AppConfig
from gesture_tree.pipeline import TreeCoordinator, TreeState
from gesture_tree.recorder import LandmarkPlayer, LandmarkRecorder

_COLUMNS = {"index": (5, 0.45), "middle": (9, 0.50), "ring": (13, 0.55), "pinky": (17, 0.60)}


def make_hand(open_hand=True):
    lm = np.zeros((21, 3), dtype=np.float32)
    lm[0] = [0.5, 0.75, 0]
    for mcp, x in _COLUMNS.values():
        lm[mcp] = [x, 0.60, 0]
        lm[mcp + 1] = [x, 0.50, 0]
        lm[mcp + 2] = [x, 0.45 if open_hand else 0.53, 0]
        lm[mcp + 3] = [x, 0.40 if open_hand else 0.55, 0]
    lm[1] = [0.40, 0.68, 0]
    lm[2] = [0.36, 0.64, 0]
    lm[3] = [0.33, 0.60, 0]
    lm[4] = [0.30, 0.56, 0] if open_hand else [0.38, 0.60, 0]
    return lm


class TestFullCycle:
    def test_grow_then_clear(self):
        coordinator = TreeCoordinator.from_config(AppConfig(), seed=3)
        surface = ImageSurface(1280, 720)

        # 60 Hz animation, detector reporting every other tick
        t = 0.0
        for i in range(90):
            if i % 2 == 0:
                coordinator.on_landmarks(make_hand(), now=t)
            coordinator.tick(surface)
            t += 1 / 60
        assert coordinator.state == TreeState.GROWN
        assert coordinator.field.count == 209
        assert surface.image.any()

        for i in range(120):
            if i % 2 == 0:
                coordinator.on_landmarks(make_hand(open_hand=False), now=t)
            coordinator.tick(surface)
            t += 1 / 60
        assert coordinator.state == TreeState.IDLE
        assert coordinator.field.count == 0
        assert not surface.image.any()

    def test_flickering_fist_does_not_clear_fresh_tree(self):
        coordinator = TreeCoordinator.from_config(AppConfig(), seed=3)
        t = 0.0
        for i in range(30):
            lm = make_hand(open_hand=(i % 3 != 2))
            coordinator.on_landmarks(lm, now=t)
            coordinator.tick()
            t += 1 / 30
        assert coordinator.state == TreeState.GROWN
        assert coordinator.field.count == 209

    @pytest.mark.parametrize("suffix", [".json", ".npz"])
    def test_recorded_session_replays_identically(self, tmp_path, suffix):
        rec = LandmarkRecorder()
        rec.start()
        frames = [(0.0, make_hand()), (0.5, None), (1.2, make_hand(open_hand=False))]
        for t, lm in frames:
            rec.add_frame(lm, timestamp=t)
        rec.stop()
        path = rec.save(tmp_path / "s.json") if suffix == ".json" else rec.save_compact(tmp_path / "s.npz")

        live = TreeCoordinator.from_config(AppConfig(), seed=1)
        live_events = [live.on_landmarks(lm, now=t) for t, lm in frames]

        replayed = TreeCoordinator.from_config(AppConfig(), seed=1)
        replay_events = [
            replayed.on_landmarks(f.landmarks, now=f.timestamp)
            for f in LandmarkPlayer.load(path).play()
        ]

        def summary(events):
            return [(e.label, e.decision) if e else None for e in events]

        assert summary(replay_events) == summary(live_events)
        assert replayed.stats.total_transitions == 2
