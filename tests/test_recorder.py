"""Tests for landmark recording and replay."""

import json

import numpy as np
import pytest

from gesture_tree.recorder import LandmarkPlayer, LandmarkRecorder, RecordedFrame


def make_landmarks():
    return np.random.rand(21, 3).astype(np.float32)


def make_session(frames=((0.0, True, "open"), (0.1, False, None), (0.2, True, "closed"))):
    rec = LandmarkRecorder()
    rec.start()
    for t, present, label in frames:
        rec.add_frame(make_landmarks() if present else None, label, timestamp=t)
    rec.stop()
    return rec


class TestRecorder:
    def test_record_and_count(self):
        rec = LandmarkRecorder()
        rec.start()
        for _ in range(10):
            rec.add_frame(make_landmarks())
        assert rec.stop() == 10
        assert not rec.is_recording

    def test_not_recording_ignores_frames(self):
        rec = LandmarkRecorder()
        rec.add_frame(make_landmarks())
        assert rec.frame_count == 0

    def test_start_clears_previous(self):
        rec = make_session()
        rec.start()
        assert rec.frame_count == 0

    def test_duration(self):
        assert make_session().duration == pytest.approx(0.2)
        assert LandmarkRecorder().duration == 0.0

    def test_timestamps_monotonic(self, tmp_path):
        rec = LandmarkRecorder()
        rec.start()
        for _ in range(5):
            rec.add_frame(make_landmarks())
        rec.stop()
        player = LandmarkPlayer.load(rec.save(tmp_path / "s.json"))
        timestamps = [f.timestamp for f in player.play()]
        assert timestamps == sorted(timestamps)
        assert timestamps[0] >= 0.0

    def test_json_format(self, tmp_path):
        path = make_session().save(tmp_path / "session.json")
        data = json.loads(path.read_text())
        assert data["version"] == 1
        assert data["frame_count"] == 3
        assert data["frames"][1]["landmarks"] is None
        assert data["frames"][0]["label"] == "open"


class TestPlayer:
    @pytest.mark.parametrize("name,method", [("s.json", "save"), ("s.npz", "save_compact")])
    def test_load_preserves_frames(self, tmp_path, name, method):
        rec = make_session()
        path = getattr(rec, method)(tmp_path / name)
        player = LandmarkPlayer.load(path)
        assert player.frame_count == 3
        assert player.duration == pytest.approx(0.2)

        frames = list(player.play())
        assert [f.label for f in frames] == ["open", None, "closed"]
        assert frames[1].landmarks is None
        assert isinstance(frames[0].landmarks, np.ndarray)
        assert frames[0].landmarks.shape == (21, 3)

    def test_compact_forces_npz_suffix(self, tmp_path):
        path = make_session().save_compact(tmp_path / "session.bin")
        assert path.suffix == ".npz"
        assert path.exists()

    def test_landmark_values_survive(self, tmp_path):
        rec = LandmarkRecorder()
        rec.start()
        lm = make_landmarks()
        rec.add_frame(lm, "open", timestamp=0.0)
        rec.stop()
        player = LandmarkPlayer.load(rec.save(tmp_path / "one.json"))
        np.testing.assert_allclose(player.get_frame(0).landmarks, lm, atol=1e-6)

    def test_get_frame_out_of_range(self, tmp_path):
        player = LandmarkPlayer.load(make_session().save(tmp_path / "s.json"))
        assert player.get_frame(0) is not None
        assert player.get_frame(99) is None
        assert player.get_frame(-1) is None

    def test_play_realtime(self):
        frames = [RecordedFrame(timestamp=t, landmarks=None) for t in (0.0, 0.01, 0.02)]
        played = list(LandmarkPlayer(frames).play_realtime(speed=10.0))
        assert len(played) == 3

    def test_empty_player(self):
        player = LandmarkPlayer([])
        assert player.duration == 0.0
        assert list(player.play_realtime()) == []

    def test_recorded_transitions(self):
        hand = make_landmarks().tolist()
        frames = [
            RecordedFrame(0.0, hand, "open"),
            RecordedFrame(0.1, hand, "open"),
            RecordedFrame(0.2, hand, "unknown"),
            RecordedFrame(0.3, hand, "closed"),
            RecordedFrame(0.4, None, None),
            RecordedFrame(0.5, hand, "closed"),
        ]
        assert LandmarkPlayer(frames).recorded_transitions() == [
            (0.0, "open"), (0.3, "closed"), (0.5, "closed"),
        ]
