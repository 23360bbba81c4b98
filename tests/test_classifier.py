"""Tests for open/closed classification and edge triggering."""

from types import SimpleNamespace

import numpy as np
import pytest

from gesture_tree.classifier import GestureClassifier, hand_missing
from gesture_tree.gestures import ExtensionRules, FingerState, GestureLabel

FINGERS = ("thumb", "index", "middle", "ring", "pinky")
_COLUMNS = {"index": (5, 0.45), "middle": (9, 0.50), "ring": (13, 0.55), "pinky": (17, 0.60)}


def make_hand(extended=FINGERS):
    lm = np.zeros((21, 3), dtype=np.float32)
    lm[0] = [0.5, 0.75, 0]
    for name, (mcp, x) in _COLUMNS.items():
        lm[mcp] = [x, 0.60, 0]
        lm[mcp + 1] = [x, 0.50, 0]
        if name in extended:
            lm[mcp + 2] = [x, 0.45, 0]
            lm[mcp + 3] = [x, 0.40, 0]
        else:
            lm[mcp + 2] = [x, 0.53, 0]
            lm[mcp + 3] = [x, 0.55, 0]
    lm[1] = [0.40, 0.68, 0]
    lm[2] = [0.36, 0.64, 0]
    lm[3] = [0.33, 0.60, 0]
    lm[4] = [0.30, 0.56, 0] if "thumb" in extended else [0.38, 0.60, 0]
    return lm


def make_open_hand():
    return make_hand(FINGERS)


def make_fist():
    return make_hand(())


def make_half_hand():
    """Index and middle up: neither open nor closed."""
    return make_hand(("index", "middle"))


def mirror(lm):
    out = lm.copy()
    out[:, 0] = 1.0 - out[:, 0]
    return out


class TestClassify:
    def test_open_hand(self):
        assert GestureClassifier().classify(make_open_hand()) == GestureLabel.OPEN

    def test_fist(self):
        assert GestureClassifier().classify(make_fist()) == GestureLabel.CLOSED

    def test_two_fingers_unknown(self):
        assert GestureClassifier().classify(make_half_hand()) == GestureLabel.UNKNOWN

    def test_three_fingers_unknown(self):
        lm = make_hand(("index", "middle", "ring"))
        assert GestureClassifier().classify(lm) == GestureLabel.UNKNOWN

    def test_four_fingers_open(self):
        lm = make_hand(("index", "middle", "ring", "pinky"))
        assert GestureClassifier().classify(lm) == GestureLabel.OPEN

    def test_one_finger_closed(self):
        lm = make_hand(("index",))
        assert GestureClassifier().classify(lm) == GestureLabel.CLOSED

    @pytest.mark.parametrize("extended", [
        FINGERS, (), ("index", "middle"), ("thumb",), ("index", "middle", "ring", "pinky"),
    ])
    def test_mirror_invariant(self, extended):
        classifier = GestureClassifier()
        lm = make_hand(extended)
        assert classifier.classify(lm) == classifier.classify(mirror(lm))

    def test_extended_count(self):
        classifier = GestureClassifier()
        assert classifier.extended_count(make_open_hand()) == 5
        assert classifier.extended_count(make_fist()) == 0
        assert classifier.extended_count(make_half_hand()) == 2

    def test_finger_states(self):
        states = GestureClassifier().finger_states(make_half_hand())
        assert states[1] == FingerState.EXTENDED
        assert states[3] == FingerState.CURLED

    def test_custom_ratio(self):
        # ratio above the builder's 1:1 segments leaves only the thumb extended
        classifier = GestureClassifier(rules=ExtensionRules(extension_ratio=1.5))
        assert classifier.classify(make_open_hand()) == GestureLabel.CLOSED

    def test_invalid_rules_rejected(self):
        with pytest.raises(ValueError):
            GestureClassifier(rules=ExtensionRules(open_min_extended=1, closed_max_extended=3))


class TestInputFormats:
    def test_list_of_dicts(self):
        lm = [{"x": float(p[0]), "y": float(p[1]), "z": 0.0} for p in make_open_hand()]
        assert GestureClassifier().classify(lm) == GestureLabel.OPEN

    def test_attribute_objects(self):
        lm = [SimpleNamespace(x=float(p[0]), y=float(p[1]), z=0.0) for p in make_fist()]
        assert GestureClassifier().classify(lm) == GestureLabel.CLOSED

    def test_mediapipe_style_wrapper(self):
        points = [SimpleNamespace(x=float(p[0]), y=float(p[1]), z=0.0) for p in make_open_hand()]
        hand = SimpleNamespace(landmark=points)
        assert GestureClassifier().classify(hand) == GestureLabel.OPEN

    def test_2d_array(self):
        assert GestureClassifier().classify(make_open_hand()[:, :2]) == GestureLabel.OPEN


class TestMalformedInput:
    def test_short_array(self):
        assert GestureClassifier().classify(np.zeros((10, 3))) == GestureLabel.UNKNOWN

    def test_nan(self):
        lm = make_open_hand()
        lm[8] = np.nan
        assert GestureClassifier().classify(lm) == GestureLabel.UNKNOWN

    def test_none(self):
        assert GestureClassifier().classify(None) == GestureLabel.UNKNOWN

    def test_not_a_sequence(self):
        assert GestureClassifier().classify(42) == GestureLabel.UNKNOWN

    def test_malformed_frame_does_not_trigger(self):
        classifier = GestureClassifier()
        assert classifier.on_frame(np.zeros((5, 3))) is None
        assert classifier.last_label is None


class TestEdgeTriggering:
    def test_first_open_emits(self):
        assert GestureClassifier().on_frame(make_open_hand()) == GestureLabel.OPEN

    def test_repeated_label_emits_once(self):
        classifier = GestureClassifier()
        results = [classifier.on_frame(make_open_hand()) for _ in range(10)]
        assert results.count(GestureLabel.OPEN) == 1
        assert results[0] == GestureLabel.OPEN

    def test_open_then_closed(self):
        classifier = GestureClassifier()
        assert classifier.on_frame(make_open_hand()) == GestureLabel.OPEN
        assert classifier.on_frame(make_fist()) == GestureLabel.CLOSED
        assert classifier.on_frame(make_fist()) is None

    def test_unknown_never_emitted(self):
        classifier = GestureClassifier()
        assert classifier.on_frame(make_half_hand()) is None

    def test_unknown_between_opens_retriggers(self):
        classifier = GestureClassifier()
        seq = [make_open_hand(), make_half_hand(), make_open_hand()]
        emitted = [classifier.on_frame(lm) for lm in seq]
        assert emitted == [GestureLabel.OPEN, None, GestureLabel.OPEN]

    def test_unknown_kept_when_configured(self):
        classifier = GestureClassifier(unknown_resets_edge=False)
        seq = [make_open_hand(), make_half_hand(), make_open_hand()]
        emitted = [classifier.on_frame(lm) for lm in seq]
        assert emitted == [GestureLabel.OPEN, None, None]

    def test_absence_resets(self):
        classifier = GestureClassifier()
        assert classifier.on_frame(make_open_hand()) == GestureLabel.OPEN
        assert classifier.on_frame(None) is None
        assert classifier.last_label is None
        assert classifier.on_frame(make_open_hand()) == GestureLabel.OPEN

    def test_empty_list_is_absence(self):
        classifier = GestureClassifier()
        classifier.on_frame(make_fist())
        assert classifier.on_frame([]) is None
        assert classifier.last_label is None

    def test_reset(self):
        classifier = GestureClassifier()
        classifier.on_frame(make_fist())
        classifier.reset()
        assert classifier.on_frame(make_fist()) == GestureLabel.CLOSED


class TestHandMissing:
    def test_none(self):
        assert hand_missing(None)

    def test_empty(self):
        assert hand_missing([])
        assert hand_missing(np.zeros((0, 3)))

    def test_present(self):
        assert not hand_missing(make_open_hand())

    def test_object_without_len(self):
        assert not hand_missing(SimpleNamespace(landmark=[]))
