#!/usr/bin/env python3
"""Classifier tuning demo: live finger states drawn over the webcam.

Shows which fingers the extension rules consider extended, the resulting
label, and the tree growing behind it. Useful for picking an
`extension_ratio` for a given camera and lighting.

Usage:
    python examples/demo_webcam.py [--camera 0] [--ratio 0.8] [--config examples/config.yaml]
"""

import argparse
import sys

import cv2

from gesture_tree import ImageSurface, TreeCoordinator, load_config
from gesture_tree.detector import HandDetector
from gesture_tree.gestures import FINGER_NAMES, FingerState, GestureLabel
from gesture_tree.pipeline import GestureEvent

LABEL_COLORS = {
    GestureLabel.OPEN: (0, 255, 0),
    GestureLabel.CLOSED: (0, 0, 255),
    GestureLabel.UNKNOWN: (0, 255, 255),
}


def draw_overlay(frame, landmarks, coordinator: TreeCoordinator):
    """Draw per-finger states, the current label and coordinator state."""
    h, w = frame.shape[:2]
    stats = coordinator.stats
    cv2.putText(
        frame,
        f"state: {stats.state} | particles: {stats.particles}",
        (10, 30),
        cv2.FONT_HERSHEY_SIMPLEX,
        0.7,
        (255, 255, 255),
        2,
    )

    if landmarks is None:
        return frame

    classifier = coordinator.classifier
    label = classifier.classify(landmarks)
    states = classifier.finger_states(landmarks) or []
    for i, (name, finger) in enumerate(zip(FINGER_NAMES, states)):
        color = (0, 255, 0) if finger == FingerState.EXTENDED else (80, 80, 80)
        cv2.putText(frame, name, (10, 60 + i * 24), cv2.FONT_HERSHEY_SIMPLEX, 0.6, color, 2)

    wrist = landmarks[0]
    cv2.putText(
        frame, label.value, (int(wrist[0] * w), int(wrist[1] * h) + 30),
        cv2.FONT_HERSHEY_SIMPLEX, 1.0, LABEL_COLORS[label], 2,
    )
    return frame


def main():
    parser = argparse.ArgumentParser(description="GestureTree classifier demo")
    parser.add_argument("--camera", type=int, default=0, help="Camera index")
    parser.add_argument("--ratio", type=float, default=None, help="Override extension_ratio")
    parser.add_argument("--config", default=None, help="YAML config")
    args = parser.parse_args()

    config = load_config(args.config)
    if args.ratio is not None:
        config.classifier.extension_ratio = args.ratio

    cap = cv2.VideoCapture(args.camera)
    if not cap.isOpened():
        print(f"Error: Cannot open camera {args.camera}")
        sys.exit(1)
    ret, frame = cap.read()
    if not ret:
        print("Error: Camera returned no frames")
        sys.exit(1)

    h, w = frame.shape[:2]
    config.display.width, config.display.height = w, h
    coordinator = TreeCoordinator.from_config(config)
    surface = ImageSurface(w, h)

    def on_gesture(event: GestureEvent):
        print(f"  🤚 {event.label.value}: {event.decision.value}")

    coordinator.on_gesture(on_gesture)
    print("Press 'q' to quit\n")

    with HandDetector() as detector:
        while True:
            ret, frame = cap.read()
            if not ret:
                break

            frame = cv2.flip(frame, 1)
            landmarks = detector.detect(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
            coordinator.on_landmarks(landmarks)
            coordinator.tick(surface)

            shown = draw_overlay(surface.composite_over(frame), landmarks, coordinator)
            cv2.imshow("GestureTree", shown)
            if cv2.waitKey(1) & 0xFF == ord("q"):
                break

    cap.release()
    cv2.destroyAllWindows()

    stats = coordinator.stats
    print(f"\nProcessed {stats.total_frames} frames, {stats.total_transitions} transitions")


if __name__ == "__main__":
    main()
