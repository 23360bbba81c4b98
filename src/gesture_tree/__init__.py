"""GestureTree - a hand-gesture driven particle tree."""

__version__ = "0.1.0"

from gesture_tree.gestures import GestureLabel, FingerState, ExtensionRules
from gesture_tree.classifier import GestureClassifier
from gesture_tree.particles import Particle, ParticleField, TreeShape, FieldPhysics
from gesture_tree.canvas import ImageSurface, CommandSurface, DiscCommand
from gesture_tree.pipeline import TreeCoordinator, GestureEvent, TreeState
from gesture_tree.recorder import LandmarkRecorder, LandmarkPlayer
from gesture_tree.profiler import PipelineProfiler
from gesture_tree.metrics import MetricsCollector
from gesture_tree.config import AppConfig, ConfigError, load_config
