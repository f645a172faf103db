"""UI pattern matching and collaborative training engine.

Matches UI elements detected in screenshots against a per-user,
per-application knowledge base of learned patterns, asks a human about the
elements it cannot place, and learns from the answers.
"""

from .core.engine import ElementState, ScreenshotAnalysis, TrainingEngine

__version__ = "0.1.0"

__all__ = [
    "ElementState",
    "ScreenshotAnalysis",
    "TrainingEngine",
    "__version__",
]
