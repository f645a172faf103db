"""FastAPI endpoints for the pattern training engine.

This sub-package provides REST API endpoints for:
- Screenshot analysis and annotation retrieval
- Pending training questions, answers and dismissals
- Pattern listing and deactivation
"""

from .app import create_app
from .routes import pattern_router, question_router, screenshot_router

__all__ = [
    "create_app",
    "pattern_router",
    "question_router",
    "screenshot_router",
]
