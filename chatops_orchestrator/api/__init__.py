"""
FastAPI server module for the chat-ops orchestrator.

Provides the HTTP surface for submitting chat messages.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
