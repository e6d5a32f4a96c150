"""
Flask route blueprints for Workshop Tracker.

This module contains all route handlers organized by functionality:
- api: Health check and async write polling
- worksheet: Filtered worksheet, item attributes, waiting time
- stages: Stage toggles, notes, archive, packaging, joint box
- preferences: Non-working periods and history window

Each blueprint is registered with the Flask app in create_app().
"""

from .api import api_bp
from .worksheet import worksheet_bp
from .stages import stages_bp
from .preferences import preferences_bp

__all__ = [
    "api_bp",
    "worksheet_bp",
    "stages_bp",
    "preferences_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(api_bp)
    app.register_blueprint(worksheet_bp)
    app.register_blueprint(stages_bp)
    app.register_blueprint(preferences_bp)
