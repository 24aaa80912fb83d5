"""Flask application factory for the approval dashboard API."""

from __future__ import annotations

from flask import Flask

from ..orchestrator import Orchestrator


def create_app(orchestrator: Orchestrator) -> Flask:
    app = Flask(__name__)
    app.config["orchestrator"] = orchestrator

    from .routes import bp

    app.register_blueprint(bp)
    return app
