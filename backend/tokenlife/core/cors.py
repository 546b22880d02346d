"""CORS configuration helper for API resources."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS

from tokenlife.core.logger import REQUEST_ID_HEADER


def init_app(app: Flask) -> None:
    """Configure CORS for the token endpoints based on application config.

    ``CORS_ORIGINS`` is a comma-separated allow-list. Blank or ``"*"`` allows
    any origin but then credentials are never allowed, since the refresh
    endpoints exchange long-lived secrets.
    """
    raw_origins = app.config.get("CORS_ORIGINS", "")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    wildcard = len(origins) == 0 or origins == ["*"]

    CORS(
        app,
        resources={r"/api/*": {"origins": "*" if wildcard else origins}},
        supports_credentials=not wildcard,
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
        methods=["GET", "POST", "OPTIONS"],
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )
