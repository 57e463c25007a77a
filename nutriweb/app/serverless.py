"""WSGI entrypoint, e.g. ``gunicorn nutriweb.app.serverless:app``.

``NUTRIWEB_CONFIG`` selects the configuration class and defaults to production.
"""
from __future__ import annotations

import os

from nutriweb.app import create_app

app = create_app(os.getenv("NUTRIWEB_CONFIG", "production"))
