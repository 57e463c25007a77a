"""Request-scoped access to the browser's client identifier and storage."""
from __future__ import annotations

import secrets

from flask import g, session

from nutriweb.app.state.storage import ClientStorage

CLIENT_ID_SESSION_KEY = "client_id"


def current_client_id() -> str:
    """Return the browser identifier, minting one on first use."""

    client_id = session.get(CLIENT_ID_SESSION_KEY)
    if not client_id:
        client_id = secrets.token_urlsafe(24)
        session[CLIENT_ID_SESSION_KEY] = client_id
        session.permanent = True
    return client_id


def current_storage() -> ClientStorage:
    storage = g.get("client_storage")
    if storage is None:
        storage = ClientStorage(current_client_id())
        g.client_storage = storage
    return storage
