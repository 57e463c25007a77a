"""Application signals."""
from __future__ import annotations

from blinker import Namespace

_signals = Namespace()

#: Sent by the API gateway when the backend rejects the browser's session.
session_invalidated = _signals.signal("session-invalidated")
