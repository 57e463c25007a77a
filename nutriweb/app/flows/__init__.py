"""Step-sequenced authentication flows."""
from __future__ import annotations


class IllegalTransition(ValueError):
    """Raised when an action is not allowed from the flow's current step."""
