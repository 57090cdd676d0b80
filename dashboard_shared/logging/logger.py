"""Process-wide flag recording whether JSON logging has been wired.

``configure_logging`` in ``dashboard_shared.logging.json`` sets it so a
service's own logger module does not replace handlers a second time.
"""

from __future__ import annotations

_configured = False


def is_configured() -> bool:
    """Check if logging has been configured."""
    return _configured


def mark_configured():
    """Mark logging as configured (called by dashboard_shared.logging.json.configure_logging)."""
    global _configured
    _configured = True
