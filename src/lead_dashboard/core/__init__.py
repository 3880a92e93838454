"""Core application components package.

Dependencies live in :mod:`lead_dashboard.core.deps`; they import the domain
modules, which themselves import this package, so they are not re-exported.
"""

from .config import settings
from .database import get_db
from .version import get_version

__all__ = [
    "settings",
    "get_db",
    "get_version",
]
