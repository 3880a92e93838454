"""Version lookup for the running service."""

import os
from importlib.metadata import PackageNotFoundError, version


def get_version() -> str:
    """Return the service version.

    APP_VERSION wins so container builds can stamp a release tag; otherwise the
    installed distribution metadata is used, then 'unknown'.
    """
    stamped = os.environ.get("APP_VERSION", "").strip()
    if stamped:
        return stamped
    try:
        return version("lead-dashboard")
    except PackageNotFoundError:
        return "unknown"
