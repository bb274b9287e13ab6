"""Storage directory resolution (XDG data home)."""

import os
from pathlib import Path

from sqlhelper.errors import ERROR_DATA_DIR, OpenDatabaseError

APP_NAME = "sqlhelper"
DATA_DIR_ENV = "SQLHELPER_DATA_DIR"


def data_dir(app_name: str = APP_NAME, base: Path | None = None) -> Path:
    """
    Compute the data directory without touching the filesystem.

    Resolution order: ``base`` if given, then ``$SQLHELPER_DATA_DIR``, then
    ``$XDG_DATA_HOME/<app_name>`` (``~/.local/share/<app_name>`` by default).
    """
    if base is not None:
        return Path(base)
    if os.environ.get(DATA_DIR_ENV):
        return Path(os.environ[DATA_DIR_ENV])
    xdg_data_home = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return xdg_data_home / app_name


def resolve_data_dir(app_name: str = APP_NAME, base: Path | None = None) -> Path:
    """
    Return a created, writable directory for persistent application data.

    Raises:
        OpenDatabaseError: If the directory cannot be created or written
    """
    path = data_dir(app_name, base)

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OpenDatabaseError(
            db_path=str(path),
            underlying_error=str(e),
            code=ERROR_DATA_DIR,
            message=f"Cannot create data directory {path}: {e}",
        ) from e

    if not os.access(path, os.W_OK):
        raise OpenDatabaseError(
            db_path=str(path),
            underlying_error="directory is not writable",
            code=ERROR_DATA_DIR,
            message=f"Data directory {path} is not writable",
        )
    return path
