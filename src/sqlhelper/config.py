"""
Configuration for sqlhelper databases.

A DatabaseConfig names the database file, the schema version the application
expects, and where the file lives. It can be built in code or loaded from
YAML:

    name: app.db
    version: 3
    directory: ./data
    timeout: 5.0
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sqlhelper.errors import ConfigError


class DatabaseConfig(BaseModel):
    """
    Settings for one Database instance.

    Attributes:
        name: File name of the database inside the directory
        version: Schema version the application expects (>= 1)
        directory: Storage directory; resolved from XDG data home when None
        timeout: Seconds to wait on a locked database file
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Database file name")
    version: int = Field(..., ge=1, description="Declared schema version")
    directory: Path | None = Field(default=None, description="Storage directory")
    timeout: float = Field(default=5.0, gt=0, description="Busy timeout in seconds")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """The name is a file name, not a path."""
        if v != ":memory:" and ("/" in v or "\\" in v):
            msg = f"Database name must not contain path separators: {v}"
            raise ValueError(msg)
        return v


def load_config(path: Path | str) -> DatabaseConfig:
    """
    Load a database configuration from a YAML file.

    Raises:
        ConfigError: If the file is missing, unparseable or invalid
    """
    path = Path(path)
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(path=str(path), underlying_error=str(e)) from e
    return _validate(data, str(path))


def load_config_from_string(content: str) -> DatabaseConfig:
    """Load a database configuration from a YAML string."""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(path="<string>", underlying_error=str(e)) from e
    return _validate(data, "<string>")


def _validate(data: object, source: str) -> DatabaseConfig:
    try:
        return DatabaseConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(path=source, underlying_error=str(e)) from e
