"""Loading of manifests, the desired configuration files."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from hostform.core.exceptions import (
    ConfigNotFoundError,
    ConfigurationError,
    ValidationRejectedError,
)
from hostform.core.spec_builder import format_validation_error
from hostform.models.desired import Manifest

# ${kind.name}
REFERENCE_PATTERN = re.compile(r"^\$\{([a-z_]+)\.([A-Za-z0-9_-]+)\}$")


def parse_reference(value: Any) -> tuple[str, str] | None:
    """Return ``(kind, name)`` if ``value`` is a reference, else None."""
    if not isinstance(value, str):
        return None
    match = REFERENCE_PATTERN.match(value)
    return (match.group(1), match.group(2)) if match else None


def parse_manifest(data: dict[str, Any]) -> Manifest:
    """Validate a manifest mapping.

    Raises:
        ValidationRejectedError: If any resource config is invalid.
    """
    try:
        return Manifest.model_validate(data)
    except ValidationError as e:
        raise ValidationRejectedError(
            f"Invalid manifest: {format_validation_error(e)}",
        ) from e


def load_manifest(path: Path | str) -> Manifest:
    """Load and validate a manifest file.

    Args:
        path: Path to the YAML manifest.

    Returns:
        The validated manifest.

    Raises:
        ConfigNotFoundError: If the file does not exist.
        ConfigurationError: If the file is not valid YAML.
        ValidationRejectedError: If any resource config is invalid.
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise ConfigNotFoundError(str(path))
    try:
        with path.open("r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in manifest: {e}",
            details={"path": str(path)},
        ) from e
    if not isinstance(data, dict):
        raise ConfigurationError("Manifest must be a mapping", details={"path": str(path)})
    return parse_manifest(data)
