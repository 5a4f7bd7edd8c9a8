"""Configuration loader that parses and validates user-provided TOML."""

from __future__ import annotations

import re
import tomllib
from dataclasses import fields
from typing import Any, Dict

from .datatypes import (
    AppConfig,
    CLIConfig,
    ExportConfig,
    PackageConfig,
    SlicerConfig,
    TemplateConfig,
)

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_IMAGE_FORMATS = {"jpg": "jpg", "jpeg": "jpg", "png": "png"}


class ConfigError(ValueError):
    """Raised when the configuration file is malformed or fails validation."""


def _coerce_bool(value: Any, dotted_key: str) -> bool:
    """Return a bool, coercing simple 0/1 representations when necessary."""

    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"0", "1"}:
            return normalized == "1"
        if normalized in {"true", "false"}:
            return normalized == "true"
    raise ConfigError(f"{dotted_key} must be a boolean (use true/false).")


def _sanitize_section(raw: dict[str, Any], name: str, cls):
    """
    Coerce a raw TOML table into an instance of ``cls`` with cleaned booleans.

    Parameters:
        raw (dict[str, Any]): Raw TOML section data.
        name (str): Section name used when reporting validation errors.
        cls: Dataclass type used to construct the section object.

    Returns:
        Any: Instantiated dataclass populated with values from ``raw``.

    Raises:
        ConfigError: If the section is not a table or contains invalid keys or values.
    """
    if not isinstance(raw, dict):
        raise ConfigError(f"[{name}] must be a table")
    cls_fields = {field.name: field for field in fields(cls)}
    bool_fields = {key for key, field in cls_fields.items() if field.type in (bool, "bool")}
    unknown = sorted(set(raw) - set(cls_fields))
    if unknown:
        raise ConfigError(f"Invalid keys in [{name}]: {', '.join(unknown)}")
    cleaned: Dict[str, Any] = {}
    for key, value in raw.items():
        if key in bool_fields:
            cleaned[key] = _coerce_bool(value, f"{name}.{key}")
        else:
            cleaned[key] = value
    return cls(**cleaned)


def _require_int(value: Any, dotted_key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{dotted_key} must be an integer")
    return value


def _require_number(value: Any, dotted_key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{dotted_key} must be a number")
    return float(value)


def validate_config(app: AppConfig) -> AppConfig:
    """
    Validate and normalise a populated :class:`AppConfig` in place.

    Raises:
        ConfigError: If any value is out of range or of the wrong type.
    """

    if _require_int(app.slicer.max_regions, "slicer.max_regions") < 1:
        raise ConfigError("slicer.max_regions must be >= 1")
    if _require_int(app.slicer.name_digits, "slicer.name_digits") < 1:
        raise ConfigError("slicer.name_digits must be >= 1")
    if not str(app.slicer.name_prefix).strip():
        raise ConfigError("slicer.name_prefix must be set")
    if not str(app.slicer.group_name).strip():
        raise ConfigError("slicer.group_name must be set")

    image_format = _IMAGE_FORMATS.get(str(app.export.format).strip().lower())
    if image_format is None:
        raise ConfigError("export.format must be 'jpg' or 'png'")
    app.export.format = image_format
    app.export.scale = _require_number(app.export.scale, "export.scale")
    if app.export.scale <= 0:
        raise ConfigError("export.scale must be > 0")
    quality = _require_int(app.export.jpeg_quality, "export.jpeg_quality")
    if not 1 <= quality <= 95:
        raise ConfigError("export.jpeg_quality must be between 1 and 95")
    app.export.position_tolerance = _require_number(
        app.export.position_tolerance, "export.position_tolerance"
    )
    if app.export.position_tolerance < 0:
        raise ConfigError("export.position_tolerance must be >= 0")

    if _require_int(app.template.content_width, "template.content_width") <= 0:
        raise ConfigError("template.content_width must be > 0")
    background = str(app.template.background_color).strip()
    if not _HEX_COLOR.match(background):
        raise ConfigError("template.background_color must be a hex colour such as #ffffff")
    app.template.background_color = background.lower()
    app.template.image_dir = str(app.template.image_dir).strip().strip("/")

    if not str(app.package.output_dir).strip():
        raise ConfigError("package.output_dir must be set")
    html_filename = str(app.package.html_filename).strip()
    if not html_filename or "/" in html_filename or "\\" in html_filename:
        raise ConfigError("package.html_filename must be a plain file name")
    app.package.html_filename = html_filename

    return app


def load_config(path: str) -> AppConfig:
    """
    Load and validate an application configuration from a TOML file.

    The file must be UTF-8 (a BOM is accepted). Missing sections fall back to
    their defaults.

    Returns:
        AppConfig: The validated and normalized application configuration.

    Raises:
        ConfigError: If the file is not UTF-8, TOML parsing fails, or any validation rule is violated.
    """

    with open(path, "rb") as handle:
        raw_bytes = handle.read()
    if raw_bytes.startswith(b"\xef\xbb\xbf"):
        raw_bytes = raw_bytes[3:]
    try:
        raw = tomllib.loads(raw_bytes.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise ConfigError("Configuration file must be UTF-8 encoded") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse TOML: {exc}") from exc

    known = {"slicer", "export", "template", "package", "cli"}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration sections: {', '.join(unknown)}")

    app = AppConfig(
        slicer=_sanitize_section(raw.get("slicer", {}), "slicer", SlicerConfig),
        export=_sanitize_section(raw.get("export", {}), "export", ExportConfig),
        template=_sanitize_section(raw.get("template", {}), "template", TemplateConfig),
        package=_sanitize_section(raw.get("package", {}), "package", PackageConfig),
        cli=_sanitize_section(raw.get("cli", {}), "cli", CLIConfig),
    )
    return validate_config(app)
