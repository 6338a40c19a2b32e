"""Color theme for packsync CLI output.

The bundled ``data/theme.toml`` holds the default palette. A user theme at
``~/.config/packsync/theme.toml`` may override any subset of its colors.
"""

import functools
import logging
import tomllib
from importlib import resources
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from rich.theme import Theme

from packsync.core.paths import get_config_dir

logger = logging.getLogger(__name__)

# Color groups rendered as dotted Rich style names, e.g. "status.outdated"
GROUPED_PREFIXES = ("status", "pack")

# Styles rendered bold on top of their color
BOLD_STYLES = frozenset({"error", "status.needs_attention"})


class ThemeColors(BaseModel):
    """Color palette for packsync CLI.

    All colors must be hex codes (#RRGGBB or #RGB).
    """

    model_config = ConfigDict(extra="forbid")

    text: str = "#ffffff"
    muted: str = "#b2bec3"
    header: str = "#69B9A1"
    border: str = "#29526d"

    success: str = "#03b971"
    warning: str = "#f5b332"
    error: str = "#f53263"
    info: str = "#0ec1c8"

    # Plan output
    added: str = "#c1ff62"
    removed: str = "#f53263"
    changed: str = "#0e8ac8"

    # Doctor check outcomes
    status_up_to_date: str = "#03b971"
    status_outdated: str = "#faf870"
    status_needs_attention: str = "#f53263"
    status_not_applicable: str = "#b2bec3"

    pack_builtin: str = "#69B9A1"
    pack_external: str = "#d44ebc"

    @field_validator("*", mode="before")
    @classmethod
    def validate_hex_color(cls, v: object, info: Any) -> str:
        """Validate that every color is a hex code."""
        if not isinstance(v, str):
            msg = f"{info.field_name}: color must be a string"
            raise ValueError(msg)
        color = v.strip()
        if not color.startswith("#"):
            msg = f"{info.field_name}: color must start with '#'"
            raise ValueError(msg)
        digits = color[1:]
        if len(digits) not in (3, 6):
            msg = f"{info.field_name}: color must be #RGB or #RRGGBB format"
            raise ValueError(msg)
        try:
            int(digits, 16)
        except ValueError:
            msg = f"{info.field_name}: invalid hex color '{color}'"
            raise ValueError(msg) from None
        return color


def get_user_theme_path() -> Path:
    """Get the user theme path (``~/.config/packsync/theme.toml``)."""
    return get_config_dir() / "theme.toml"


def get_bundled_theme_path() -> Path:
    """Get the path of the bundled default theme."""
    return Path(str(resources.files("packsync.data").joinpath("theme.toml")))


def _load_toml_colors(path: Path) -> dict[str, str] | None:
    """Load the [colors] table of a theme file.

    Returns:
        Color name to hex value, or None if the file is missing or unreadable.
        Non-string values are ignored.
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        return None
    except tomllib.TOMLDecodeError as e:
        logger.warning("Failed to parse theme file %s: %s", path, e)
        return None
    except OSError as e:
        logger.warning("Failed to read theme file %s: %s", path, e)
        return None

    colors = data.get("colors", {})
    if not isinstance(colors, dict):
        logger.warning("Invalid 'colors' section in %s", path)
        return None
    return {key: value for key, value in colors.items() if isinstance(value, str)}


def load_theme(user_path: Path | None = None) -> ThemeColors:
    """Load the bundled palette merged with the user's overrides.

    Args:
        user_path: User theme file. Defaults to get_user_theme_path().

    Returns:
        Validated colors; the built-in defaults if the merge is invalid.
    """
    colors = _load_toml_colors(get_bundled_theme_path())
    if colors is None:
        logger.error("Failed to load bundled theme - installation may be corrupted")
        colors = {}

    path = user_path or get_user_theme_path()
    overrides = _load_toml_colors(path)
    if overrides is not None:
        logger.debug("Loaded user theme overrides from %s", path)
        colors = {**colors, **overrides}

    try:
        return ThemeColors(**colors)
    except ValidationError as e:
        logger.warning("Invalid theme configuration, using defaults: %s", e)
        return ThemeColors()


def style_name(field_name: str) -> str:
    """Rich style name of a color field ("status_outdated" -> "status.outdated")."""
    prefix, sep, rest = field_name.partition("_")
    if sep and prefix in GROUPED_PREFIXES:
        return f"{prefix}.{rest}"
    return field_name


def get_rich_theme(colors: ThemeColors | None = None) -> Theme:
    """Convert a palette into a Rich Theme.

    Every color becomes a style of the same name (grouped colors use dotted
    names). A few derived styles are added for table headers and pack names.
    """
    colors = colors or load_theme()

    styles: dict[str, str] = {}
    for field_name, color in colors.model_dump().items():
        name = style_name(field_name)
        styles[name] = f"bold {color}" if name in BOLD_STYLES else color

    styles["bold_header"] = f"bold {colors.header}"
    styles["dim"] = colors.muted
    styles["pack.name"] = f"bold {colors.text}"
    styles["pack.version"] = colors.muted
    return Theme(styles)


@functools.cache
def get_theme() -> Theme:
    """Get the Rich theme, loaded once per process."""
    return get_rich_theme()
