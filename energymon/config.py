"""Configuration loading for energymon.

Loads settings from TOML config files with sensible defaults.
Search order: explicit --config path → ~/.config/energymon/config.toml → defaults only.
"""

from __future__ import annotations

import sys
import tomllib
from pathlib import Path
from typing import Any

DEFAULT_URL = (
    "https://script.google.com/macros/s/AKfycbyHV-qBnm9IqH6_FsZQ8YDMjenGy0fvBHOhJ9"
    "nkrhm-4QZ_ko-HBUcsi1VsLXKPFJZ9zg/exec"
)

DEFAULT_CONFIG: dict[str, Any] = {
    "log_file": "",
    "log_level": "INFO",
    "source": {
        "url": DEFAULT_URL,
        "timeout": 10.0,
    },
}

_DEFAULT_PATH = Path.home() / ".config" / "energymon" / "config.toml"


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base. Nested dicts are merged at the first level only.

    Nested dicts of base are copied, so the result never aliases DEFAULT_CONFIG.
    """
    merged = {k: dict(v) if isinstance(v, dict) else v for k, v in base.items()}
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration, merging user TOML over defaults.

    Args:
        path: Explicit config file path (from --config). If None, tries the
              default location ~/.config/energymon/config.toml.

    Returns:
        Merged configuration dict.

    Raises:
        SystemExit: If an explicit path doesn't exist or can't be parsed.
    """
    if path is not None:
        if not path.is_file():
            print(f"energymon: config file not found: {path}", file=sys.stderr)
            raise SystemExit(1)
        try:
            user_config = tomllib.loads(path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            print(f"energymon: invalid TOML in {path}: {e}", file=sys.stderr)
            raise SystemExit(1) from e
        return _deep_merge(DEFAULT_CONFIG, user_config)

    if _DEFAULT_PATH.is_file():
        try:
            user_config = tomllib.loads(_DEFAULT_PATH.read_text(encoding="utf-8"))
            return _deep_merge(DEFAULT_CONFIG, user_config)
        except tomllib.TOMLDecodeError:
            print(
                f"energymon: warning: ignoring invalid TOML in {_DEFAULT_PATH}",
                file=sys.stderr,
            )

    return _deep_merge(DEFAULT_CONFIG, {})


def dump_default_config() -> str:
    """Return the default configuration as a TOML string."""
    source = DEFAULT_CONFIG["source"]
    lines = [
        "# energymon configuration",
        "# Place this file at ~/.config/energymon/config.toml",
        "",
        f'log_file = "{DEFAULT_CONFIG["log_file"]}"',
        f'log_level = "{DEFAULT_CONFIG["log_level"]}"',
        "",
        "[source]",
        f'url = "{source["url"]}"',
        f"timeout = {source['timeout']}",
    ]
    return "\n".join(lines) + "\n"
