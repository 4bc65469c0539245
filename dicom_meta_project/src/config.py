"""Configuration loading and validation utilities."""
from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union


@dataclass
class ExtractorConfig:
    """Container for extractor and batch settings."""

    enable_fallback: bool = True
    debug_charset: bool = False
    stop_before_pixels: bool = True
    show_progress: bool = False
    num_workers: int = 1

    @property
    def parallel(self) -> bool:
        return self.num_workers > 1


_FIELD_TYPES = {
    "enable_fallback": bool,
    "debug_charset": bool,
    "stop_before_pixels": bool,
    "show_progress": bool,
    "num_workers": int,
}


def _validate(config: Dict[str, Any]) -> None:
    known = {f.name for f in fields(ExtractorConfig)}
    unknown = set(config) - known
    if unknown:
        raise KeyError(f"Config contains unknown keys: {sorted(unknown)}")

    for key, value in config.items():
        expected = _FIELD_TYPES[key]
        # bool is an int subclass; reject it where a count is expected.
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise TypeError(f"Config '{key}' must be of type {expected.__name__}")

    if config.get("num_workers", 1) < 1:
        raise ValueError("Config 'num_workers' must be at least 1")


def config_from_dict(config: Dict[str, Any]) -> ExtractorConfig:
    if not isinstance(config, dict):
        raise TypeError("Config must be a JSON object")
    _validate(config)
    return ExtractorConfig(**config)


def load_config(path: Union[str, Path, None]) -> ExtractorConfig:
    """Load and validate an extractor configuration JSON file.

    ``None`` returns the defaults.
    """

    if path is None:
        return ExtractorConfig()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as f:
        config = json.load(f)

    return config_from_dict(config)


def resolve_config(config: Optional[ExtractorConfig]) -> ExtractorConfig:
    return config if config is not None else ExtractorConfig()


__all__ = ["ExtractorConfig", "config_from_dict", "load_config", "resolve_config"]
