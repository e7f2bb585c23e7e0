"""
Centralized configuration manager.
Loads the YAML config and provides typed access with defaults.

    - Schema validation for the sections the pipeline reads
    - Dot-path access: config.get("sampling.step_seconds")
    - Reset support for testing
"""

import os
import copy
import yaml
import logging

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
_CONFIG_DIR = os.path.join(_BASE_DIR, "config")

# Schema: known sections and the expected type of their fields
_CONFIG_SCHEMA = {
    "sampling": {
        "step_seconds": float,
        "seek_timeout_s": float,
    },
    "detector": {
        "backend": str,
        "max_num_hands": int,
        "model_complexity": int,
        "min_detection_confidence": float,
        "min_presence_confidence": float,
        "detect_timeout_s": float,
    },
    "analysis": {
        "default_mode": str,
        "extension_convention": str,
    },
    "modes": {},
    "logging": {
        "level": str,
    },
}

_DEFAULTS = {
    "sampling": {
        "step_seconds": 0.5,
        "seek_timeout_s": 5.0,
    },
    "detector": {
        "backend": "tasks",
        "model_path": "",
        "max_num_hands": 1,
        "model_complexity": 1,
        "min_detection_confidence": 0.5,
        "min_presence_confidence": 0.5,
        "detect_timeout_s": 10.0,
    },
    "analysis": {
        "default_mode": "pinky",
        "extension_convention": "residual",
    },
    "modes": {},
    "logging": {
        "level": "INFO",
        "file": None,
        "max_size_mb": 10,
        "backup_count": 3,
    },
}


_CONVENTIONS = ("residual", "signed")


def _section_problems(section_name: str, section, fields: dict) -> list:
    if section is None:
        return []
    if not isinstance(section, dict):
        return [f"Section '{section_name}' should be a dict, got {type(section).__name__}"]
    problems = []
    for field_name, expected_type in fields.items():
        if field_name not in section:
            continue
        value = section[field_name]
        # bool is an int subclass; YAML "yes" must not pass as a number
        if isinstance(value, bool) and expected_type is not bool:
            ok = False
        elif expected_type is float:
            ok = isinstance(value, (int, float))
        else:
            ok = isinstance(value, expected_type)
        if not ok:
            problems.append(
                f"{section_name}.{field_name}: expected {expected_type.__name__}, "
                f"got {type(value).__name__} ({value!r})"
            )
    return problems


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Singleton configuration manager. Read-only once loaded."""

    _instance = None
    _data = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._data = copy.deepcopy(_DEFAULTS)
        return cls._instance

    def load(self, config_path=None):
        """Load configuration from YAML, layered over built-in defaults."""
        config_path = config_path or os.path.join(_CONFIG_DIR, "config.yaml")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
            logger.info("Loaded config from %s", config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s, using defaults", config_path)
            loaded = {}

        if not isinstance(loaded, dict):
            logger.warning("Config root should be a mapping, got %s; using defaults",
                           type(loaded).__name__)
            loaded = {}

        self._data = _deep_merge(copy.deepcopy(_DEFAULTS), loaded)
        self._validate()
        return self

    def _validate(self):
        """Check known fields against the schema and the pipeline's value ranges.

        Problems are logged, not raised; the offending value is still used and
        fails later where it is read.
        """
        problems = []
        for section_name, fields in _CONFIG_SCHEMA.items():
            problems.extend(_section_problems(section_name, self._data.get(section_name), fields))

        step = self.get("sampling.step_seconds")
        if isinstance(step, (int, float)) and step <= 0:
            problems.append(f"sampling.step_seconds must be positive, got {step}")

        convention = self.get("analysis.extension_convention")
        if isinstance(convention, str) and convention.lower() not in _CONVENTIONS:
            problems.append(
                f"analysis.extension_convention: unknown value {convention!r} "
                f"(expected {' or '.join(_CONVENTIONS)})"
            )

        modes = self.get("modes")
        if isinstance(modes, dict):
            for name, entry in modes.items():
                if entry is not None and not isinstance(entry, dict):
                    problems.append(f"modes.{name}: expected a mapping, got {type(entry).__name__}")

        for problem in problems:
            logger.warning("Config validation: %s", problem)
        if not problems:
            logger.debug("Config validation passed")
        return problems

    def get(self, key_path: str, default=None):
        """Get nested config value using dot notation: 'sampling.step_seconds'."""
        keys = key_path.split(".")
        value = self._data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def get_section(self, section: str) -> dict:
        """Get an entire config section."""
        return self._data.get(section) or {}

    def set(self, key_path: str, value):
        """Override a single value (used for CLI flags)."""
        keys = key_path.split(".")
        node = self._data
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = value

    @property
    def sampling(self) -> dict:
        return self.get_section("sampling")

    @property
    def detector(self) -> dict:
        return self.get_section("detector")

    @property
    def analysis(self) -> dict:
        return self.get_section("analysis")

    @property
    def modes(self) -> dict:
        return self.get_section("modes")

    @property
    def log_settings(self) -> dict:
        return self.get_section("logging")

    @classmethod
    def reset(cls):
        """Reset singleton instance (for testing)."""
        cls._instance = None
        cls._data = {}
