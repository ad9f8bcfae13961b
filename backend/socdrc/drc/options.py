"""
DRC run options.

Defaults come from the environment (socdrc.config); a YAML rules file can
override them, e.g.:

    checkOptionalPorts: true
    namePattern: "^[A-Z][A-Za-z0-9_]*$"
    interconnectFanoutLimit: 8
"""

import logging
import os
import re
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Optional

import yaml

from socdrc import config

logger = logging.getLogger(__name__)

_KEYS = {
    "checkOptionalPorts": "check_optional_ports",
    "namePattern": "name_pattern",
    "interconnectFanoutLimit": "interconnect_fanout_limit",
}


def _as_bool(key: str, value: Any) -> bool:
    """Booleans from YAML or JSON; strings use the same spellings as the environment."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in config.TRUE_VALUES:
            return True
        if text in config.FALSE_VALUES:
            return False
    raise ValueError(f"DRC option {key} must be true or false, got {value!r}")


@dataclass(frozen=True)
class DRCOptions:
    check_optional_ports: bool = False
    name_pattern: str = r"^[A-Za-z][A-Za-z0-9_\-. ]*$"
    interconnect_fanout_limit: int = 16

    def __post_init__(self):
        try:
            re.compile(self.name_pattern)
        except re.error as exc:
            raise ValueError(f"Invalid naming pattern {self.name_pattern!r}: {exc}") from exc
        if self.interconnect_fanout_limit < 1:
            raise ValueError("interconnect_fanout_limit must be at least 1")

    @classmethod
    def from_env(cls) -> "DRCOptions":
        options = cls(
            check_optional_ports=config.DRC_CHECK_OPTIONAL_PORTS,
            name_pattern=config.DRC_NAME_PATTERN,
            interconnect_fanout_limit=config.DRC_INTERCONNECT_FANOUT_LIMIT,
        )
        if config.DRC_RULES_FILE:
            options = options.merged(cls._read_yaml(config.DRC_RULES_FILE))
        return options

    @classmethod
    def from_yaml(cls, path: str, base: Optional["DRCOptions"] = None) -> "DRCOptions":
        return (base or cls()).merged(cls._read_yaml(path))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], base: Optional["DRCOptions"] = None) -> "DRCOptions":
        """Build options from a request body; keys may be camelCase or snake_case."""
        return (base or cls()).merged(data or {})

    def merged(self, data: Dict[str, Any]) -> "DRCOptions":
        updates = {}
        for key, value in data.items():
            name = _KEYS.get(key, key)
            if name not in _KEYS.values():
                raise ValueError(f"Unknown DRC option: {key}")
            updates[name] = value
        if "check_optional_ports" in updates:
            updates["check_optional_ports"] = _as_bool("checkOptionalPorts", updates["check_optional_ports"])
        if "interconnect_fanout_limit" in updates:
            updates["interconnect_fanout_limit"] = int(updates["interconnect_fanout_limit"])
        return replace(self, **updates)

    def to_dict(self) -> dict:
        return {camel: asdict(self)[snake] for camel, snake in _KEYS.items()}

    @staticmethod
    def _read_yaml(path: str) -> Dict[str, Any]:
        if not os.path.exists(path):
            raise FileNotFoundError(f"DRC rules file not found: {path}")
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"DRC rules file {path} must contain a mapping")
        logger.info("[DRCOptions] Loaded overrides from %s: %s", path, sorted(data))
        return data
