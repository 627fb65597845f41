"""
Project configuration loaded from .tick/config.yml.

Sections are merged over defaults key by key, so a partial file only
overrides what it names. A missing or unreadable file yields defaults.
"""

import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from tickmd.constants import DEFAULT_COMMIT_PREFIX, DEFAULT_LOCK_MAX_AGE_SECONDS

logger = logging.getLogger(__name__)


@dataclass
class GitConfig:
    auto_commit: bool = True
    commit_prefix: str = DEFAULT_COMMIT_PREFIX
    push_on_sync: bool = False


@dataclass
class LockingConfig:
    enabled: bool = True
    timeout: int = DEFAULT_LOCK_MAX_AGE_SECONDS


@dataclass
class AgentsConfig:
    default_trust: str = "restricted"
    require_registration: bool = False


@dataclass
class StoreConfig:
    allow_symlink_writes: bool = False


@dataclass
class TickConfig:
    """All configuration sections."""

    git: GitConfig = field(default_factory=GitConfig)
    locking: LockingConfig = field(default_factory=LockingConfig)
    agents: AgentsConfig = field(default_factory=AgentsConfig)
    store: StoreConfig = field(default_factory=StoreConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TickConfig":
        """
        Build a config from a parsed mapping, ignoring unknown keys.

        Raises:
            ValueError: If a section is not a mapping.
        """
        config = cls()
        for section in fields(cls):
            values = data.get(section.name)
            if values is None:
                continue
            if not isinstance(values, dict):
                raise ValueError(f"Config section '{section.name}' must be a mapping")
            target = getattr(config, section.name)
            known = {f.name for f in fields(target)}
            for key, value in values.items():
                if key in known:
                    setattr(target, key, value)
                else:
                    logger.debug(f"Ignoring unknown config key {section.name}.{key}")
        return config


def load_config(config_file: Union[str, Path]) -> TickConfig:
    """
    Load configuration, falling back to defaults.

    Args:
        config_file: Path to config.yml.

    Returns:
        TickConfig with file values merged over defaults.
    """
    path = Path(config_file)
    if not path.exists():
        return TickConfig()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError("top level must be a mapping")
        return TickConfig.from_dict(data)
    except (OSError, yaml.YAMLError, ValueError) as e:
        logger.warning(f"Invalid config {path}, using defaults: {e}")
        return TickConfig()


def write_default_config(config_file: Union[str, Path]) -> None:
    path = Path(config_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump(TickConfig().to_dict(), default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
