"""Engine configuration management."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

logger = logging.getLogger(__name__)


@dataclass
class QuantumConfig:
    """Process-wide engine settings.

    Flags are read at the moment each collapse or arithmetic call runs, so
    changing them affects subsequent calls only. Set once at startup in
    production; tests mutate them between ``reset()`` calls.
    """
    forbid_default_on_collapse: bool = True
    enable_non_observational_arithmetic: bool = True
    enable_commutative_cache: bool = True
    tolerance: float = 1e-9
    zero_threshold: float = 1e-15
    default_seed: int | None = None

    _config_dir: Path = field(
        default_factory=lambda: Path.home() / ".quantum_soup",
        repr=False)

    _instance: ClassVar[QuantumConfig | None] = None

    @property
    def config_path(self) -> Path:
        return self._config_dir / "config.json"

    def to_dict(self) -> dict:
        return {
            "forbid_default_on_collapse": self.forbid_default_on_collapse,
            "enable_non_observational_arithmetic":
                self.enable_non_observational_arithmetic,
            "enable_commutative_cache": self.enable_commutative_cache,
            "tolerance": self.tolerance,
            "zero_threshold": self.zero_threshold,
            "default_seed": self.default_seed,
        }

    def save(self, path: str | Path | None = None):
        target = Path(path) if path is not None else self.config_path
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: str | Path | None = None) -> QuantumConfig:
        config = cls()
        source = Path(path) if path is not None else config.config_path
        if source.exists():
            try:
                with open(source, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                for key, value in data.items():
                    if hasattr(config, key) and not key.startswith('_'):
                        setattr(config, key, value)
            except (json.JSONDecodeError, OSError):
                logger.warning("Ignoring unreadable config file %s", source)
        return config

    @classmethod
    def current(cls) -> QuantumConfig:
        """Return the process-wide configuration, creating it on first use."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def install(cls, config: QuantumConfig):
        """Replace the process-wide configuration."""
        cls._instance = config

    @classmethod
    def reset(cls):
        """Drop the process-wide configuration (for testing)."""
        cls._instance = None
