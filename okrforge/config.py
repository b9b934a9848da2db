"""
Configuration Management
========================

Handles loading coach configuration from environment variables and config files.

Usage:
    from okrforge.config import CoachConfig

    config = CoachConfig.load()
    print(config.state_dir)
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional, Any
from dataclasses import dataclass, asdict

logger = logging.getLogger(__name__)

# Default configuration values
DEFAULT_STATE_DIR = ".okrforge"
DEFAULT_LOG_LEVEL = "INFO"
CONFIG_FILENAME = "okrforge_config.json"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class CoachConfig:
    """OKR coach configuration."""
    catalogue_path: Optional[str] = None
    state_dir: str = DEFAULT_STATE_DIR
    log_level: str = DEFAULT_LOG_LEVEL
    announce_queued_questions: bool = True

    @classmethod
    def load(cls, config_dir: Optional[Path] = None) -> "CoachConfig":
        """
        Load configuration from multiple sources in precedence order:
        1. Environment variables
        2. Local config file (okrforge_config.json)
        3. Default values
        """
        # Start with defaults
        config: dict[str, Any] = asdict(cls())

        # Load from config file if exists
        config_path = Path(config_dir or Path.cwd()) / CONFIG_FILENAME
        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    file_config = json.load(f)
                known = {k: v for k, v in file_config.items() if k in config}
                config.update(known)
            except (OSError, ValueError) as e:
                logger.warning("Failed to load config file %s: %s", config_path, e)

        # Override with environment variables
        config.update(cls._from_environ())

        return cls(
            catalogue_path=config["catalogue_path"],
            state_dir=config["state_dir"],
            log_level=str(config["log_level"]).upper(),
            announce_queued_questions=bool(config["announce_queued_questions"]),
        )

    @staticmethod
    def _from_environ() -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        if os.environ.get("OKRFORGE_CATALOGUE"):
            overrides["catalogue_path"] = os.environ["OKRFORGE_CATALOGUE"]
        if os.environ.get("OKRFORGE_STATE_DIR"):
            overrides["state_dir"] = os.environ["OKRFORGE_STATE_DIR"]
        if os.environ.get("OKRFORGE_LOG_LEVEL"):
            overrides["log_level"] = os.environ["OKRFORGE_LOG_LEVEL"]
        announce = os.environ.get("OKRFORGE_ANNOUNCE_QUEUED")
        if announce is not None:
            overrides["announce_queued_questions"] = announce.strip().lower() in _TRUE_VALUES
        return overrides

    @property
    def logging_level(self) -> int:
        """Numeric logging level, falling back to INFO for unknown names."""
        return getattr(logging, self.log_level.upper(), logging.INFO)
