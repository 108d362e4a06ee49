"""Configuration management for the import reference resolver."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .constants import TRIGGER_LOOKUP_FLAGS


@dataclass
class StoreConfig:
    """Data Store connection configuration."""

    path: str = "referencer.db"
    timeout: float = 5.0  # Seconds to wait on a locked database


@dataclass
class ResolverConfig:
    """
    Resolver behavior.

    Controls which trigger rows are candidates and whether lookups feed the
    metrics collector.
    """

    trigger_flags: tuple[int, ...] = TRIGGER_LOOKUP_FLAGS
    enable_metrics: bool = True

    def __post_init__(self) -> None:
        self.trigger_flags = tuple(int(flag) for flag in self.trigger_flags)


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"
    file: Path | None = None


@dataclass
class ReferencerConfig:
    """
    Complete configuration for the reference resolver.

    This combines all configuration sections.
    """

    store: StoreConfig = field(default_factory=StoreConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, config_path: Path) -> "ReferencerConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML config file

        Returns:
            ReferencerConfig instance
        """
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(
                f"Invalid configuration file structure in {config_path}: "
                f"expected dictionary, got {type(data).__name__}"
            )

        store = StoreConfig(**(data.get("store") or {}))
        resolver = ResolverConfig(**(data.get("resolver") or {}))

        logging_data = dict(data.get("logging") or {})
        if logging_data.get("file"):
            logging_data["file"] = Path(logging_data["file"])
        logging = LoggingConfig(**logging_data)

        return cls(store=store, resolver=resolver, logging=logging)

    def to_file(self, config_path: Path) -> None:
        """
        Save configuration to YAML file.

        Args:
            config_path: Path to save config file
        """
        data = {
            "store": self.store.__dict__,
            "resolver": {
                "trigger_flags": list(self.resolver.trigger_flags),
                "enable_metrics": self.resolver.enable_metrics,
            },
            "logging": {
                k: str(v) if isinstance(v, Path) else v
                for k, v in self.logging.__dict__.items()
                if v is not None
            },
        }

        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_env(cls) -> "ReferencerConfig":
        """
        Create configuration from environment variables.

        Environment variables:
            REFERENCER_DB: Path to the SQLite database (default: referencer.db)
            REFERENCER_DB_TIMEOUT: Seconds to wait on a locked database
            LOG_LEVEL: Logging level (default: INFO)
            LOG_FORMAT: console or json (default: console)

        Returns:
            ReferencerConfig instance
        """
        store = StoreConfig(
            path=os.environ.get("REFERENCER_DB", "referencer.db"),
            timeout=float(os.environ.get("REFERENCER_DB_TIMEOUT", "5.0")),
        )

        logging_config = LoggingConfig(
            level=os.environ.get("LOG_LEVEL", "INFO"),
            format=os.environ.get("LOG_FORMAT", "console"),
        )

        return cls(store=store, resolver=ResolverConfig(), logging=logging_config)


def load_config(config_file: Path | None = None) -> ReferencerConfig:
    """
    Load configuration from file or environment variables.

    Args:
        config_file: Optional path to YAML config file

    Returns:
        ReferencerConfig instance

    Raises:
        FileNotFoundError: If config_file is specified but doesn't exist
    """
    if config_file:
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")
        return ReferencerConfig.from_file(config_file)
    return ReferencerConfig.from_env()
