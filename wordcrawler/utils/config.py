"""
Configuration management for the word crawler.
"""

import logging
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Pattern

import yaml

IMPLEMENTATIONS = ('parallel', 'sequential')
RECURSION_MODES = ('join', 'shared')


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    seed_urls: List[str] = field(default_factory=list)
    max_depth: int = 1
    timeout_seconds: float = 1.0
    popular_word_count: int = 0
    excluded_urls: List[str] = field(default_factory=list)
    excluded_words: List[str] = field(default_factory=list)
    implementation: str = 'parallel'
    recursion_mode: str = 'join'
    concurrency_level: int = -1
    throttle_delay_ms: int = 0
    user_agent: str = 'WordCrawler'
    respect_robots_txt: bool = True
    request_timeout: int = 30

    def effective_concurrency(self) -> int:
        """Concurrency level with ``<= 0`` meaning one worker per CPU."""
        if self.concurrency_level > 0:
            return self.concurrency_level
        return os.cpu_count() or 1

    def compiled_excluded_urls(self) -> List[Pattern]:
        return [re.compile(pattern) for pattern in self.excluded_urls]

    def compiled_excluded_words(self) -> List[Pattern]:
        return [re.compile(pattern) for pattern in self.excluded_words]


@dataclass
class OutputConfig:
    """Where the crawl result is written; empty path means stdout."""
    result_path: str = ''


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = 'INFO'
    file: str = 'logs/crawler.log'
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


def _build_section(section_cls, data: Optional[Dict[str, Any]], name: str):
    """Build a section dataclass, rejecting keys it does not know."""
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping")

    known = {f.name for f in fields(section_cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{name}' section: {', '.join(sorted(unknown))}")

    return section_cls(**data)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from a YAML (or JSON) file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as file:
            config_data = yaml.safe_load(file) or {}

        self._config = parse_config(config_data)
        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


def parse_config(config_data: Dict[str, Any]) -> Config:
    """Build and validate a Config from already-parsed data."""
    if not isinstance(config_data, dict):
        raise ValueError("Configuration must be a mapping")

    config = Config(
        crawler=_build_section(CrawlerConfig, config_data.get('crawler'), 'crawler'),
        output=_build_section(OutputConfig, config_data.get('output'), 'output'),
        logging=_build_section(LoggingConfig, config_data.get('logging'), 'logging'),
        monitoring=_build_section(MonitoringConfig, config_data.get('monitoring'), 'monitoring'),
    )
    validate_config(config)
    return config


def validate_config(config: Config):
    """Validate configuration values."""
    crawler = config.crawler

    if not crawler.seed_urls:
        raise ValueError("At least one seed URL must be provided")

    if crawler.max_depth < 1:
        raise ValueError("max_depth must be at least 1")

    if crawler.timeout_seconds < 0:
        raise ValueError("timeout_seconds must be non-negative")

    if crawler.popular_word_count < 0:
        raise ValueError("popular_word_count must be non-negative")

    if crawler.throttle_delay_ms < 0:
        raise ValueError("throttle_delay_ms must be non-negative")

    if crawler.implementation not in IMPLEMENTATIONS:
        raise ValueError(f"implementation must be one of {', '.join(IMPLEMENTATIONS)}")

    if crawler.recursion_mode not in RECURSION_MODES:
        raise ValueError(f"recursion_mode must be one of {', '.join(RECURSION_MODES)}")

    for pattern in crawler.excluded_urls + crawler.excluded_words:
        try:
            re.compile(pattern)
        except re.error as e:
            raise ValueError(f"Invalid pattern {pattern!r}: {e}") from e

    logging.getLogger(__name__).debug("Configuration validation passed")


# Global config manager instance
config_manager = ConfigManager()


def get_config() -> Config:
    """Get the global configuration instance."""
    return config_manager.config


def load_config(config_path: str = "config.yaml") -> Config:
    """Load configuration from file."""
    global config_manager
    config_manager = ConfigManager(config_path)
    return config_manager.load_config()
