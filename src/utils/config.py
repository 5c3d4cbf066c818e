# src/utils/config.py - Configuration management
"""
Configuration management for the analyzer.
Loads and validates configuration from YAML files.
"""

import copy
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging


class Config:
    """
    Configuration manager for the analyzer.

    Loads configuration from YAML files and provides access to settings.
    """

    DEFAULT_CONFIG = {
        'log': {
            'timestamp_format': '%Y-%m-%d %H:%M:%S,%f',
            'timestamp_length': 23,
            'default_logger': 'PROFILING',
            'profiling_logger': 'PROFILING',
        },
        'profiling': {
            'idle_gap_ms': 60000,
            'mark_after_lines': 500000,
        },
        'histogram': {
            'bucket_size_us': 10000,
            'upper_boundary_us': 1000000,
            'per_batch': False,
            'per_thread_type': True,
            'exclude': [],
        },
        'invocations': {
            'root_methods': [],
            'selected_methods': [],
            'long_threshold_us': 50000,
            'long_include': [],
            'long_exclude': [],
        },
        'categories': [],
        'subcategories': [],
        'output': {
            'directory': None,
        },
    }

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_file: Path to YAML configuration file
        """
        self.logger = logging.getLogger(__name__)
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)

        if config_file:
            self.load_from_file(config_file)

    def load_from_file(self, config_file: str):
        """
        Load configuration from YAML file.

        Args:
            config_file: Path to YAML file
        """
        config_path = Path(config_file)

        if not config_path.exists():
            self.logger.warning(f"Config file not found: {config_file}, using defaults")
            return

        try:
            with open(config_path, 'r') as f:
                loaded_config = yaml.safe_load(f) or {}

            # Merge with defaults
            self._merge_config(self.config, loaded_config)
            self.logger.info(f"Loaded configuration from {config_file}")

        except Exception as e:
            self.logger.error(f"Failed to load config: {e}")
            raise

    def _merge_config(self, base: Dict, override: Dict):
        """
        Recursively merge configuration dictionaries.

        Lists are replaced, not concatenated, so an ordered list such as
        ``categories`` is always taken as a whole from the override.
        """
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._merge_config(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation key.

        Args:
            key: Configuration key (e.g., 'histogram.bucket_size_us')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any):
        """
        Set configuration value by dot-notation key.

        Args:
            key: Configuration key (e.g., 'histogram.per_batch')
            value: Value to set
        """
        keys = key.split('.')
        config = self.config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def to_dict(self) -> Dict:
        """
        Get full configuration as dictionary.

        Returns:
            Configuration dictionary
        """
        return copy.deepcopy(self.config)

