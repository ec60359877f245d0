#!/usr/bin/env python3
"""
Configuration management for the housing matching web application.
"""

import os
from pathlib import Path
from functools import lru_cache

from core.config_loader import AppConfig, load_config


@lru_cache()
def get_config() -> AppConfig:
    """
    Get application configuration with caching.

    Loads from the YAML file named by HOUSING_CONFIG (default config.yaml at
    the project root) and applies environment variable overrides.

    Returns:
        AppConfig: The application configuration.
    """
    config_path = os.environ.get("HOUSING_CONFIG", str(get_project_root() / "config.yaml"))
    config = load_config(config_path)

    # Web server overrides
    if 'WEB_HOST' in os.environ:
        config.web.host = os.environ['WEB_HOST']
    if 'WEB_PORT' in os.environ:
        config.web.port = int(os.environ['WEB_PORT'])

    return config


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent.parent
