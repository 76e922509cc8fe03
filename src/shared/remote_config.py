"""
Remote settings overlay.

A local settings file may point at a shared YAML/JSON document through
`config_url`; that document is downloaded and deep-merged over the local one,
so a fleet of workstations can share engine paths and module lists.
"""

import logging
from typing import Dict, Any, Optional
from pathlib import Path

import requests
import yaml

from shared.logging import get_logger

logger = get_logger(__name__)


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge override dict into base dict.

    Args:
        base: Base configuration
        override: Configuration to merge in (overrides base)

    Returns:
        Merged configuration
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def download_remote_config(
    config_url: str,
    timeout: int = 10,
    logger_instance: Optional[logging.Logger] = None
) -> Optional[Dict[str, Any]]:
    """
    Download and parse remote settings from URL.

    Args:
        config_url: URL to download settings from
        timeout: Request timeout in seconds
        logger_instance: Optional logger to use

    Returns:
        Parsed settings dict, or None if the download or parse failed
    """
    log = logger_instance or logger

    if not config_url:
        return None

    try:
        log.info(f"[+] Downloading remote settings: {config_url}")
        response = requests.get(config_url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        log.error(f"[ERROR] Failed to download remote settings: {e}")
        return None

    # JSON first, YAML as fallback
    try:
        remote_config = response.json()
        log.info("[OK] Remote settings parsed as JSON")
    except ValueError:
        try:
            remote_config = yaml.safe_load(response.text)
        except yaml.YAMLError as e:
            log.error(f"[ERROR] Remote settings are neither JSON nor YAML: {e}")
            return None
        log.info("[OK] Remote settings parsed as YAML")

    if not isinstance(remote_config, dict):
        log.warning("[WARN] Remote settings are not a mapping, ignoring")
        return None

    return remote_config


def load_config_with_remote(
    config_path: Path,
    logger_instance: Optional[logging.Logger] = None
) -> Dict[str, Any]:
    """
    Load settings from YAML file and merge remote settings if config_url is set.

    Args:
        config_path: Path to the settings YAML
        logger_instance: Optional logger to use

    Returns:
        Merged settings

    Raises:
        FileNotFoundError: If the settings file doesn't exist
    """
    log = logger_instance or logger

    if not config_path.exists():
        raise FileNotFoundError(f"Settings file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f) or {}

    config_url = str(config.get('config_url') or '').strip()
    if not config_url:
        return config

    remote_config = download_remote_config(config_url, logger_instance=log)
    if not remote_config:
        log.warning("Continuing with local settings only")
        return config

    merged = deep_merge(config, remote_config)
    log.info(f"[OK] Remote settings merged: {sorted(remote_config.keys())}")
    return merged
