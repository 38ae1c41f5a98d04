"""
config_loader.py
-----------------
Singleton config loader. Reads config.yaml once and caches it.
All modules access configuration through this, never hardcoded values.

Detection thresholds come in named presets (see `detection_presets` in
config.yaml). Callers either name a preset explicitly or get the one marked
`active_preset`.
"""

import os
import yaml
from typing import Any, Dict


_CONFIG_CACHE: Dict[str, Any] = {}


def load_config(config_path: str | None = None) -> Dict[str, Any]:
    """
    Load and cache the YAML configuration file.

    Args:
        config_path: Path to config.yaml. Defaults to config/ relative to this file.

    Returns:
        Full config dictionary.
    """
    global _CONFIG_CACHE

    if _CONFIG_CACHE:
        return _CONFIG_CACHE

    if config_path is None:
        config_path = os.path.join(os.path.dirname(__file__), "config.yaml")

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        _CONFIG_CACHE = yaml.safe_load(f)

    return _CONFIG_CACHE


def get_active_preset_name() -> str:
    """Returns the name of the default detection preset."""
    return load_config()["active_preset"]


def get_all_preset_names() -> list[str]:
    """Returns all configured detection preset names."""
    return list(load_config()["detection_presets"].keys())


def get_detection_config(preset: str | None = None) -> Dict[str, Any]:
    """
    Returns the threshold set for a detection preset.

    Args:
        preset: Preset name. If None, uses `active_preset`.

    Raises:
        KeyError: If the preset is not in the config.
    """
    presets = load_config()["detection_presets"]
    name = preset or get_active_preset_name()
    if name not in presets:
        raise KeyError(
            f"No detection preset '{name}'. "
            f"Available: {list(presets.keys())}"
        )
    return presets[name]


def get_frequency_fallbacks() -> Dict[str, Any]:
    """Returns the bi-weekly and frequent-payment fallback rules."""
    return load_config()["frequency_fallbacks"]


def get_status_config() -> Dict[str, Any]:
    """Returns the status_evaluation block."""
    return load_config()["status_evaluation"]


def get_same_day_config() -> Dict[str, Any]:
    """Returns the same_day_detection block."""
    return load_config()["same_day_detection"]


def get_due_date_config() -> Dict[str, Any]:
    """Returns the due_date block."""
    return load_config()["due_date"]


def get_normalization_config() -> Dict[str, Any]:
    """Returns the merchant_normalization word lists."""
    return load_config()["merchant_normalization"]


def get_classification_config() -> Dict[str, Any]:
    """Returns the merchant_classification tiers and category tables."""
    return load_config()["merchant_classification"]


def get_bill_categories() -> list[Dict[str, Any]]:
    """Returns the ordered bill category keyword table."""
    return load_config()["bill_categories"]


def get_bill_naming_config() -> Dict[str, Any]:
    """Returns category defaults and bill name suffixes."""
    config = load_config()
    return {
        "default_category": config["default_bill_category"],
        "suffixes": config["bill_name_suffixes"],
        "default_bank_name": config["default_bank_name"],
    }


def get_quick_heuristic_config() -> Dict[str, Any]:
    """Returns the quick_heuristic block."""
    return load_config()["quick_heuristic"]


def get_scheduler_config() -> Dict[str, Any]:
    """Returns the scheduler block."""
    return load_config()["scheduler"]


def get_bill_insights_config() -> Dict[str, Any]:
    """Returns the bill_insights block."""
    return load_config()["bill_insights"]


def get_monitoring_config() -> Dict[str, Any]:
    """Returns detection monitoring config."""
    return load_config()["detection_monitoring"]


def reset_config() -> None:
    """Clears cached config. Useful for testing."""
    global _CONFIG_CACHE
    _CONFIG_CACHE = {}
