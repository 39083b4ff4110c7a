"""
Configuration Module
====================

Default settings for the retail analytics pipeline and YAML overrides.

Usage:
    from retail_insights.common.config import load_config

    config = load_config("config/settings.yaml")
    guest_id = config['data']['guest_customer_id']
"""

import copy
from pathlib import Path
from typing import Optional, Dict, Any
import yaml
from loguru import logger


DEFAULT_CONFIG: Dict[str, Any] = {
    'data': {
        'guest_customer_id': 'Guest',
        'invoice_length': 6,
        'date_format': None,
        'excluded_description_pattern': (
            'POST|MANUAL|BANK|ADJUST|DISCOUNT|SAMPLE|CARRIAGE|AMAZON|VOUCHER|TEST'
        ),
        'required_columns': [
            'InvoiceNo', 'StockCode', 'Description', 'Quantity',
            'InvoiceDate', 'UnitPrice', 'CustomerID', 'Country'
        ],
        'missing_value_threshold': 0.3,
    },
    'segmentation': {
        'n_bins': 5,
        'churn_days': 180,
        'top_n': 2,
        'segment_thresholds': [
            [13, 'Champions'],
            [10, 'Loyal Customers'],
            [7, 'Potential Loyalists'],
            [4, 'At Risk'],
        ],
        'default_segment': 'Lost',
    },
    'metrics': {
        'top_n': 10,
        'cross_top_n': 2,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file on top of the defaults.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Configuration dictionary

    Raises:
        ValueError: If the file does not hold a YAML mapping
    """
    if config_path and Path(config_path).exists():
        with open(config_path, 'r') as f:
            user_config = yaml.safe_load(f) or {}

        if not isinstance(user_config, dict):
            raise ValueError(f"Configuration in {config_path} must be a mapping")

        logger.info(f"Loaded configuration from {config_path}")
        return _merge(DEFAULT_CONFIG, user_config)

    if config_path:
        logger.warning(f"Config file not found: {config_path}. Using defaults")
    return copy.deepcopy(DEFAULT_CONFIG)
