"""
Configuration loader and validator for the capture gate.

Handles loading YAML configuration files, applying defaults, and validating settings.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .sharpness import CHANNEL_ORDERS, DEFAULT_BLUR_THRESHOLD, DEFAULT_DOWNSCALE_FACTOR

DEFAULTS = {
    'paths': {
        'input_dir': '',
        'output_dir': 'output',
        'preserve_structure': False,
        'log_file': None
    },
    'detection': {
        'threshold': DEFAULT_BLUR_THRESHOLD,
        'downscale_factor': DEFAULT_DOWNSCALE_FACTOR,
        'channel_order': 'rgb'
    },
    'capture': {
        'mode': 'strict',
        'jpeg_quality': 60,
        'camera_index': 0,
        'resolutions': [[1280, 720], None]
    },
    'processing': {
        'image_extensions': ['.jpg', '.jpeg', '.png', '.bmp', '.webp', '.tiff', '.tif']
    },
    'output': {
        'accepted_folder': 'accepted',
        'blurry_folder': 'blurry',
        'file_operation': 'copy',
        'generate_report': True,
        'report_format': 'txt'
    },
    'logging': {
        'level': 'INFO',
        'console_level': 'INFO',
        'file_level': 'DEBUG',
        'log_to_file': True,
        'log_dir': 'logs',
        'show_progress': True,
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'date_format': '%Y-%m-%d %H:%M:%S'
    },
    'advanced': {
        'dry_run': False,
        'save_scores': True,
        'scores_file': 'output/blur_scores.csv',
        'error_handling': 'skip'
    }
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file with validation.

    Args:
        config_path: Path to the configuration YAML file (None for defaults only)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
        ValueError: If configuration is invalid
    """
    if config_path is None:
        config = {}
    else:
        if not os.path.exists(config_path):
            raise FileNotFoundError(
                f"Configuration file not found: {config_path}\n"
                f"Copy config/config.example.yaml to config/config.yaml and edit it."
            )

        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)

        if config is None:
            raise ValueError("Configuration file is empty")

        if not isinstance(config, dict):
            raise ValueError("Configuration file must contain a mapping")

    config = apply_defaults(config)
    validate_config(config)

    return config


def apply_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply default values for missing configuration options.

    Args:
        config: Partial configuration dictionary

    Returns:
        Configuration dictionary with defaults applied
    """
    # User config takes precedence
    for section, section_defaults in DEFAULTS.items():
        if config.get(section) is None:
            config[section] = {}
        for key, default_value in section_defaults.items():
            if key not in config[section]:
                config[section][key] = copy.deepcopy(default_value)

    return config


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration values.

    Args:
        config: Configuration dictionary to validate

    Raises:
        ValueError: If configuration is invalid
    """
    if not config['paths']['output_dir']:
        raise ValueError("Output directory must be specified in config")

    detection = config['detection']
    if not isinstance(detection['threshold'], (int, float)) or detection['threshold'] < 0:
        raise ValueError("Detection threshold must be a non-negative number")

    scale = detection['downscale_factor']
    if not isinstance(scale, (int, float)) or scale <= 0 or scale > 1:
        raise ValueError("Downscale factor must be in (0, 1]")

    if detection['channel_order'] not in CHANNEL_ORDERS:
        raise ValueError(
            f"Channel order must be one of: {', '.join(CHANNEL_ORDERS)}"
        )

    capture = config['capture']
    valid_modes = ['strict', 'lenient']
    if capture['mode'] not in valid_modes:
        raise ValueError(
            f"Capture mode must be one of: {', '.join(valid_modes)}"
        )

    jpeg_quality = capture['jpeg_quality']
    if not _is_int(jpeg_quality) or not 1 <= jpeg_quality <= 100:
        raise ValueError("JPEG quality must be an integer between 1 and 100")

    camera_index = capture['camera_index']
    if not _is_int(camera_index) or camera_index < 0:
        raise ValueError("Camera index must be a non-negative integer")

    resolutions = capture['resolutions']
    if not isinstance(resolutions, (list, tuple)):
        raise ValueError("Capture resolutions must be a list")

    for resolution in resolutions:
        if resolution is None:
            continue
        if (not isinstance(resolution, (list, tuple)) or len(resolution) != 2
                or not all(_is_int(v) and v >= 1 for v in resolution)):
            raise ValueError("Each capture resolution must be [width, height] or null")

    output = config['output']
    valid_operations = ['move', 'copy']
    if output['file_operation'] not in valid_operations:
        raise ValueError(
            f"File operation must be one of: {', '.join(valid_operations)}"
        )

    valid_formats = ['txt', 'json']
    if output['report_format'] not in valid_formats:
        raise ValueError(
            f"Report format must be one of: {', '.join(valid_formats)}"
        )

    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    for key in ('level', 'console_level', 'file_level'):
        if str(config['logging'][key]).upper() not in valid_log_levels:
            raise ValueError(
                f"Log level must be one of: {', '.join(valid_log_levels)}"
            )

    valid_error_handling = ['skip', 'stop']
    if config['advanced']['error_handling'] not in valid_error_handling:
        raise ValueError(
            f"Error handling must be one of: {', '.join(valid_error_handling)}"
        )


def create_output_directories(config: Dict[str, Any]) -> None:
    """
    Create output directory structure based on configuration.

    Args:
        config: Configuration dictionary
    """
    output_dir = Path(config['paths']['output_dir'])
    output_config = config['output']

    output_dir.mkdir(parents=True, exist_ok=True)
    (output_dir / output_config['accepted_folder']).mkdir(exist_ok=True)
    (output_dir / output_config['blurry_folder']).mkdir(exist_ok=True)


def get_config_value(config: Dict[str, Any], key_path: str, default=None) -> Any:
    """
    Safely get a configuration value using dot notation.

    Args:
        config: Configuration dictionary
        key_path: Dot-separated path to the value (e.g., 'detection.threshold')
        default: Default value if key doesn't exist

    Returns:
        Configuration value or default
    """
    value = config

    for key in key_path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


def print_config_summary(config: Dict[str, Any], logger: logging.Logger) -> None:
    """
    Print a summary of key configuration settings.

    Args:
        config: Configuration dictionary
        logger: Logger instance
    """
    logger.info("=" * 70)
    logger.info("Configuration Summary")
    logger.info("=" * 70)

    logger.info(f"Input Directory: {config['paths']['input_dir']}")
    logger.info(f"Output Directory: {config['paths']['output_dir']}")

    logger.info(f"Blur Threshold: {config['detection']['threshold']}")
    logger.info(f"Downscale Factor: {config['detection']['downscale_factor']}")
    logger.info(f"Capture Mode: {config['capture']['mode']}")

    logger.info(f"File Operation: {config['output']['file_operation']}")

    if config['advanced']['dry_run']:
        logger.warning("DRY RUN MODE - Files will not be moved/copied")

    logger.info("=" * 70)
