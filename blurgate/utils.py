"""
Utility functions for the capture gate.

Includes logging setup, image loading, path validation and formatting
helpers.
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

DEFAULT_IMAGE_EXTENSIONS = ['.jpg', '.jpeg', '.png', '.bmp', '.webp', '.tiff', '.tif']


def setup_logging(config: dict) -> logging.Logger:
    """
    Configure logging for console and file output.

    Args:
        config: Configuration dictionary containing logging settings

    Returns:
        Configured logger instance
    """
    logging_config = config.get('logging', {})
    log_level = logging_config.get('level', 'INFO')
    console_level = logging_config.get('console_level', log_level)
    file_level = logging_config.get('file_level', 'DEBUG')
    log_format = logging_config.get(
        'format',
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    date_format = logging_config.get('date_format', '%Y-%m-%d %H:%M:%S')

    logger = logging.getLogger('BlurGate')
    logger.setLevel(logging.DEBUG)  # Handlers do the filtering

    # Avoid duplicate handlers on repeated setup
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, console_level.upper()))
    console_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
    logger.addHandler(console_handler)

    if not logging_config.get('log_to_file', True):
        logger.info(f"Logging initialized - Console: {console_level}")
        return logger

    log_file = config.get('paths', {}).get('log_file')
    if log_file is None:
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        log_dir = Path(logging_config.get('log_dir', 'logs'))
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f'blurgate_{timestamp}.log'

    file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
    file_handler.setLevel(getattr(logging, file_level.upper()))
    file_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
    logger.addHandler(file_handler)

    logger.info(f"Logging initialized - Console: {console_level}, File: {file_level}")
    logger.info(f"Log file: {log_file}")

    return logger


def validate_image_file(path: str, supported_extensions: list = None) -> bool:
    """
    Validate if a file is a supported image format.

    Args:
        path: Path to the image file
        supported_extensions: List of supported file extensions (optional)

    Returns:
        True if the file has a supported extension, False otherwise
    """
    if supported_extensions is None:
        supported_extensions = DEFAULT_IMAGE_EXTENSIONS

    file_ext = Path(path).suffix.lower()
    return file_ext in [ext.lower() for ext in supported_extensions]


def load_image_safely(path: str, logger: Optional[logging.Logger] = None) -> Optional[np.ndarray]:
    """
    Load an image from disk.

    Reads via a byte buffer so that non-ASCII paths work on every platform.

    Args:
        path: Path to the image file
        logger: Optional logger for debugging

    Returns:
        Image as numpy array in BGR format (OpenCV standard), or None if failed
    """
    if logger is None:
        logger = logging.getLogger('BlurGate')

    if not os.path.exists(path):
        logger.error(f"File not found: {path}")
        return None

    try:
        data = np.fromfile(path, dtype=np.uint8)
        image = cv2.imdecode(data, cv2.IMREAD_COLOR)
    except (OSError, cv2.error) as e:
        logger.error(f"Error loading image {path}: {e}")
        return None

    if image is None:
        logger.error(f"Failed to decode image: {path}")
        return None

    logger.debug(f"Image loaded successfully: {image.shape}")
    return image


def format_time(seconds: float) -> str:
    """
    Format seconds into human-readable time string.

    Args:
        seconds: Time in seconds

    Returns:
        Formatted time string (e.g., "1h 23m 45s" or "12.3s")
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = seconds % 60
        return f"{minutes}m {secs:.1f}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        secs = seconds % 60
        return f"{hours}h {minutes}m {secs:.0f}s"


def validate_paths(config: dict, logger: logging.Logger) -> bool:
    """
    Validate that required paths exist or can be created.

    Args:
        config: Configuration dictionary
        logger: Logger instance

    Returns:
        True if all paths are valid, False otherwise
    """
    paths_config = config.get('paths', {})

    input_dir = paths_config.get('input_dir')
    if not input_dir:
        logger.error("Input directory not specified in config")
        return False

    if not os.path.exists(input_dir):
        logger.error(f"Input directory does not exist: {input_dir}")
        return False

    if not os.path.isdir(input_dir):
        logger.error(f"Input path is not a directory: {input_dir}")
        return False

    logger.info(f"Input directory validated: {input_dir}")

    output_dir = paths_config.get('output_dir')
    if not output_dir:
        logger.error("Output directory not specified in config")
        return False

    try:
        os.makedirs(output_dir, exist_ok=True)
        logger.info(f"Output directory ready: {output_dir}")
    except OSError as e:
        logger.error(f"Cannot create output directory {output_dir}: {e}")
        return False

    return True
