"""
Main entry point for the blurgate capture gate.

Usage:
    blurgate --config config/config.yaml
    blurgate --config config/config.yaml --dry-run
    blurgate --capture photo.jpg
    blurgate --capture photo.jpg --mode lenient
"""

import argparse
import sys
import traceback
from pathlib import Path

import yaml

from . import __version__
from .camera import CameraError, CameraSource
from .capture import CaptureGate, CaptureMode, decode_data_url
from .config_loader import load_config, print_config_summary, validate_config
from .processor import BlurGateProcessor
from .utils import setup_logging, validate_paths


def parse_arguments(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Reject blurry photos before they are submitted for classification",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --config config/config.yaml
  %(prog)s --config config/config.yaml --dry-run --threshold 50
  %(prog)s --capture photo.jpg
  %(prog)s --capture photo.jpg --mode lenient
        """
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to configuration file (default: built-in defaults)'
    )

    parser.add_argument(
        '--input',
        type=str,
        default=None,
        help='Directory of photos to gate (overrides paths.input_dir)'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Check images but do not move/copy files'
    )

    parser.add_argument(
        '--threshold',
        type=float,
        default=None,
        help='Laplacian variance below which a photo is blurry'
    )

    parser.add_argument(
        '--scale',
        type=float,
        default=None,
        help='Downscale factor applied before measuring'
    )

    parser.add_argument(
        '--mode',
        choices=[m.value for m in CaptureMode],
        default=None,
        help='strict runs the blur check, lenient accepts every photo'
    )

    parser.add_argument(
        '--capture',
        type=str,
        metavar='OUTPUT',
        default=None,
        help='Grab one frame from the camera, gate it and save it as JPEG'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'blurgate {__version__}'
    )

    return parser.parse_args(argv)


def apply_overrides(config: dict, args) -> dict:
    """Apply CLI overrides on top of the loaded configuration."""
    if args.input is not None:
        config['paths']['input_dir'] = args.input
    if args.dry_run:
        config['advanced']['dry_run'] = True
    if args.threshold is not None:
        config['detection']['threshold'] = args.threshold
    if args.scale is not None:
        config['detection']['downscale_factor'] = args.scale
    if args.mode is not None:
        config['capture']['mode'] = args.mode

    validate_config(config)
    return config


def run_capture(config: dict, output: str, logger) -> int:
    """
    Capture a single frame from the camera and save it if accepted.

    Returns:
        Exit code
    """
    gate = CaptureGate(config, logger=logger)

    try:
        with CameraSource(config, logger) as camera:
            frame = camera.read_frame()
    except CameraError as e:
        logger.error(f"Camera Error: {e}")
        return 1

    # OpenCV cameras deliver BGR
    outcome = gate.submit(frame, channel_order='bgr')

    if not outcome.accepted:
        print(outcome.message)
        return 1

    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(decode_data_url(outcome.data_url))
    logger.info(f"Capture saved to: {output_path}")

    return 0


def run_batch(config: dict, logger) -> int:
    """
    Gate every photo in the input directory.

    Returns:
        Exit code
    """
    print_config_summary(config, logger)

    if not validate_paths(config, logger):
        logger.error("Path validation failed. Exiting.")
        return 1

    processor = BlurGateProcessor(config, logger)
    report = processor.process_all()

    print(report.format_summary())

    if report.error_count > 0:
        logger.warning(f"{report.error_count} images had errors")
        return 1

    return 0


def main(argv=None):
    """Main entry point."""
    args = parse_arguments(argv)

    try:
        config = apply_overrides(load_config(args.config), args)

    except FileNotFoundError as e:
        print(f"\nERROR: {e}")
        print("\nTo create a configuration file:")
        print("  1. Copy config/config.example.yaml to config/config.yaml")
        print("  2. Edit config/config.yaml with your paths and settings")
        print("  3. Run again")
        return 1

    except (ValueError, yaml.YAMLError) as e:
        print(f"\nCONFIGURATION ERROR: {e}")
        return 1

    try:
        logger = setup_logging(config)

        if args.capture:
            return run_capture(config, args.capture, logger)

        return run_batch(config, logger)

    except KeyboardInterrupt:
        print("\n\nProcessing interrupted by user")
        return 130

    except Exception as e:
        print(f"\nFATAL ERROR: {e}")
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
