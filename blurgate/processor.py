"""
Batch processing orchestrator for the capture gate.

Coordinates image loading, blur checks, and file organization.
"""

import csv
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from .capture import CaptureMode
from .file_manager import FileManager
from .sharpness import BlurCheck, BlurDetector
from .utils import format_time, load_image_safely


@dataclass
class ProcessingResult:
    """Results from gating a single image."""
    image_path: str
    status: str  # 'sharp', 'blurry', 'unchecked', 'skipped', 'error'
    check: Optional[BlurCheck]
    error_message: Optional[str]
    processing_time: float

    @property
    def accepted(self) -> bool:
        return self.status in ('sharp', 'unchecked', 'skipped')


@dataclass
class ProcessingReport:
    """Summary report from batch processing."""
    total_images: int
    sharp_count: int
    blurry_count: int
    unchecked_count: int
    skipped_count: int
    error_count: int
    total_time: float
    average_time_per_image: float
    results: List[ProcessingResult]

    def format_summary(self) -> str:
        """Format summary as human-readable string."""
        lines = [
            "",
            "=" * 70,
            "PROCESSING SUMMARY",
            "=" * 70,
            f"Total Images Processed: {self.total_images}",
            "",
            f"Sharp:          {self.sharp_count:5d} ({self._percent(self.sharp_count)}%)",
            f"Blurry:         {self.blurry_count:5d} ({self._percent(self.blurry_count)}%)",
            f"Unchecked:      {self.unchecked_count:5d} ({self._percent(self.unchecked_count)}%)",
            f"Skipped:        {self.skipped_count:5d} ({self._percent(self.skipped_count)}%)",
            f"Errors:         {self.error_count:5d} ({self._percent(self.error_count)}%)",
            "",
            f"Total Time: {format_time(self.total_time)}",
            f"Average: {self.average_time_per_image:.3f}s per image",
            "=" * 70,
            ""
        ]
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Summary counts, without per-image results."""
        return {
            'total_images': self.total_images,
            'sharp_count': self.sharp_count,
            'blurry_count': self.blurry_count,
            'unchecked_count': self.unchecked_count,
            'skipped_count': self.skipped_count,
            'error_count': self.error_count,
            'total_time': self.total_time,
            'average_time_per_image': self.average_time_per_image
        }

    def _percent(self, count: int) -> str:
        if self.total_images == 0:
            return "0.0"
        return f"{(count / self.total_images) * 100:.1f}"


class BlurGateProcessor:
    """Gates every image in a directory and sorts the files."""

    def __init__(self, config: dict, logger: Optional[logging.Logger] = None,
                 mode: Optional[CaptureMode] = None):
        """
        Initialize batch processor.

        Args:
            config: Configuration dictionary
            logger: Optional logger instance
            mode: Capture mode (default: configured mode)
        """
        self.config = config
        self.logger = logger or logging.getLogger('BlurGate.Processor')

        self.detector = BlurDetector(config, self.logger)
        self.file_manager = FileManager(config, self.logger)

        self.mode = mode or CaptureMode(config['capture']['mode'])
        self.show_progress = config['logging']['show_progress']

        self.logger.info(f"Processor initialized ({self.mode.value} mode)")

    def process_all(self) -> ProcessingReport:
        """
        Process all images in input directory.

        Returns:
            ProcessingReport with results
        """
        start_time = time.time()

        if not self.config['advanced']['dry_run']:
            self.file_manager.create_output_structure()

        image_paths = self.file_manager.scan_input_directory()

        if not image_paths:
            self.logger.warning("No images found in input directory")
            return self._generate_report([], 0.0)

        results = []
        paths = tqdm(image_paths, desc="Gating", unit="img") if self.show_progress else image_paths
        for image_path in paths:
            results.append(self.process_single_image(image_path))

        total_time = time.time() - start_time
        report = self._generate_report(results, total_time)

        if self.config['advanced']['save_scores']:
            self.save_scores_csv(results)

        if self.config['output']['generate_report']:
            self.save_report(report)

        self.logger.info(f"Processing complete - {len(image_paths)} images in {format_time(total_time)}")

        return report

    def process_single_image(self, image_path: str) -> ProcessingResult:
        """
        Gate a single image and sort it.

        Args:
            image_path: Path to the image

        Returns:
            ProcessingResult object
        """
        start_time = time.time()

        try:
            image = load_image_safely(image_path, self.logger)
            if image is None:
                raise ValueError("Failed to load image")

            if self.mode is CaptureMode.LENIENT_SKIP_CHECK:
                check = None
                status = 'skipped'
            else:
                check = self.detector.check(image, channel_order='bgr')
                if not check.measured:
                    status = 'unchecked'
                else:
                    status = 'blurry' if check.is_blurry else 'sharp'

                self.logger.debug(
                    f"{Path(image_path).name}: {self.detector.get_result_summary(check)}"
                )

            result = ProcessingResult(
                image_path=image_path,
                status=status,
                check=check,
                error_message=check.error if check else None,
                processing_time=0.0
            )

            if not self.file_manager.organize_file(image_path, result.accepted):
                raise OSError(f"Could not sort {Path(image_path).name}")

            result.processing_time = time.time() - start_time
            return result

        except Exception as e:
            self.logger.error(f"Error processing {image_path}: {e}")

            if self.config['advanced']['error_handling'] == 'stop':
                raise

            return ProcessingResult(
                image_path=image_path,
                status='error',
                check=None,
                error_message=str(e),
                processing_time=time.time() - start_time
            )

    def _generate_report(self, results: List[ProcessingResult],
                         total_time: float) -> ProcessingReport:
        def count(status):
            return sum(1 for r in results if r.status == status)

        return ProcessingReport(
            total_images=len(results),
            sharp_count=count('sharp'),
            blurry_count=count('blurry'),
            unchecked_count=count('unchecked'),
            skipped_count=count('skipped'),
            error_count=count('error'),
            total_time=total_time,
            average_time_per_image=total_time / len(results) if results else 0.0,
            results=results
        )

    def save_scores_csv(self, results: List[ProcessingResult]) -> None:
        """
        Save per-image blur scores to CSV file.

        Args:
            results: List of ProcessingResult objects
        """
        csv_file = Path(self.config['advanced']['scores_file'])

        try:
            csv_file.parent.mkdir(parents=True, exist_ok=True)
            with open(csv_file, 'w', newline='', encoding='utf-8') as f:
                writer = csv.writer(f)
                writer.writerow([
                    'Image Path',
                    'Status',
                    'Laplacian Variance',
                    'Threshold',
                    'Is Blurry',
                    'Samples',
                    'Processing Time (s)',
                    'Error Message'
                ])

                for result in results:
                    check = result.check
                    variance = '' if check is None or check.variance is None else f"{check.variance:.2f}"
                    writer.writerow([
                        result.image_path,
                        result.status,
                        variance,
                        self.detector.threshold,
                        check.is_blurry if check else False,
                        check.sample_count if check else 0,
                        f"{result.processing_time:.3f}",
                        result.error_message or ''
                    ])

            self.logger.info(f"Scores saved to: {csv_file}")

        except OSError as e:
            self.logger.error(f"Failed to save scores CSV: {e}")

    def save_report(self, report: ProcessingReport) -> None:
        """
        Save processing report to file.

        Args:
            report: ProcessingReport object
        """
        output_dir = Path(self.config['paths']['output_dir'])

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            if self.config['output']['report_format'] == 'json':
                report_file = output_dir / 'processing_report.json'
                with open(report_file, 'w', encoding='utf-8') as f:
                    json.dump(report.to_dict(), f, indent=2)
            else:
                report_file = output_dir / 'processing_report.txt'
                with open(report_file, 'w', encoding='utf-8') as f:
                    f.write(report.format_summary())

            self.logger.info(f"Report saved to: {report_file}")

        except OSError as e:
            self.logger.error(f"Failed to save report: {e}")
