"""
File management module for sorting gated photos.

Handles scanning input directories and moving/copying files into the
accepted and blurry output folders.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional

from .utils import validate_image_file


class FileManager:
    """Manages file operations for batch gating."""

    def __init__(self, config: dict, logger: Optional[logging.Logger] = None):
        """
        Initialize file manager.

        Args:
            config: Configuration dictionary
            logger: Optional logger instance
        """
        self.config = config
        self.logger = logger or logging.getLogger('BlurGate.FileManager')

        self.input_dir = Path(config['paths']['input_dir'])
        self.output_dir = Path(config['paths']['output_dir'])
        self.preserve_structure = config['paths']['preserve_structure']

        self.folders = {
            'accepted': config['output']['accepted_folder'],
            'blurry': config['output']['blurry_folder'],
        }

        self.file_operation = config['output']['file_operation']
        self.image_extensions = config['processing']['image_extensions']
        self.dry_run = config['advanced']['dry_run']

        self.logger.debug(f"File manager initialized - Input: {self.input_dir}, "
                          f"Output: {self.output_dir}, Operation: {self.file_operation}")

    def scan_input_directory(self) -> List[str]:
        """
        Recursively scan input directory for image files.

        Files already sorted into the output folders are skipped when the
        output directory lives inside the input directory.

        Returns:
            Sorted list of paths to image files
        """
        self.logger.info(f"Scanning input directory: {self.input_dir}")

        output_root = self.output_dir.resolve()
        image_paths = []

        for root, dirs, files in os.walk(self.input_dir):
            dirs[:] = [d for d in dirs if (Path(root) / d).resolve() != output_root]
            for file in files:
                file_path = os.path.join(root, file)
                if validate_image_file(file_path, self.image_extensions):
                    image_paths.append(file_path)

        image_paths.sort()
        self.logger.info(f"Found {len(image_paths)} images")

        return image_paths

    def create_output_structure(self) -> None:
        """Create output directory structure."""
        for folder in self.folders.values():
            (self.output_dir / folder).mkdir(parents=True, exist_ok=True)

    def get_output_path(self, original_path: str, category: str) -> Path:
        """
        Calculate output path for a file based on category.

        Args:
            original_path: Original file path
            category: Category ('accepted' or 'blurry')

        Returns:
            Target output path
        """
        if category not in self.folders:
            raise ValueError(f"Unknown category: {category}")

        original = Path(original_path)
        category_dir = self.output_dir / self.folders[category]

        if self.preserve_structure:
            try:
                target = category_dir / original.relative_to(self.input_dir)
            except ValueError:
                # Not under input_dir, fall back to flat layout
                target = category_dir / original.name
        else:
            target = category_dir / original.name

        target.parent.mkdir(parents=True, exist_ok=True)

        return target

    def handle_duplicate_filename(self, target_path: Path) -> Path:
        """
        Handle duplicate filenames by appending a counter.

        Args:
            target_path: Proposed target path

        Returns:
            Available target path (may have counter appended)
        """
        if not target_path.exists():
            return target_path

        counter = 1
        while True:
            new_path = target_path.parent / f"{target_path.stem}_{counter}{target_path.suffix}"
            if not new_path.exists():
                return new_path
            counter += 1

    def transfer_file(self, src: str, category: str) -> Optional[Path]:
        """
        Move or copy a file into its category folder.

        Args:
            src: Source file path
            category: Category ('accepted' or 'blurry')

        Returns:
            Destination path, or None if the operation failed
        """
        src_path = Path(src)
        if not src_path.exists():
            self.logger.error(f"Source file not found: {src}")
            return None

        try:
            target_path = self.handle_duplicate_filename(self.get_output_path(src, category))

            if self.file_operation == 'move':
                shutil.move(str(src_path), str(target_path))
            else:
                shutil.copy2(str(src_path), str(target_path))

        except OSError as e:
            self.logger.error(f"Failed to {self.file_operation} {src}: {e}")
            return None

        self.logger.debug(f"{self.file_operation.capitalize()}: {src_path.name} → {category}/")
        return target_path

    def organize_file(self, image_path: str, accepted: bool) -> bool:
        """
        Sort a file by its gate decision.

        Args:
            image_path: Path to the image file
            accepted: True if the capture gate accepted the image

        Returns:
            True if successful, False otherwise
        """
        category = 'accepted' if accepted else 'blurry'

        if self.dry_run:
            self.logger.info(f"[DRY RUN] Would {self.file_operation} to {category}/: {Path(image_path).name}")
            return True

        return self.transfer_file(image_path, category) is not None

    def get_output_summary(self) -> dict:
        """
        Get summary of files in output directories.

        Returns:
            Dictionary with counts for each category
        """
        summary = {}

        for category, folder in self.folders.items():
            folder_path = self.output_dir / folder
            if folder_path.exists():
                summary[category] = sum(1 for p in folder_path.rglob('*') if p.is_file())
            else:
                summary[category] = 0

        return summary
