"""
Shared pytest fixtures for the blurgate test suite.

- gate_config: a fully defaulted configuration rooted in tmp_path, with
  console-only logging and no progress bar
- photos_dir: an input directory holding one sharp, one flat, one tiny and
  one unreadable photo
"""

import cv2
import numpy as np
import pytest

from blurgate.config_loader import apply_defaults, validate_config


def _noise_frame(h: int = 100, w: int = 100, seed: int = 0) -> np.ndarray:
    """Return a uniformly random 3-channel frame."""
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(h, w, 3), dtype=np.uint8)


def _solid_frame(h: int = 100, w: int = 100, value: int = 128) -> np.ndarray:
    """Return a solid gray 3-channel frame."""
    return np.full((h, w, 3), value, dtype=np.uint8)


@pytest.fixture
def gate_config(tmp_path):
    config = apply_defaults({
        'paths': {
            'input_dir': str(tmp_path / 'photos'),
            'output_dir': str(tmp_path / 'out'),
        },
        'logging': {
            'show_progress': False,
            'log_to_file': False,
        },
        'advanced': {
            'scores_file': str(tmp_path / 'out' / 'scores.csv'),
        },
    })
    validate_config(config)
    return config


@pytest.fixture
def photos_dir(tmp_path):
    photos = tmp_path / 'photos'
    photos.mkdir()
    cv2.imwrite(str(photos / 'sharp.png'), _noise_frame(200, 200))
    cv2.imwrite(str(photos / 'flat.png'), _solid_frame(200, 200))
    cv2.imwrite(str(photos / 'tiny.png'), _solid_frame(4, 4))
    (photos / 'broken.jpg').write_bytes(b'not an image')
    (photos / 'notes.txt').write_text('ignored')
    return photos
