"""Unit tests for blurgate/processor.py and blurgate/file_manager.py."""

import csv
import json
from pathlib import Path

import cv2
import numpy as np
import pytest

from blurgate.capture import CaptureMode
from blurgate.file_manager import FileManager
from blurgate.processor import BlurGateProcessor, ProcessingReport


def _names(folder: Path) -> set:
    return {p.name for p in folder.iterdir()} if folder.exists() else set()


def test_process_all_sorts_photos(gate_config, photos_dir, tmp_path):
    report = BlurGateProcessor(gate_config).process_all()

    assert report.total_images == 4
    assert report.sharp_count == 1
    assert report.blurry_count == 1
    assert report.unchecked_count == 1
    assert report.error_count == 1
    assert report.skipped_count == 0

    out = tmp_path / 'out'
    assert _names(out / 'accepted') == {'sharp.png', 'tiny.png'}
    assert _names(out / 'blurry') == {'flat.png'}

    # copy is the default operation
    assert (photos_dir / 'sharp.png').exists()


def test_result_statuses(gate_config, photos_dir):
    report = BlurGateProcessor(gate_config).process_all()
    statuses = {Path(r.image_path).name: r.status for r in report.results}

    assert statuses == {
        'broken.jpg': 'error',
        'flat.png': 'blurry',
        'sharp.png': 'sharp',
        'tiny.png': 'unchecked',
    }

    tiny = next(r for r in report.results if r.image_path.endswith('tiny.png'))
    assert tiny.accepted
    assert 'no interior pixels' in tiny.error_message


def test_scores_csv_and_report_written(gate_config, photos_dir, tmp_path):
    BlurGateProcessor(gate_config).process_all()

    with open(tmp_path / 'out' / 'scores.csv', newline='', encoding='utf-8') as f:
        rows = list(csv.DictReader(f))

    assert len(rows) == 4
    by_name = {Path(r['Image Path']).name: r for r in rows}
    assert by_name['flat.png']['Is Blurry'] == 'True'
    assert float(by_name['sharp.png']['Laplacian Variance']) > 30
    assert by_name['tiny.png']['Laplacian Variance'] == ''

    summary = (tmp_path / 'out' / 'processing_report.txt').read_text(encoding='utf-8')
    assert 'PROCESSING SUMMARY' in summary
    assert 'Unchecked:' in summary


def test_json_report(gate_config, photos_dir, tmp_path):
    gate_config['output']['report_format'] = 'json'
    BlurGateProcessor(gate_config).process_all()

    data = json.loads((tmp_path / 'out' / 'processing_report.json').read_text(encoding='utf-8'))
    assert data['total_images'] == 4
    assert data['blurry_count'] == 1
    assert 'results' not in data


def test_lenient_mode_accepts_everything(gate_config, photos_dir, tmp_path):
    report = BlurGateProcessor(gate_config, mode=CaptureMode.LENIENT_SKIP_CHECK).process_all()

    assert report.skipped_count == 3
    assert report.blurry_count == 0
    assert _names(tmp_path / 'out' / 'accepted') == {'sharp.png', 'flat.png', 'tiny.png'}


def test_dry_run_leaves_files_alone(gate_config, photos_dir, tmp_path):
    gate_config['advanced']['dry_run'] = True
    gate_config['output']['file_operation'] = 'move'

    report = BlurGateProcessor(gate_config).process_all()

    assert report.blurry_count == 1
    assert not (tmp_path / 'out' / 'accepted').exists()
    assert (photos_dir / 'flat.png').exists()


def test_move_operation_removes_source(gate_config, photos_dir, tmp_path):
    gate_config['output']['file_operation'] = 'move'
    BlurGateProcessor(gate_config).process_all()

    assert not (photos_dir / 'flat.png').exists()
    assert (tmp_path / 'out' / 'blurry' / 'flat.png').exists()
    # Unreadable files stay where they were
    assert (photos_dir / 'broken.jpg').exists()


def test_stop_on_error(gate_config, photos_dir):
    gate_config['advanced']['error_handling'] = 'stop'
    with pytest.raises(ValueError, match="Failed to load image"):
        BlurGateProcessor(gate_config).process_all()


def test_empty_input_directory(gate_config, tmp_path):
    (tmp_path / 'photos').mkdir()
    report = BlurGateProcessor(gate_config).process_all()
    assert report.total_images == 0
    assert report.average_time_per_image == 0.0


def test_format_summary_handles_zero_images():
    report = ProcessingReport(0, 0, 0, 0, 0, 0, 0.0, 0.0, [])
    assert 'Sharp:              0 (0.0%)' in report.format_summary()


def test_scan_skips_output_inside_input(gate_config, tmp_path):
    photos = tmp_path / 'photos'
    (photos / 'out' / 'accepted').mkdir(parents=True)
    cv2.imwrite(str(photos / 'a.png'), np.zeros((20, 20, 3), dtype=np.uint8))
    cv2.imwrite(str(photos / 'out' / 'accepted' / 'b.png'), np.zeros((20, 20, 3), dtype=np.uint8))
    gate_config['paths']['output_dir'] = str(photos / 'out')

    paths = FileManager(gate_config).scan_input_directory()

    assert [Path(p).name for p in paths] == ['a.png']


def test_duplicate_names_get_counter(gate_config, tmp_path):
    photos = tmp_path / 'photos'
    for sub in ('day1', 'day2'):
        (photos / sub).mkdir(parents=True)
        (photos / sub / 'can.jpg').write_bytes(b'x')

    manager = FileManager(gate_config)
    first = manager.transfer_file(str(photos / 'day1' / 'can.jpg'), 'accepted')
    second = manager.transfer_file(str(photos / 'day2' / 'can.jpg'), 'accepted')

    assert first.name == 'can.jpg'
    assert second.name == 'can_1.jpg'


def test_preserve_structure(gate_config, tmp_path):
    gate_config['paths']['preserve_structure'] = True
    photos = tmp_path / 'photos'
    (photos / 'kitchen').mkdir(parents=True)

    target = FileManager(gate_config).get_output_path(str(photos / 'kitchen' / 'jar.png'), 'blurry')

    assert target == tmp_path / 'out' / 'blurry' / 'kitchen' / 'jar.png'


def test_unknown_category_raises(gate_config):
    with pytest.raises(ValueError):
        FileManager(gate_config).get_output_path('x.png', 'maybe')


def test_output_summary(gate_config, photos_dir):
    manager = FileManager(gate_config)
    BlurGateProcessor(gate_config).process_all()
    assert manager.get_output_summary() == {'accepted': 2, 'blurry': 1}
