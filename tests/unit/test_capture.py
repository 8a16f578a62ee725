"""Unit tests for blurgate/capture.py."""

from unittest.mock import patch

import cv2
import numpy as np
import pytest

from blurgate.capture import (
    BLURRY_RETRY_MESSAGE,
    ENCODE_FAILED_MESSAGE,
    CaptureError,
    CaptureGate,
    CaptureMode,
    decode_data_url,
    encode_data_url,
)
from blurgate.sharpness import BlurDetector


def _solid_frame(h: int = 100, w: int = 100, value: int = 128) -> np.ndarray:
    return np.full((h, w, 3), value, dtype=np.uint8)


def _noise_frame(h: int = 100, w: int = 100, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(h, w, 3), dtype=np.uint8)


def _decode(data_url: str) -> np.ndarray:
    raw = np.frombuffer(decode_data_url(data_url), dtype=np.uint8)
    return cv2.imdecode(raw, cv2.IMREAD_COLOR)


def test_strict_mode_rejects_blurry_frame():
    outcome = CaptureGate().submit(_solid_frame(), CaptureMode.STRICT)
    assert not outcome.accepted
    assert outcome.message == BLURRY_RETRY_MESSAGE
    assert outcome.data_url is None
    assert outcome.check.is_blurry


def test_strict_mode_accepts_sharp_frame():
    outcome = CaptureGate().submit(_noise_frame(), CaptureMode.STRICT)
    assert outcome.accepted
    assert outcome.message is None
    assert outcome.data_url.startswith("data:image/jpeg;base64,")
    assert decode_data_url(outcome.data_url)[:2] == b"\xff\xd8"
    assert not outcome.check.is_blurry


def test_lenient_mode_skips_blur_check():
    outcome = CaptureGate().submit(_solid_frame(), CaptureMode.LENIENT_SKIP_CHECK)
    assert outcome.accepted
    assert outcome.check is None
    assert _decode(outcome.data_url).shape == (100, 100, 3)


def test_configured_mode_is_default():
    gate = CaptureGate({'capture': {'mode': 'lenient'}})
    assert gate.default_mode is CaptureMode.LENIENT_SKIP_CHECK
    assert gate.submit(_solid_frame()).accepted


def test_default_mode_is_strict():
    gate = CaptureGate()
    assert gate.default_mode is CaptureMode.STRICT
    assert not gate.submit(_solid_frame()).accepted


def test_degenerate_frame_is_accepted_in_strict_mode():
    outcome = CaptureGate().submit(_solid_frame(h=2, w=2, value=0), CaptureMode.STRICT)
    assert outcome.accepted
    assert outcome.check.error is not None


def test_injected_detector_is_used():
    gate = CaptureGate(detector=BlurDetector({'detection': {'threshold': 1e9}}))
    outcome = gate.submit(_noise_frame(), CaptureMode.STRICT)
    assert not outcome.accepted
    assert outcome.message == BLURRY_RETRY_MESSAGE


def test_rgb_frames_are_encoded_in_camera_order():
    frame = _solid_frame()
    frame[..., :] = (255, 0, 0)  # red in RGB order
    outcome = CaptureGate().submit(frame, CaptureMode.LENIENT_SKIP_CHECK, channel_order='rgb')
    decoded = _decode(outcome.data_url)
    assert decoded[..., 2].mean() > 200
    assert decoded[..., 0].mean() < 50


def test_encoder_failure_rejects_capture():
    with patch("blurgate.capture.cv2.imencode", return_value=(False, None)):
        outcome = CaptureGate().submit(_noise_frame(), CaptureMode.STRICT)
    assert not outcome.accepted
    assert outcome.message == ENCODE_FAILED_MESSAGE
    assert outcome.check is not None


def test_jpeg_quality_is_configurable():
    frame = _noise_frame()
    low = CaptureGate({'capture': {'jpeg_quality': 10}}).submit(frame)
    high = CaptureGate({'capture': {'jpeg_quality': 95}}).submit(frame)
    assert len(low.data_url) < len(high.data_url)


def test_encode_data_url_drops_alpha():
    bgra = np.concatenate([_noise_frame(), np.full((100, 100, 1), 255, dtype=np.uint8)], axis=2)
    assert _decode(encode_data_url(bgra)).shape == (100, 100, 3)


@pytest.mark.parametrize("frame", [None, np.zeros((0, 0, 3), dtype=np.uint8)])
def test_encode_data_url_rejects_empty_input(frame):
    with pytest.raises(CaptureError):
        encode_data_url(frame)


@pytest.mark.parametrize("value", ["not a url", "data:image/jpeg,abc", "http://x/y.jpg"])
def test_decode_data_url_rejects_non_base64_urls(value):
    with pytest.raises(CaptureError):
        decode_data_url(value)


@pytest.mark.parametrize("channel_order", ['rgb', 'bgr'])
def test_submit_uses_configured_channel_order(channel_order):
    gate = CaptureGate({'detection': {'channel_order': channel_order, 'threshold': 0}})
    frame = _solid_frame(value=0)
    frame[:, ::2, 0] = 255

    outcome = gate.submit(frame, CaptureMode.STRICT)

    assert outcome.accepted
    assert outcome.check.variance == pytest.approx(gate.detector.check(frame).variance)


def test_configured_rgb_frames_are_encoded_in_camera_order():
    gate = CaptureGate({'detection': {'channel_order': 'rgb'}})
    frame = _solid_frame()
    frame[..., :] = (255, 0, 0)
    decoded = _decode(gate.submit(frame, CaptureMode.LENIENT_SKIP_CHECK).data_url)
    assert decoded[..., 2].mean() > 200
    assert decoded[..., 0].mean() < 50


def test_explicit_channel_order_overrides_config():
    gate = CaptureGate({'detection': {'channel_order': 'rgb', 'threshold': 0}})
    frame = _solid_frame(value=0)
    frame[:, ::2, 0] = 255

    outcome = gate.submit(frame, CaptureMode.STRICT, channel_order='bgr')

    assert outcome.check.variance == pytest.approx(
        gate.detector.check(frame, channel_order='bgr').variance)
    assert outcome.check.variance != pytest.approx(gate.detector.check(frame).variance)


@pytest.mark.parametrize("payload", ["abc", "not*base64!", "QUJD\x00"])
def test_decode_data_url_rejects_malformed_payload(payload):
    with pytest.raises(CaptureError, match="Malformed"):
        decode_data_url("data:image/jpeg;base64," + payload)
