"""
Tests for the fusion policy.
"""

import pytest

from fusion.policy import FusionPolicy
from models.detection import Detection
from models.recognition import RecognitionResult


def _det(conf, class_id=0, class_name="biogesic-para"):
    return Detection.from_xyxy(10, 10, 50, 50, confidence=conf, class_id=class_id, class_name=class_name)


def _ocr(text, brand=None, expiry=None):
    return RecognitionResult(
        success=True, recognized_text=text, brand_name=brand, expiry_date=expiry
    )


@pytest.fixture
def policy():
    return FusionPolicy(
        {"biogesic-para": ["Biogesic"], "1": ["ritemed"]},
        high_confidence_threshold=0.85,
        confidence_boost=0.05,
        debounce_seconds=3.0,
    )


class TestAdjustedConfidence:
    def test_keyword_match_boosts(self, policy):
        assert policy.adjusted_confidence(_det(0.82), _ocr("BIOGESIC\n500mg")) == pytest.approx(0.87)

    def test_no_match_no_boost(self, policy):
        assert policy.adjusted_confidence(_det(0.82), _ocr("NEOZEP")) == pytest.approx(0.82)

    def test_failed_ocr_gives_no_boost(self, policy):
        failed = RecognitionResult.failure("Error in text recognition: boom")
        assert policy.adjusted_confidence(_det(0.82), failed) == pytest.approx(0.82)

    def test_clamped_to_one(self, policy):
        assert policy.adjusted_confidence(_det(0.98), _ocr("biogesic")) == 1.0

    def test_class_id_keywords(self, policy):
        det = _det(0.8, class_id=1, class_name="unlisted")
        assert policy.adjusted_confidence(det, _ocr("RiteMed Paracetamol")) == pytest.approx(0.85)

    def test_boost_never_lowers(self, policy):
        for conf in (0.0, 0.3, 0.84, 1.0):
            det = _det(conf)
            assert policy.adjusted_confidence(det, _ocr("biogesic")) >= conf


class TestConfirmation:
    def test_boost_crosses_threshold(self, policy):
        det = _det(0.82)
        assert not policy.is_confirmed(det, _ocr("nothing"))
        assert policy.is_confirmed(det, _ocr("Biogesic"))

    def test_threshold_is_strict(self, policy):
        assert not policy.is_confirmed(_det(0.85), _ocr("nothing"))

    def test_fused_detection_uses_adjusted_confidence(self, policy):
        fused = policy.fuse([_det(0.82)], _ocr("biogesic"))[0]
        assert policy.is_confirmed(fused)


class TestFuse:
    def test_attaches_ocr_fields(self, policy):
        dets = [_det(0.9), _det(0.8, class_id=1, class_name="ritemed-para")]

        fused = policy.fuse(dets, _ocr("BIOGESIC", brand="BIOGESIC", expiry="12/2027"))

        assert all(d.recognized_brand_name == "BIOGESIC" for d in fused)
        assert all(d.expiry_date == "12/2027" for d in fused)
        assert fused[0].adjusted_confidence == pytest.approx(0.95)
        assert fused[1].adjusted_confidence == pytest.approx(0.8)
        assert dets[0].recognized_brand_name is None

    def test_without_recognition(self, policy):
        fused = policy.fuse([_det(0.9)], None)[0]

        assert fused.recognized_brand_name is None
        assert fused.adjusted_confidence == pytest.approx(0.9)


class TestDebounce:
    def test_notification_debounced(self, policy):
        det = _det(0.95)

        assert policy.select_notification([det], now=100.0) is det
        assert policy.select_notification([det], now=103.0) is None
        assert policy.select_notification([det], now=103.1) is det
        assert policy.last_notified == 103.1

    def test_unconfirmed_does_not_reset_timer(self, policy):
        assert policy.select_notification([_det(0.5)], now=10.0) is None
        assert policy.last_notified is None

    def test_first_confirmed_is_selected(self, policy):
        weak = _det(0.5)
        strong = _det(0.9)

        assert policy.select_notification([weak, strong], now=1.0) is strong
