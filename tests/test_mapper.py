"""
Tests for the coordinate mapper.
"""

import pytest

from detection.mapper import CoordinateMapper, Viewport, center_to_corners, fit_preview
from models.detection import RawDetectionRow, ScalingContext
from preprocess.letterbox import compute_letterbox, forward_point


def _row(x, y, w, h, conf=0.9, class_id=0, index=0):
    scores = [0.0, 0.0]
    scores[class_id] = conf
    return RawDetectionRow(x, y, w, h, tuple(scores), index=index)


def _mapper(viewport=None, **kwargs):
    return CoordinateMapper(
        tensor_size=640,
        viewport=viewport or Viewport(1000, 1000),
        conf_threshold=kwargs.pop("conf_threshold", 0.8),
        class_names=["biogesic-para", "ritemed-para"],
        **kwargs,
    )


class TestFitPreview:
    """Tests for fit_preview."""

    def test_same_aspect_fills_viewport(self):
        placement = fit_preview((640, 640), Viewport(1000, 1000))

        assert placement.scaled_width == pytest.approx(1000)
        assert placement.scaled_height == pytest.approx(1000)
        assert placement.offset_x == 0
        assert placement.offset_y == 0

    def test_wider_source_fits_by_height(self):
        placement = fit_preview((2000, 1000), Viewport(1000, 1000))

        assert placement.scaled_height == pytest.approx(1000)
        assert placement.scaled_width == pytest.approx(2000)
        assert placement.offset_x == pytest.approx(-500)

    def test_taller_source_fits_by_width(self):
        placement = fit_preview((720, 1280), Viewport(1080, 1080))

        assert placement.scaled_width == pytest.approx(1080)
        assert placement.scaled_height == pytest.approx(1920)
        assert placement.offset_y == pytest.approx(-420)

    def test_invalid_source(self):
        with pytest.raises(ValueError):
            fit_preview((0, 10), Viewport(10, 10))


class TestCoordinateMapper:
    """Tests for CoordinateMapper."""

    def test_centered_box(self):
        """Identity letterbox maps a centred row to a centred box of the same relative size."""
        detections = _mapper().map_rows(
            [_row(0.5, 0.5, 0.3, 0.2)], ScalingContext.identity(), (640, 640)
        )

        assert len(detections) == 1
        det = detections[0]
        assert det.bbox.as_tuple() == (350, 400, 650, 600)
        assert det.bbox.center == (500, 500)
        assert det.class_name == "biogesic-para"
        assert det.confidence == pytest.approx(0.9)

    def test_threshold_is_strict(self):
        """Rows at or below the final threshold are not mapped."""
        mapper = _mapper()
        rows = [_row(0.5, 0.5, 0.3, 0.2, conf=0.8), _row(0.5, 0.5, 0.3, 0.2, conf=0.79)]

        assert mapper.map_rows(rows, ScalingContext.identity(), (640, 640)) == []

    def test_only_top_candidates_are_mapped(self):
        rows = [_row(0.5, 0.5, 0.3, 0.2, index=i) for i in range(5)]
        detections = _mapper(max_candidates=2).map_rows(rows, ScalingContext.identity(), (640, 640))

        assert len(detections) == 2

    def test_extreme_aspect_ratio_rejected(self):
        mapper = _mapper()
        rows = [_row(0.5, 0.5, 0.9, 0.1), _row(0.5, 0.5, 0.05, 0.5)]

        assert mapper.map_rows(rows, ScalingContext.identity(), (640, 640)) == []

    def test_boxes_are_clamped_to_viewport(self):
        detections = _mapper().map_rows(
            [_row(0.95, 0.02, 0.3, 0.2)], ScalingContext.identity(), (640, 640)
        )
        box = detections[0].bbox

        assert 0 <= box.x1 <= box.x2 <= 1000
        assert 0 <= box.y1 <= box.y2 <= 1000
        assert box.x2 == 1000
        assert box.y1 == 0

    def test_viewport_offset(self):
        viewport = Viewport(1000, 1000, left=50, top=20)
        detections = _mapper(viewport).map_rows(
            [_row(0.5, 0.5, 0.3, 0.2)], ScalingContext.identity(), (640, 640)
        )

        assert detections[0].bbox.as_tuple() == (400, 420, 700, 620)

    def test_letterboxed_landscape_frame(self):
        """A point pushed through the letterbox maps back to its source position."""
        ctx = compute_letterbox(1280, 720, 640)
        tx, ty = forward_point(0.5, 0.25, ctx, 640)
        row = _row(tx, ty, 0.1 * ctx.scale, 0.1 * ctx.scale)

        detections = _mapper(Viewport(1280, 1280)).map_rows([row], ctx, (1280, 1280))
        box = detections[0].bbox

        assert box.as_tuple() == (576, 256, 704, 384)

    def test_box_in_cropped_off_area_is_dropped(self):
        """A wide preview is cropped at the sides; boxes there clamp to zero width."""
        mapper = CoordinateMapper(640, Viewport(100, 100), conf_threshold=0.8)
        row = _row(0.1, 0.5, 0.1, 0.1)

        assert mapper.map_row(row, ScalingContext.identity(), (200, 100)) is None
        assert mapper.map_rows([row], ScalingContext.identity(), (200, 100)) == []

    def test_pixel_aspect_ratio_checked(self):
        """A tall preview stretches boxes vertically past the aspect limit."""
        mapper = CoordinateMapper(640, Viewport(100, 100), conf_threshold=0.8)
        row = _row(0.5, 0.5, 0.06, 0.1)

        assert mapper.map_row(row, ScalingContext.identity(), (100, 400)) is None

    def test_pixel_aspect_ratio_within_limits(self):
        mapper = CoordinateMapper(640, Viewport(100, 100), conf_threshold=0.8)
        row = _row(0.5, 0.5, 0.1, 0.1)

        det = mapper.map_row(row, ScalingContext.identity(), (100, 400))

        assert det.bbox.as_tuple() == (45, 30, 55, 70)

    def test_unknown_class_name(self):
        mapper = CoordinateMapper(640, Viewport(100, 100), conf_threshold=0.5)

        assert mapper.class_name(3) == "unknown"


class TestCenterToCorners:
    def test_corners_clamped(self):
        assert center_to_corners(0.1, 0.9, 0.4, 0.4) == pytest.approx((0.0, 0.7, 0.3, 1.0))


class TestViewport:
    def test_empty_viewport_rejected(self):
        with pytest.raises(ValueError):
            Viewport(0, 100)
