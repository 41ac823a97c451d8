"""
Tests for letterbox geometry and the frame transformer.
"""

import numpy as np
import pytest

from detection.mapper import undo_letterbox
from models.detection import RawDetectionRow, ScalingContext
from models.errors import FormatUnsupportedError
from models.frame import Frame, PixelFormat, Plane, RegionOfInterest
from preprocess.letterbox import compute_letterbox, forward_point, round_half_up, scaled_size
from preprocess.transformer import FrameTransformer, frame_to_rgb, sample_rgb


def _yuv_frame(width, height, y, u, v):
    """Uniform three-plane YUV420 frame."""
    cw, ch = width // 2, height // 2
    return Frame(
        planes=(
            Plane(bytes([y]) * (width * height), row_stride=width),
            Plane(bytes([u]) * (cw * ch), row_stride=cw),
            Plane(bytes([v]) * (cw * ch), row_stride=cw),
        ),
        width=width,
        height=height,
        pixel_format=PixelFormat.YUV420,
    )


def _two_colour_frame(width, height):
    """Packed BGRA frame: left half blue, right half red."""
    image = np.zeros((height, width, 4), dtype=np.uint8)
    image[:, : width // 2, 0] = 255
    image[:, width // 2 :, 2] = 255
    image[..., 3] = 255
    return Frame(
        planes=(Plane(image.tobytes(), row_stride=width * 4, pixel_stride=4),),
        width=width,
        height=height,
        pixel_format=PixelFormat.BGRA8888,
    )


class TestRoundHalfUp:
    """Tests for the rounding helper."""

    def test_halves_round_away_from_zero(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(-2.5) == -3
        assert round_half_up(0.5) == 1

    def test_regular_rounding(self):
        assert round_half_up(0.4) == 0
        assert round_half_up(1.6) == 2
        assert round_half_up(-1.4) == -1


class TestComputeLetterbox:
    """Tests for compute_letterbox."""

    def test_landscape_pads_top(self):
        """Landscape source is fitted by width and padded top/bottom."""
        ctx = compute_letterbox(1280, 720, 640)

        assert ctx.scale == pytest.approx(0.5)
        assert ctx.padding_left == 0
        assert ctx.padding_top == 140

    def test_portrait_pads_left(self):
        """Portrait source is fitted by height and padded left/right."""
        ctx = compute_letterbox(720, 1280, 640)

        assert ctx.scale == pytest.approx(0.5)
        assert ctx.padding_left == 140
        assert ctx.padding_top == 0

    def test_square_has_no_padding(self):
        ctx = compute_letterbox(320, 320, 640)

        assert ctx.scale == pytest.approx(2.0)
        assert ctx.padding_left == 0
        assert ctx.padding_top == 0

    def test_scaled_size(self):
        ctx = compute_letterbox(1280, 720, 640)

        assert scaled_size(1280, 720, ctx) == (640, 360)

    @pytest.mark.parametrize("w,h,s", [(0, 10, 640), (10, -1, 640), (10, 10, 0)])
    def test_invalid_dimensions_raise(self, w, h, s):
        with pytest.raises(ValueError):
            compute_letterbox(w, h, s)


class TestLetterboxRoundTrip:
    """Forward letterbox followed by the mapper's inverse returns the point."""

    @pytest.mark.parametrize("w,h", [(1280, 720), (720, 1280), (640, 640), (1920, 1080)])
    @pytest.mark.parametrize("x,y", [(0.5, 0.25), (0.1, 0.2), (0.3, 0.5)])
    def test_round_trip(self, w, h, x, y):
        size = 640
        ctx = compute_letterbox(w, h, size)
        tx, ty = forward_point(x, y, ctx, size)

        row = RawDetectionRow(tx, ty, 0.05, 0.05, (0.9, 0.1))
        rx, ry, _, _ = undo_letterbox(row, ctx, size)

        assert rx == pytest.approx(x, abs=1e-9)
        assert ry == pytest.approx(y, abs=1e-9)


class TestFrameTransformer:
    """Tests for FrameTransformer.transform."""

    def test_bgra_letterboxed_tensor(self, bgra_frame):
        """BGRA pixels land in the tensor as RGB inside the padded band."""
        frame = bgra_frame(4, 2, bgr=(10, 20, 30))
        result = FrameTransformer(size=8).transform(frame)

        assert result.ok
        assert result.tensor.shape == (8, 8, 3)
        assert result.tensor.dtype == np.float32
        assert result.context.padding_top == 2

        band = result.tensor[2:6]
        assert np.allclose(band[..., 0], 30 / 255)
        assert np.allclose(band[..., 1], 20 / 255)
        assert np.allclose(band[..., 2], 10 / 255)
        assert np.all(result.tensor[:2] == 0)
        assert np.all(result.tensor[6:] == 0)

    def test_yuv_gray(self):
        """Neutral chroma decodes to gray."""
        frame = _yuv_frame(4, 4, 128, 128, 128)
        result = FrameTransformer(size=4).transform(frame)

        assert result.ok
        assert np.allclose(result.tensor, 128 / 255)

    def test_yuv_red(self):
        """BT.601 conversion of a saturated red sample."""
        frame = _yuv_frame(2, 2, 76, 85, 255)
        rgb = frame_to_rgb(frame)

        assert rgb.shape == (2, 2, 3)
        assert rgb[0, 0, 0] >= 250
        assert rgb[0, 0, 1] <= 5
        assert rgb[0, 0, 2] <= 5

    def test_unknown_format_yields_zero_tensor(self):
        """Unsupported layout returns a zeroed tensor and the error."""
        frame = Frame(
            planes=(Plane(b"\x00" * 16, row_stride=4),),
            width=4,
            height=4,
            pixel_format=PixelFormat.UNKNOWN,
        )
        result = FrameTransformer(size=8).transform(frame)

        assert not result.ok
        assert isinstance(result.error, FormatUnsupportedError)
        assert np.all(result.tensor == 0)

    def test_truncated_buffer_does_not_raise(self):
        """Pixels outside a short plane buffer are left at zero."""
        data = bytes([255]) * (4 * 4 * 2)  # only the first two rows
        frame = Frame(
            planes=(Plane(data, row_stride=16, pixel_stride=4),),
            width=4,
            height=4,
            pixel_format=PixelFormat.BGRA8888,
        )
        result = FrameTransformer(size=4).transform(frame)

        assert result.ok
        assert np.allclose(result.tensor[:2], 1.0)
        assert np.all(result.tensor[2:] == 0)

    def test_stretch_without_letterbox(self, bgra_frame):
        """letterbox=False fills the whole tensor with an identity context."""
        frame = bgra_frame(4, 2, bgr=(255, 255, 255))
        result = FrameTransformer(size=8, letterbox=False).transform(frame)

        assert result.context == ScalingContext.identity()
        assert np.allclose(result.tensor, 1.0)

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            FrameTransformer(size=0)

    def test_roi_selects_source_pixels(self):
        """Only pixels inside the region of interest reach the tensor."""
        frame = _two_colour_frame(8, 4)
        result = FrameTransformer(size=4).transform(frame, RegionOfInterest(4, 0, 4, 4))

        assert result.ok
        assert result.context == ScalingContext.identity()
        assert np.allclose(result.tensor[..., 0], 1.0)
        assert np.all(result.tensor[..., 1:] == 0)

    def test_roi_scaled_from_origin(self):
        """Tensor cells map to floor(t / scale) offset by the region origin."""
        frame = _two_colour_frame(8, 4)
        result = FrameTransformer(size=2).transform(frame, RegionOfInterest(2, 0, 4, 4))

        assert result.context.scale == pytest.approx(0.5)
        # Column 0 samples x=2 (blue half), column 1 samples x=4 (red half).
        assert np.allclose(result.tensor[:, 0, 2], 1.0)
        assert np.allclose(result.tensor[:, 1, 0], 1.0)

    def test_roi_past_frame_edge_stays_zero(self):
        frame = _two_colour_frame(8, 4)
        result = FrameTransformer(size=4).transform(frame, RegionOfInterest(6, 0, 4, 4))

        assert result.ok
        assert np.allclose(result.tensor[:, :2, 0], 1.0)
        assert np.all(result.tensor[:, 2:] == 0)


class TestSampleRgb:
    """Tests for sample_rgb."""

    def test_out_of_frame_coordinates_are_masked(self, bgra_frame):
        frame = bgra_frame(2, 2, bgr=(1, 2, 3))
        rgb, mask = sample_rgb(frame, np.array([0, 1, 2]), np.array([0, 5]))

        assert rgb.shape == (2, 3, 3)
        assert mask[0, 0] and mask[0, 1]
        assert not mask[0, 2]
        assert not mask[1].any()
        assert tuple(rgb[0, 0]) == (3, 2, 1)
