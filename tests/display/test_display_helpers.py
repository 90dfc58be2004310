import numpy as np
import pytest

from canny_pupil.display.display_helpers import (
    draw_tracking_result,
    ensure_uint8,
    get_opencv_ellipse,
    gray_to_bgr,
    tile_debug_images,
)
from canny_pupil.pupil_fitting.ellipse2D import Ellipse2D
from canny_pupil.pupil_fitting.pupil_tracker_helpers import find_pupil
from canny_pupil.pupil_fitting.tracking_result import DebugImgType, TrackingResult


def test_ensure_uint8_variants():
    assert ensure_uint8(np.array([[0, 1]], dtype=np.int32)).tolist() == [[0, 255]]
    assert ensure_uint8(np.array([[False, True]])).tolist() == [[0, 255]]
    out = ensure_uint8(np.array([[0.0, 0.5, 1.0]]))
    assert out.dtype == np.uint8 and out.max() == 255
    with pytest.raises(ValueError):
        ensure_uint8(None)


def test_gray_to_bgr():
    assert gray_to_bgr(np.zeros((4, 5), np.uint8)).shape == (4, 5, 3)
    assert gray_to_bgr(np.zeros((4, 5, 4), np.uint8)).shape == (4, 5, 3)
    with pytest.raises(ValueError):
        gray_to_bgr(np.zeros((4, 5, 2), np.uint8))


@pytest.mark.parametrize("ellipse", [
    None,
    Ellipse2D(1.0, 2.0, 0.0, 3.0, 0.0),
    Ellipse2D(float("nan"), 2.0, 4.0, 3.0, 0.0),
])
def test_invalid_ellipse_not_drawable(ellipse):
    assert get_opencv_ellipse(ellipse) is None


def test_opencv_ellipse_tuple():
    rect = get_opencv_ellipse(Ellipse2D(1, 2, 4, 3, 10))
    assert rect == ((1.0, 2.0), (4.0, 3.0), 10.0)
    assert all(isinstance(v, float) for v in (*rect[0], *rect[1], rect[2]))


def test_failed_result_draws_nothing():
    img = np.full((50, 60), 100, np.uint8)
    out = draw_tracking_result(img, TrackingResult.failure())
    assert np.array_equal(out, gray_to_bgr(img))


def test_successful_result_is_drawn_on_a_copy():
    img = np.full((50, 60, 3), 100, np.uint8)
    result = TrackingResult(success=True, ellipse=Ellipse2D(30, 25, 20, 10, 0))
    out = draw_tracking_result(img, result)

    assert not np.array_equal(out, img)
    assert np.all(img == 100)
    assert tuple(out[25, 30]) == (0, 0, 255)  # red cross at the center


def test_center_outside_frame_not_drawn():
    img = np.full((50, 60, 3), 100, np.uint8)
    result = TrackingResult(success=True, ellipse=Ellipse2D(200, 25, 20, 10, 0))
    assert np.array_equal(draw_tracking_result(img, result), img)


def test_tile_layout_from_pipeline(eye_image, debug_config):
    result = find_pupil(eye_image, debug_config)
    mosaic = tile_debug_images(result.debug_images, tile_size=(80, 60), cols=3, rows=3)

    assert mosaic.shape == (180, 240, 3)
    # 8 stages -> the last tile stays black
    assert not mosaic[120:, 160:].any()


def test_tile_drops_images_beyond_grid():
    images = [np.full((10, 10), 255, np.uint8)] * 5
    mosaic = tile_debug_images(images, tile_size=(10, 10), cols=2, rows=2, label=False)
    assert mosaic.shape == (20, 20, 3)
    assert np.all(mosaic == 255)


def test_tile_keeps_aspect_ratio():
    wide = np.full((10, 40), 255, np.uint8)
    mosaic = tile_debug_images([wide], tile_size=(40, 40), cols=1, rows=1, label=False)
    # scaled to 40x10 and centred vertically
    assert np.all(mosaic[15:25, :] == 255)
    assert not mosaic[:15].any()
    assert not mosaic[25:].any()


def test_tile_labels_only_for_stage_dicts():
    img = np.zeros((60, 80), np.uint8)
    labelled = tile_debug_images({DebugImgType.GRAY: img}, tile_size=(80, 60), cols=1, rows=1)
    plain = tile_debug_images([img], tile_size=(80, 60), cols=1, rows=1)
    assert labelled.any()
    assert not plain.any()
