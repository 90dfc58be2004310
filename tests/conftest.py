import cv2
import numpy as np
import pytest

from canny_pupil.tracker_config.tracker_config import PupilTrackerConfig

IMG_SHAPE = (240, 320)  # (height, width)
PUPIL_CENTER = (160, 120)  # (x, y)
PUPIL_RADIUS = 40
BACKGROUND = 200
PUPIL = 30
GLINT = 255


def make_eye_image(shape=IMG_SHAPE, pupils=((PUPIL_CENTER, PUPIL_RADIUS),), glints=(),
                   background=BACKGROUND, pupil=PUPIL, glint=GLINT) -> np.ndarray:
    """BGR test frame: uniform background, dark filled circles, bright filled circles on top."""
    img = np.full((shape[0], shape[1], 3), background, np.uint8)
    for center, radius in pupils:
        cv2.circle(img, center, radius, (pupil, pupil, pupil), -1)
    for center, radius in glints:
        cv2.circle(img, center, radius, (glint, glint, glint), -1)
    return img


@pytest.fixture
def eye_image():
    return make_eye_image()


@pytest.fixture
def eye_image_with_glint():
    return make_eye_image(glints=(((170, 110), 5),))


@pytest.fixture
def uniform_image():
    return np.full((IMG_SHAPE[0], IMG_SHAPE[1], 3), 128, np.uint8)


@pytest.fixture
def config():
    return PupilTrackerConfig()


@pytest.fixture
def debug_config():
    return PupilTrackerConfig(debug_capture=True)
