import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pytest

from canny_pupil.display.debug_plot import plot_debug_images
from canny_pupil.pupil_fitting.pupil_tracker_helpers import find_pupil
from canny_pupil.pupil_fitting.tracking_result import DebugImgType, TrackingResult


def test_one_axis_per_stage(eye_image, debug_config):
    result = find_pupil(eye_image, debug_config)
    fig = plot_debug_images(result, cols=3)
    try:
        titles = [ax.get_title() for ax in fig.axes if ax.get_title()]
        assert titles == [str(t) for t in DebugImgType]
        assert len(fig.axes) == 9
    finally:
        plt.close(fig)


def test_requires_debug_images():
    with pytest.raises(ValueError):
        plot_debug_images(TrackingResult.failure())
