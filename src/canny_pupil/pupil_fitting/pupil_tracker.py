from dataclasses import replace

import numpy as np

from canny_pupil.helpers.image_helpers import binarize_mask
from canny_pupil.pupil_fitting.ellipse2D import Ellipse2D
from canny_pupil.pupil_fitting.pupil_tracker_helpers import find_pupil
from canny_pupil.pupil_fitting.tracking_result import DebugImgType, TrackingResult
from canny_pupil.tracker_config.tracker_config import PupilTrackerConfig, pupil_tracker_config


class PupilTracker:
    """
    Canny-edge pupil tracker for single eye images.

    Holds the parameter set, an optional region-of-interest mask and the last
    successfully fitted ellipse. Each find_pupil() call is independent; a
    failed call leaves the last ellipse as it was.

    One instance must not be used from several threads at once. Give every
    thread its own tracker instead.
    """

    def __init__(self, config: PupilTrackerConfig | None = None, roi_mask: np.ndarray | None = None) -> None:
        # Defaults come from the TOML-backed global config (deep copy)
        self.config: PupilTrackerConfig = config if config is not None else pupil_tracker_config.get()
        self._roi_mask: np.ndarray | None = None
        self._last_ellipse: Ellipse2D | None = None
        self.debug_images: dict[DebugImgType, np.ndarray] = {}
        self.set_mask_image(roi_mask)

    def set_config(self, config: PupilTrackerConfig):
        self.config = config

    def set_display(self, display: bool):
        """Toggle capture of the intermediate images."""
        self.config = replace(self.config, debug_capture=bool(display))

    def set_mask_image(self, mask: np.ndarray | None):
        """Restrict detection to the non-zero pixels of `mask`; None uses the whole frame."""
        if mask is None:
            self._roi_mask = None
            return
        self._roi_mask = binarize_mask(mask)

    @property
    def mask_image(self) -> np.ndarray | None:
        return self._roi_mask

    # ---- Public API ----

    def find_pupil(self, eye_image: np.ndarray) -> TrackingResult:
        result = find_pupil(eye_image, self.config, self._roi_mask)
        self.debug_images = result.debug_images
        if result.success:
            self._last_ellipse = result.ellipse
        return result

    def get_ellipse(self) -> Ellipse2D | None:
        """Last successfully fitted ellipse (None before the first success)."""
        return self._last_ellipse

    def get_ellipse_centroid(self) -> tuple[float, float] | None:
        return self._last_ellipse.center if self._last_ellipse is not None else None
