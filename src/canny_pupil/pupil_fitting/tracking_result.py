from dataclasses import dataclass, field
from enum import Enum, auto

import numpy as np

from canny_pupil.pupil_fitting.ellipse2D import Ellipse2D


class DebugImgType(Enum):
    """Stages of the pupil detection pipeline, in the order they are produced."""
    GRAY = auto()               # normalized grayscale working image
    DARK_MASK = auto()          # candidate pupil region (dilated)
    GLINT_MASK = auto()         # everything except the bright glints
    BLURRED = auto()            # box-blurred working image
    EDGES = auto()              # raw canny edges
    EDGES_PRUNED = auto()       # edges inside both masks
    CONTOURS_ALL = auto()       # every contour of the pruned edges
    CONTOURS_FILTERED = auto()  # contours that were merged for the fit

    def __str__(self):
        return self.name.lower()


@dataclass
class TrackingResult:
    """
    Result of one find_pupil() call.

    Attributes:
        success: True if an ellipse was fitted.
        ellipse: Fitted pupil ellipse, always None when success is False.
        debug_images: Intermediate images keyed by stage (pipeline order).
                      Empty unless debug capture was enabled.
    """
    success: bool
    ellipse: Ellipse2D | None = None
    debug_images: dict[DebugImgType, np.ndarray] = field(default_factory=dict)

    def __post_init__(self):
        if not self.success:
            self.ellipse = None
        elif self.ellipse is None:
            raise ValueError("A successful TrackingResult needs an ellipse")

    @property
    def centroid(self) -> tuple[float, float] | None:
        return self.ellipse.center if self.ellipse is not None else None

    @classmethod
    def failure(cls, debug_images: dict[DebugImgType, np.ndarray] | None = None) -> "TrackingResult":
        return cls(success=False, ellipse=None, debug_images=debug_images or {})
