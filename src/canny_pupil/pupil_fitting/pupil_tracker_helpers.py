import cv2
import numpy as np
from dataclasses import dataclass

from canny_pupil.helpers.image_helpers import binarize_mask
from canny_pupil.logging_utils.logging_setup import get_logger
from canny_pupil.pupil_fitting.ellipse2D import Ellipse2D
from canny_pupil.pupil_fitting.tracking_result import DebugImgType, TrackingResult
from canny_pupil.tracker_config.tracker_config import PupilTrackerConfig

log = get_logger(__name__)

RANGE_MIN = 0
RANGE_MAX = 255
HIST_SIZE = RANGE_MAX - RANGE_MIN + 1

# A histogram bucket with at least this many pixels is a dominant intensity mode
MIN_SPIKE_SIZE = 40

# Elliptical neighbourhood of radius 3 used for both masks
MORPH_KERNEL = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (7, 7))
DARK_MASK_DILATIONS = 2
GLINT_MASK_EROSIONS = 1

RELAXATION_STEP = 2

# cv2.fitEllipse needs at least five points
MIN_ELLIPSE_POINTS = 5


@dataclass(frozen=True)
class SpikeRange:
    """Lowest/highest dominant intensity of the working image."""
    lowest: int
    highest: int
    num_spikes: int
    degenerate: bool  # True if fewer than 2 spikes were found and the full range is used


@dataclass(frozen=True)
class ContourSelection:
    """Which contours survived the (possibly relaxed) size filter."""
    mergeable: tuple[bool, ...]
    threshold: int          # size threshold that was finally applied
    relaxation_steps: int   # how often the threshold was lowered

    @property
    def num_selected(self) -> int:
        return sum(self.mergeable)


# ---------------------------------------------------------------------------
# Stage 1: preprocessing
# ---------------------------------------------------------------------------

def _check_image(image: np.ndarray) -> np.ndarray:
    if image is None:
        raise ValueError("Input image is None")
    image = np.asarray(image)
    if image.size == 0:
        raise ValueError("Input image is empty")
    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]
    if image.ndim not in (2, 3) or (image.ndim == 3 and image.shape[2] not in (3, 4)):
        raise ValueError(f"Unsupported image shape: {image.shape}")
    return image


def _to_uint8(image: np.ndarray) -> np.ndarray:
    """Bring any numeric image into uint8 so it can be inverted bitwise."""
    if image.dtype == np.uint8:
        return image
    if image.dtype == np.bool_:
        return image.astype(np.uint8) * 255
    return cv2.normalize(image.astype(np.float32), None, RANGE_MIN, RANGE_MAX,
                         cv2.NORM_MINMAX, dtype=cv2.CV_8U)


def _check_roi_mask(roi_mask: np.ndarray, image_shape: tuple[int, ...]) -> np.ndarray:
    roi_mask = binarize_mask(roi_mask)
    if roi_mask.shape != tuple(image_shape[:2]):
        raise ValueError(f"ROI mask shape {roi_mask.shape} does not match image shape {tuple(image_shape[:2])}")
    return roi_mask > 0


def preprocess_image(image: np.ndarray, roi_mask: np.ndarray | None = None) -> np.ndarray:
    """
    Build the normalized single-channel working image.

    With an ROI mask, every pixel outside the mask becomes white so it can
    never be taken for the (dark) pupil; pixels inside keep their value.
    The result is min-max stretched to 0..255.
    """
    image = _to_uint8(_check_image(image))

    if roi_mask is not None:
        eligible = _check_roi_mask(roi_mask, image.shape)
        # invert, copy the masked pixels onto black, invert back -> outside is white
        inverted = cv2.bitwise_not(image)
        masked = np.zeros_like(inverted)
        masked[eligible] = inverted[eligible]
        image = cv2.bitwise_not(masked)

    if image.ndim == 3:
        code = cv2.COLOR_BGRA2GRAY if image.shape[2] == 4 else cv2.COLOR_BGR2GRAY
        gray = cv2.cvtColor(image, code)
    else:
        gray = image

    return cv2.normalize(gray, None, RANGE_MIN, RANGE_MAX, cv2.NORM_MINMAX, dtype=cv2.CV_8U)


# ---------------------------------------------------------------------------
# Stage 2: adaptive thresholds
# ---------------------------------------------------------------------------

def compute_histogram(gray: np.ndarray) -> np.ndarray:
    """256-bucket intensity histogram; the counts sum to the pixel count."""
    hist = cv2.calcHist([gray], [0], None, [HIST_SIZE], [RANGE_MIN, RANGE_MAX + 1])
    return hist.ravel().astype(np.int64)


def find_histogram_spikes(hist: np.ndarray, min_spike_size: int = MIN_SPIKE_SIZE) -> SpikeRange:
    """
    Find the lowest and highest histogram bucket holding at least
    `min_spike_size` pixels. Fewer than two spikes falls back to 0..255.
    """
    spikes = np.flatnonzero(np.asarray(hist) >= min_spike_size)
    if len(spikes) < 2:
        log.debug(f"Only {len(spikes)} histogram spike(s), using full intensity range")
        return SpikeRange(lowest=RANGE_MIN, highest=RANGE_MAX, num_spikes=len(spikes), degenerate=True)
    return SpikeRange(lowest=int(spikes[0]), highest=int(spikes[-1]), num_spikes=len(spikes), degenerate=False)


# ---------------------------------------------------------------------------
# Stage 3: region masks
# ---------------------------------------------------------------------------

def build_dark_mask(gray: np.ndarray, lowest_spike: int, pupil_intensity_offset: int) -> np.ndarray:
    """White where the pixel is dark enough to be pupil, grown a little past the boundary."""
    cutoff = int(lowest_spike) + int(pupil_intensity_offset)
    dark_mask = cv2.inRange(gray, RANGE_MIN, cutoff)
    return cv2.dilate(dark_mask, MORPH_KERNEL, iterations=DARK_MASK_DILATIONS)


def build_glint_mask(gray: np.ndarray, highest_spike: int, glint_intensity_offset: int) -> np.ndarray:
    """
    White everywhere except the bright glints.

    The glint region itself is eroded before inverting, so the excluded area
    shrinks and edges right at a glint's rim are kept.
    """
    cutoff = int(highest_spike) - int(glint_intensity_offset)
    glint_region = cv2.bitwise_not(cv2.inRange(gray, RANGE_MIN, cutoff))
    glint_region = cv2.erode(glint_region, MORPH_KERNEL, iterations=GLINT_MASK_EROSIONS)
    return cv2.bitwise_not(glint_region)


# ---------------------------------------------------------------------------
# Stage 4: edges
# ---------------------------------------------------------------------------

def blur_image(gray: np.ndarray, kernel_size: int) -> np.ndarray:
    if kernel_size <= 1:
        return gray
    return cv2.blur(gray, (kernel_size, kernel_size))


def detect_edges(blurred: np.ndarray, threshold: float, ratio: float, aperture: int) -> np.ndarray:
    return cv2.Canny(blurred, threshold, threshold * ratio, apertureSize=aperture)


def prune_edges(edges: np.ndarray, dark_mask: np.ndarray, glint_mask: np.ndarray) -> np.ndarray:
    """Keep only edge pixels that lie inside both masks."""
    return cv2.min(cv2.min(edges, dark_mask), glint_mask)


# ---------------------------------------------------------------------------
# Stage 5: contours and ellipse
# ---------------------------------------------------------------------------

def find_edge_contours(edges: np.ndarray) -> tuple[np.ndarray, ...]:
    """Outer and hole boundaries (two-level hierarchy) of the edge map."""
    contours, _ = cv2.findContours(edges, cv2.RETR_CCOMP, cv2.CHAIN_APPROX_SIMPLE)
    return tuple(contours)


def select_mergeable_contours(contours, min_contour_size: int) -> ContourSelection:
    """
    Mark contours with at least `min_contour_size` points as mergeable.

    If none qualifies, the threshold is lowered in steps of 2 until one does.
    The threshold never drops below what the longest contour needs, so the
    relaxation is bounded; an empty contour list selects nothing.
    """
    if len(contours) == 0:
        return ContourSelection(mergeable=(), threshold=int(min_contour_size), relaxation_steps=0)

    lengths = [len(c) for c in contours]
    longest = max(lengths)

    threshold = int(min_contour_size)
    steps = 0
    if threshold > longest:
        steps = -(-(threshold - longest) // RELAXATION_STEP)
        threshold -= steps * RELAXATION_STEP
        log.debug(f"No contour with >= {min_contour_size} points, relaxed to {threshold} after {steps} step(s)")

    mergeable = tuple(n >= threshold for n in lengths)
    return ContourSelection(mergeable=mergeable, threshold=threshold, relaxation_steps=steps)


def merge_contours(contours, mergeable) -> np.ndarray:
    """Concatenate the points of all mergeable contours, shape (N, 1, 2)."""
    selected = [c for c, keep in zip(contours, mergeable) if keep]
    if not selected:
        return np.empty((0, 1, 2), dtype=np.int32)
    return np.concatenate(selected, axis=0)


def fit_ellipse(points: np.ndarray) -> Ellipse2D | None:
    if len(points) < MIN_ELLIPSE_POINTS:
        return None
    return Ellipse2D.from_rotated_rect(cv2.fitEllipse(points))


def draw_contours(shape: tuple[int, ...], contours, selected=None) -> np.ndarray:
    """Binary image of the given contours; `selected` restricts which ones are drawn."""
    canvas = np.zeros(shape[:2], dtype=np.uint8)
    contours = list(contours)
    for i in range(len(contours)):
        if selected is None or selected[i]:
            cv2.drawContours(canvas, contours, i, 255)
    return canvas


# ---------------------------------------------------------------------------
# Full pipeline
# ---------------------------------------------------------------------------

def find_pupil(image: np.ndarray,
               config: PupilTrackerConfig,
               roi_mask: np.ndarray | None = None) -> TrackingResult:
    """
    Locate the pupil in one eye image and fit an ellipse to its boundary.

    Pipeline: normalize -> histogram spikes -> dark/glint masks ->
    blurred canny edges pruned by both masks -> contours (size filter with
    relaxation) -> merged points -> cv2.fitEllipse.

    Raises ValueError for empty/malformed input; every other outcome is
    reported through TrackingResult.success.
    """
    capture = config.debug_capture
    debug_images: dict[DebugImgType, np.ndarray] = {}

    def keep(img_type: DebugImgType, img: np.ndarray):
        if capture:
            debug_images[img_type] = img

    # 1) working image
    gray = preprocess_image(image, roi_mask)
    keep(DebugImgType.GRAY, gray)

    # 2) thresholds from the histogram
    spikes = find_histogram_spikes(compute_histogram(gray))

    # 3) masks
    dark_mask = build_dark_mask(gray, spikes.lowest, config.pupil_intensity_offset)
    keep(DebugImgType.DARK_MASK, dark_mask)
    glint_mask = build_glint_mask(gray, spikes.highest, config.glint_intensity_offset)
    keep(DebugImgType.GLINT_MASK, glint_mask)

    # 4) edges
    blurred = blur_image(gray, config.blur_kernel_size)
    keep(DebugImgType.BLURRED, blurred)
    edges = detect_edges(blurred, config.edge_threshold, config.edge_threshold_ratio, config.edge_aperture)
    keep(DebugImgType.EDGES, edges)
    edges_pruned = prune_edges(edges, dark_mask, glint_mask)
    keep(DebugImgType.EDGES_PRUNED, edges_pruned)

    # 5) contours -> ellipse
    contours = find_edge_contours(edges_pruned)
    selection = select_mergeable_contours(contours, config.min_contour_size)

    if capture:
        keep(DebugImgType.CONTOURS_ALL, draw_contours(gray.shape, contours))
        keep(DebugImgType.CONTOURS_FILTERED, draw_contours(gray.shape, contours, selection.mergeable))

    if not contours:
        log.debug("No contours in the pruned edge map")
        return TrackingResult.failure(debug_images)

    merged = merge_contours(contours, selection.mergeable)
    ellipse = fit_ellipse(merged)
    if ellipse is None:
        log.debug(f"Only {len(merged)} merged contour points, need {MIN_ELLIPSE_POINTS} for an ellipse fit")
        return TrackingResult.failure(debug_images)

    log.debug(f"Pupil ellipse from {selection.num_selected}/{len(contours)} contours "
              f"(threshold {selection.threshold}): {ellipse}")
    return TrackingResult(success=True, ellipse=ellipse, debug_images=debug_images)
