import cv2
import numpy as np

from canny_pupil.logging_utils.logging_setup import get_logger
from canny_pupil.pupil_fitting.ellipse2D import Ellipse2D
from canny_pupil.pupil_fitting.tracking_result import DebugImgType, TrackingResult

log = get_logger(__name__)

# BGR
COLOR_GREEN = (0, 255, 0)
COLOR_RED = (0, 0, 255)
COLOR_LABEL = (250, 200, 200)

CROSS_SIZE = 5
DEFAULT_TILE_SIZE = (640, 360)  # (width, height)


def ensure_uint8(image: np.ndarray) -> np.ndarray:
    """
    Convert any image (binary, float, int) to uint8 format in range [0, 255].

    - Binary {0,1} / bool images become {0,255}.
    - Float or other numeric types are normalized to 0–255.
    - uint8 images are returned unchanged.
    """
    if image is None:
        raise ValueError("Input image is None")

    if image.dtype == np.uint8:
        return image

    if image.dtype == np.bool_:
        return image.astype(np.uint8) * 255

    # Handle binary masks (exactly {0,1})
    unique_vals = np.unique(image)
    if np.array_equal(unique_vals, [0, 1]):
        return (image * 255).astype(np.uint8)

    # Normalize numeric range to 0–255
    image_norm = cv2.normalize(image.astype(np.float32), None, 0, 255, cv2.NORM_MINMAX)
    return image_norm.astype(np.uint8)


def gray_to_bgr(image: np.ndarray) -> np.ndarray:
    """
    If image is 2D (grayscale/binary), convert to BGR uint8.
    If already 3-channel, return a copy so callers can draw on it.
    """
    image = ensure_uint8(image)

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)

    if image.ndim == 3 and image.shape[2] == 3:
        return image.copy()

    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)

    raise ValueError(f"Unsupported image shape: {image.shape}")


def get_opencv_ellipse(ellipse: Ellipse2D | None):
    """
    Convert an Ellipse2D object to an OpenCV-compatible ellipse tuple.

    Returns
    -------
    tuple | None
        ((cx, cy), (major, minor), angle_deg) if valid,
        otherwise None if any field is invalid or missing.
    """
    if ellipse is None:
        return None

    attrs = [ellipse.cx, ellipse.cy, ellipse.major, ellipse.minor, ellipse.angle_deg]
    if any(v is None for v in attrs):
        return None

    if not all(np.isfinite(v) for v in attrs):
        return None

    if ellipse.major <= 0 or ellipse.minor <= 0:
        return None

    return ellipse.to_rotated_rect()


def draw_cross(image: np.ndarray, center: tuple[float, float], size: int = CROSS_SIZE,
               color=COLOR_RED, thickness: int = 1) -> np.ndarray:
    """Draw a '+' marker in place and return the image."""
    x, y = int(round(center[0])), int(round(center[1]))
    cv2.line(image, (x - size, y), (x + size, y), color, thickness)
    cv2.line(image, (x, y - size), (x, y + size), color, thickness)
    return image


def draw_tracking_result(image: np.ndarray, result: TrackingResult,
                         ellipse_color=COLOR_GREEN, center_color=COLOR_RED,
                         thickness: int = 1) -> np.ndarray:
    """
    Return a BGR copy of `image` with the pupil ellipse and a center cross.

    Nothing is drawn for failed results or when the center lies outside the frame.
    """
    out = gray_to_bgr(image)
    if not result.success:
        return out

    opencv_ellipse = get_opencv_ellipse(result.ellipse)
    if opencv_ellipse is None:
        return out

    h, w = out.shape[:2]
    cx, cy = opencv_ellipse[0]
    if not (0 <= cx < w and 0 <= cy < h):
        return out

    draw_cross(out, (cx, cy), CROSS_SIZE, center_color, thickness)
    cv2.ellipse(out, opencv_ellipse, ellipse_color, thickness)
    return out


def scale_image(image: np.ndarray, max_size=DEFAULT_TILE_SIZE) -> np.ndarray:
    """
    Scale binary, grayscale, or BGR image while preserving aspect ratio.

    Automatically chooses interpolation for correct visual output.
    """
    h, w = image.shape[:2]
    max_w, max_h = max_size

    scale = min(max_w / w, max_h / h)
    new_w, new_h = max(1, int(w * scale)), max(1, int(h * scale))

    if scale < 1.0:  # downscale
        interp = cv2.INTER_AREA
    else:             # upscale
        interp = cv2.INTER_CUBIC

    # Binary masks must stay binary
    uniq = np.unique(image)
    if np.array_equal(uniq, [0, 255]) or np.array_equal(uniq, [0]) or np.array_equal(uniq, [255]):
        interp = cv2.INTER_NEAREST

    return cv2.resize(image, (new_w, new_h), interpolation=interp)


def _fit_into_tile(image: np.ndarray, tile_size) -> np.ndarray:
    tile_w, tile_h = tile_size
    tile = np.zeros((tile_h, tile_w, 3), dtype=np.uint8)
    scaled = gray_to_bgr(scale_image(ensure_uint8(image), tile_size))
    sh, sw = scaled.shape[:2]
    y0 = (tile_h - sh) // 2
    x0 = (tile_w - sw) // 2
    tile[y0:y0 + sh, x0:x0 + sw] = scaled
    return tile


def tile_debug_images(images, tile_size=DEFAULT_TILE_SIZE, cols: int = 3, rows: int = 3,
                      label: bool = True) -> np.ndarray:
    """
    Lay out debug images row-major in a rows x cols grid of equally sized tiles.

    `images` is either the dict from TrackingResult.debug_images or a plain
    sequence of images. Each image is scaled into its tile keeping the aspect
    ratio. Images that do not fit in the grid are dropped.
    """
    if isinstance(images, dict):
        items = list(images.items())
    else:
        items = [(None, img) for img in images]

    capacity = cols * rows
    if len(items) > capacity:
        log.warning(f"{len(items)} debug images but only {capacity} tiles, dropping the rest")
        items = items[:capacity]

    tile_w, tile_h = tile_size
    mosaic = np.zeros((tile_h * rows, tile_w * cols, 3), dtype=np.uint8)

    for i, (img_type, img) in enumerate(items):
        r, c = divmod(i, cols)
        tile = _fit_into_tile(img, tile_size)
        if label and isinstance(img_type, DebugImgType):
            cv2.putText(tile, str(img_type), (10, 20), cv2.FONT_HERSHEY_COMPLEX_SMALL,
                        0.8, COLOR_LABEL, 1, cv2.LINE_AA)
        mosaic[r * tile_h:(r + 1) * tile_h, c * tile_w:(c + 1) * tile_w] = tile

    return mosaic
