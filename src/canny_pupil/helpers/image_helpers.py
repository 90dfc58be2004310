from pathlib import Path

import cv2
import numpy as np


def binarize_mask(mask: np.ndarray) -> np.ndarray:
    """Reduce a mask to one channel (max over channels); any non-zero pixel becomes 255."""
    if mask is None:
        raise ValueError("ROI mask is None")
    mask = np.asarray(mask)
    if mask.size == 0:
        raise ValueError("ROI mask is empty")

    if mask.ndim == 3:
        mask = mask.max(axis=2)

    return np.where(mask > 0, 255, 0).astype(np.uint8)


def prepare_roi_mask(mask: np.ndarray, image_shape: tuple[int, ...]) -> np.ndarray:
    """
    Align a region-of-interest mask with a camera frame.

    - Colour masks are reduced to one channel.
    - Any non-zero pixel becomes 255, everything else 0.
    - The mask is resized (nearest neighbour) to the frame's height/width.
    """
    mask = binarize_mask(mask)

    h, w = image_shape[:2]
    if mask.shape != (h, w):
        mask = cv2.resize(mask, (w, h), interpolation=cv2.INTER_NEAREST)

    return mask


def load_roi_mask(path: Path | str, image_shape: tuple[int, ...]) -> np.ndarray:
    """Read a mask image from disk and align it with frames of `image_shape`."""
    mask = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
    if mask is None:
        raise FileNotFoundError(f"Could not read ROI mask image: {path}")
    return prepare_roi_mask(mask, image_shape)
