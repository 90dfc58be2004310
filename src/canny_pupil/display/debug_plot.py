import math

import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from canny_pupil.display.display_helpers import draw_tracking_result, ensure_uint8
from canny_pupil.pupil_fitting.tracking_result import DebugImgType, TrackingResult


def plot_debug_images(result: TrackingResult, cols: int = 3, overlay_ellipse: bool = True,
                      figsize_per_axis: float = 3.0) -> Figure:
    """
    One subplot per captured pipeline stage, in pipeline order.

    The ellipse (if any) is drawn onto the grayscale stage. Requires a result
    produced with debug capture enabled.
    """
    if not result.debug_images:
        raise ValueError("TrackingResult has no debug images (enable debug_capture)")

    n = len(result.debug_images)
    rows = math.ceil(n / cols)
    fig, axes = plt.subplots(rows, cols, figsize=(figsize_per_axis * cols, figsize_per_axis * rows),
                             squeeze=False)

    for ax in axes.ravel():
        ax.axis("off")

    for ax, (img_type, img) in zip(axes.ravel(), result.debug_images.items()):
        if img_type == DebugImgType.GRAY and overlay_ellipse and result.success:
            bgr = draw_tracking_result(img, result)
            ax.imshow(bgr[:, :, ::-1])
        else:
            ax.imshow(ensure_uint8(img), cmap="gray", vmin=0, vmax=255)
        ax.set_title(str(img_type))

    title = f"pupil: {result.ellipse}" if result.success else "pupil: not found"
    fig.suptitle(title, fontsize=9)
    fig.tight_layout()
    return fig
