"""
Live pupil tracking from a USB eye camera.

Usage:
    canny-pupil [camera_index] [display_mode] [--mask PATH] [--config PATH] [--debug]

display_mode: 0 = no window, 1 = annotated frame, 2 = annotated frame mirrored.

Press 'q' in the video window to quit.
"""
import argparse
import sys
import time
from pathlib import Path

import cv2

from canny_pupil.display.display_helpers import draw_tracking_result, tile_debug_images
from canny_pupil.helpers.image_helpers import load_roi_mask
from canny_pupil.logging_utils.logging_setup import get_logger, install_crash_hooks, start_logging
from canny_pupil.pupil_fitting.pupil_tracker import PupilTracker
from canny_pupil.tracker_config.tracker_config import (
    LiveViewConfig, live_view_config, load_live_view_config, load_pupil_tracker_config, pupil_tracker_config,
)

log = get_logger(__name__)

EYE_WINDOW = "eyeImage"
DEBUG_WINDOW = "pupil stages"
QUIT_KEY = ord("q")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Canny edge based pupil tracker")
    parser.add_argument("camera_index", nargs="?", type=int, default=None,
                        help="camera index (default from config)")
    parser.add_argument("display_mode", nargs="?", type=int, choices=(0, 1, 2), default=None,
                        help="0 = no display, 1 = display, 2 = mirrored display")
    parser.add_argument("--mask", type=Path, default=None, help="region-of-interest mask image")
    parser.add_argument("--config", type=Path, default=None,
                        help="TOML config file (default: the shipped tracker_config.toml)")
    parser.add_argument("--debug", action="store_true", help="show the intermediate pipeline images")
    parser.add_argument("--log-dir", type=Path, default=None, help="directory for log files")
    return parser.parse_args(argv)


def run_live_tracking(tracker: PupilTracker, capture, display_mode: int = 1,
                      view_config: LiveViewConfig | None = None,
                      max_frames: int | None = None) -> int:
    """
    Read frames from `capture` until it is exhausted, 'q' is pressed or
    `max_frames` frames were processed. Returns the number of processed frames.
    """
    view_config = view_config or LiveViewConfig()
    processed = 0
    failed_reads = 0

    while max_frames is None or processed < max_frames:
        frame_start = time.perf_counter()

        ok, frame = capture.read()
        if not ok or frame is None:
            failed_reads += 1
            log.warning("Unable to capture image from source!")
            if not capture.isOpened() or (max_frames is not None and failed_reads >= max_frames):
                break
            continue

        process_start = time.perf_counter()
        result = tracker.find_pupil(frame)
        process_time = time.perf_counter() - process_start
        processed += 1

        if display_mode > 0:
            display_image = draw_tracking_result(frame, result)
            if display_mode == 2:
                display_image = cv2.flip(display_image, 1)
            cv2.imshow(EYE_WINDOW, display_image)

            if tracker.config.debug_capture and result.debug_images:
                mosaic = tile_debug_images(result.debug_images,
                                           tile_size=(view_config.tile_width, view_config.tile_height),
                                           cols=view_config.tile_cols,
                                           rows=view_config.tile_rows)
                cv2.imshow(DEBUG_WINDOW, mosaic)

            if (cv2.waitKey(1) & 0xFF) == QUIT_KEY:
                log.info("Quit requested")
                break

        total_time = time.perf_counter() - frame_start
        cx, cy = tracker.get_ellipse_centroid() or (float("nan"), float("nan"))
        log.info(f"Processing time (pupil, total) (result x,y): "
                 f"{process_time:.4f} {total_time:.4f} - {cx:.2f} {cy:.2f}")

    return processed


def apply_cli_overrides(args: argparse.Namespace):
    """Load --config into the shared configs, then apply the positional/flag overrides."""
    if args.config is not None:
        pupil_tracker_config.replace(load_pupil_tracker_config(args.config, "pupil_tracker"))
        live_view_config.replace(load_live_view_config(args.config, "live_view"))

    overrides = {"camera_index": args.camera_index, "display_mode": args.display_mode}
    live_view_config.update(**{k: v for k, v in overrides.items() if v is not None})
    if args.debug:
        pupil_tracker_config.set("debug_capture", True)


def main(argv=None) -> int:
    args = parse_args(argv)
    start_logging(log_dir=args.log_dir)
    install_crash_hooks()

    apply_cli_overrides(args)
    log.info(f"Pupil tracker settings: {pupil_tracker_config.asdict()}")

    view_cfg = live_view_config.get()
    camera_index = view_cfg.camera_index
    display_mode = view_cfg.display_mode

    tracker = PupilTracker()

    capture = cv2.VideoCapture(camera_index)
    if not capture.isOpened():
        log.error(f"Unable to initialize camera {camera_index}!")
        return 1
    capture.set(cv2.CAP_PROP_FRAME_WIDTH, view_cfg.frame_width)
    capture.set(cv2.CAP_PROP_FRAME_HEIGHT, view_cfg.frame_height)

    try:
        roi_mask_path = live_view_config.get_field("roi_mask_path")
        mask_path = args.mask or (Path(roi_mask_path) if roi_mask_path else None)
        if mask_path is not None:
            frame_h = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT)) or view_cfg.frame_height
            frame_w = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH)) or view_cfg.frame_width
            tracker.set_mask_image(load_roi_mask(mask_path, (frame_h, frame_w)))
            log.info(f"ROI mask loaded from {mask_path}")

        log.info(f"Tracking on camera {camera_index} (display mode {display_mode})")
        run_live_tracking(tracker, capture, display_mode=display_mode, view_config=view_cfg)
    finally:
        capture.release()
        if display_mode > 0:
            cv2.destroyAllWindows()
        log.info("Camera released.")

    return 0


if __name__ == "__main__":
    sys.exit(main())
