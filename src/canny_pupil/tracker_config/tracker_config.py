# tracker_config/tracker_config.py
from __future__ import annotations
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any
import tomli
import tomli_w
from canny_pupil.helpers.thread_safe_config import ThreadSafeConfig

VALID_EDGE_APERTURES = (3, 5, 7)
VALID_DISPLAY_MODES = (0, 1, 2)


@dataclass
class PupilTrackerConfig:
    """
    Knobs for the canny pupil pipeline. One instance is read at the start of
    every find_pupil() call and is never modified by the pipeline.
    """
    # Smoothing before edge detection (box blur, skipped if <= 1)
    blur_kernel_size: int = 5

    # Canny: low = edge_threshold, high = edge_threshold * edge_threshold_ratio
    edge_threshold: int = 159
    edge_threshold_ratio: int = 2
    edge_aperture: int = 5

    # Offsets from the histogram spikes
    pupil_intensity_offset: int = 11
    glint_intensity_offset: int = 5

    # Contour gating (relaxed in steps of 2 until a contour qualifies)
    min_contour_size: int = 80

    # Keep every intermediate image on the result
    debug_capture: bool = False

    def __post_init__(self):
        if self.blur_kernel_size < 0:
            raise ValueError(f"blur_kernel_size must be >= 0, got {self.blur_kernel_size}")
        if self.edge_threshold < 0:
            raise ValueError(f"edge_threshold must be >= 0, got {self.edge_threshold}")
        if self.edge_threshold_ratio <= 0:
            raise ValueError(f"edge_threshold_ratio must be > 0, got {self.edge_threshold_ratio}")
        if self.edge_aperture not in VALID_EDGE_APERTURES:
            raise ValueError(f"edge_aperture must be one of {VALID_EDGE_APERTURES}, got {self.edge_aperture}")
        if self.pupil_intensity_offset < 0 or self.glint_intensity_offset < 0:
            raise ValueError("intensity offsets must be >= 0")
        if self.min_contour_size < 0:
            raise ValueError(f"min_contour_size must be >= 0, got {self.min_contour_size}")


@dataclass
class LiveViewConfig:
    """
    Settings for the live camera loop (not used by the pipeline itself).

    display_mode: 0 = no window, 1 = show annotated frame, 2 = show it mirrored.
    tile_*: layout of the debug mosaic.
    """
    camera_index: int = 0
    frame_width: int = 640
    frame_height: int = 480
    display_mode: int = 1

    tile_width: int = 640
    tile_height: int = 360
    tile_cols: int = 3
    tile_rows: int = 3

    # Optional region-of-interest mask image, "" = whole frame
    roi_mask_path: str = ""

    def __post_init__(self):
        if self.display_mode not in VALID_DISPLAY_MODES:
            raise ValueError(f"display_mode must be one of {VALID_DISPLAY_MODES}, got {self.display_mode}")
        if self.tile_cols <= 0 or self.tile_rows <= 0:
            raise ValueError("tile_cols and tile_rows must be > 0")


TRACKER_TOML_PATH = Path(__file__).parent / "tracker_config.toml"


def _toml_to_kwargs(raw: dict[str, Any], cls) -> dict[str, Any]:
    """Keep only keys the dataclass knows, so stale TOML entries don't break loading."""
    known = cls.__dataclass_fields__.keys()
    return {k: v for k, v in raw.items() if k in known}


def _dataclass_to_toml_dict(cfg) -> dict[str, Any]:
    """Convert dataclass to TOML-friendly dict (direct asdict)."""
    return asdict(cfg)


def _load_section(path: Path, section: str) -> dict[str, Any]:
    with Path(path).open("rb") as f:
        data = tomli.load(f)
    return data.get(section, {})


def load_pupil_tracker_config(path: Path, section: str = "pupil_tracker") -> PupilTrackerConfig:
    raw = _load_section(path, section)
    return PupilTrackerConfig(**_toml_to_kwargs(raw, PupilTrackerConfig))


def load_live_view_config(path: Path, section: str = "live_view") -> LiveViewConfig:
    raw = _load_section(path, section)
    return LiveViewConfig(**_toml_to_kwargs(raw, LiveViewConfig))


def save_config_section(path: Path, section: str, config: ThreadSafeConfig):
    """Persist a ThreadSafeConfig section back to TOML, keeping the other sections."""
    path = Path(path)
    try:
        with path.open("rb") as f:
            data = tomli.load(f)
    except FileNotFoundError:
        data = {}

    data[section] = _dataclass_to_toml_dict(config.get_raw())

    with path.open("wb") as f:
        tomli_w.dump(data, f)


# Global configuration instances
pupil_tracker_config = ThreadSafeConfig(load_pupil_tracker_config(TRACKER_TOML_PATH, "pupil_tracker"))
live_view_config = ThreadSafeConfig(load_live_view_config(TRACKER_TOML_PATH, "live_view"))
