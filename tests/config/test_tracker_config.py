from dataclasses import asdict

import pytest
import tomli

from canny_pupil.helpers.thread_safe_config import ThreadSafeConfig
from canny_pupil.tracker_config.tracker_config import (
    LiveViewConfig,
    PupilTrackerConfig,
    TRACKER_TOML_PATH,
    load_live_view_config,
    load_pupil_tracker_config,
    pupil_tracker_config,
    save_config_section,
)


def test_shipped_toml_matches_defaults():
    assert load_pupil_tracker_config(TRACKER_TOML_PATH) == PupilTrackerConfig()
    assert load_live_view_config(TRACKER_TOML_PATH) == LiveViewConfig()


def test_defaults():
    cfg = PupilTrackerConfig()
    assert (cfg.blur_kernel_size, cfg.edge_threshold, cfg.edge_threshold_ratio, cfg.edge_aperture) == (5, 159, 2, 5)
    assert (cfg.pupil_intensity_offset, cfg.glint_intensity_offset, cfg.min_contour_size) == (11, 5, 80)
    assert cfg.debug_capture is False


def test_load_partial_section_uses_defaults(tmp_path):
    path = tmp_path / "cfg.toml"
    path.write_text("[pupil_tracker]\nmin_contour_size = 40\nunknown_key = 1\n")
    cfg = load_pupil_tracker_config(path)
    assert cfg.min_contour_size == 40
    assert cfg.edge_threshold == 159


def test_missing_section_gives_defaults(tmp_path):
    path = tmp_path / "cfg.toml"
    path.write_text("[other]\nx = 1\n")
    assert load_live_view_config(path) == LiveViewConfig()


@pytest.mark.parametrize("kwargs", [
    {"edge_aperture": 4},
    {"blur_kernel_size": -1},
    {"edge_threshold_ratio": 0},
    {"pupil_intensity_offset": -3},
    {"min_contour_size": -1},
])
def test_invalid_values_raise(kwargs):
    with pytest.raises(ValueError):
        PupilTrackerConfig(**kwargs)


def test_invalid_display_mode_raises():
    with pytest.raises(ValueError):
        LiveViewConfig(display_mode=3)


def test_save_section_keeps_other_sections(tmp_path):
    path = tmp_path / "cfg.toml"
    path.write_text("[live_view]\ncamera_index = 2\n")

    cfg = ThreadSafeConfig(PupilTrackerConfig(min_contour_size=60, debug_capture=True))
    save_config_section(path, "pupil_tracker", cfg)

    with path.open("rb") as f:
        data = tomli.load(f)
    assert data["live_view"]["camera_index"] == 2
    assert data["pupil_tracker"] == asdict(cfg.get_raw())
    assert load_pupil_tracker_config(path).min_contour_size == 60


def test_save_section_creates_file(tmp_path):
    path = tmp_path / "new.toml"
    save_config_section(path, "live_view", ThreadSafeConfig(LiveViewConfig(camera_index=1)))
    assert load_live_view_config(path).camera_index == 1


def test_global_config_hands_out_copies():
    a = pupil_tracker_config.get()
    a.min_contour_size = 1
    assert pupil_tracker_config.get_field("min_contour_size") == 80
