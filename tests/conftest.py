import pytest

from tinnitusbuilder_core.utils.preferences import Preferences, save_preferences


@pytest.fixture
def fast_prefs():
    """Whole-file renders at a reduced sample rate so five-minute jobs stay quick."""
    return Preferences(sample_rate=2000, block_seconds=4.0, ramp_seconds=1.0, target_peak=0.80)


@pytest.fixture
def prefs_file(tmp_path, fast_prefs):
    return save_preferences(fast_prefs, tmp_path / "prefs.json")
