"""Test const module."""

import json

from custom_components.mixer_controller.const import (
    DEFAULT_SAFETY,
    MANIFEST_PATH,
    VERSION,
    OperatingState,
)


class TestVersion:
    """Test cases for VERSION constant."""

    def test_manifest_path_exists(self) -> None:
        """MANIFEST_PATH should point to an existing file."""
        assert MANIFEST_PATH.exists()

    def test_version_matches_manifest(self) -> None:
        """VERSION should match the version in manifest.json."""
        manifest = json.loads(MANIFEST_PATH.read_text())
        assert manifest["version"] == VERSION


class TestDefaults:
    """Test cases for default parameters."""

    def test_safety_band_is_valid(self) -> None:
        """The default clearing threshold lies above the trip threshold."""
        assert DEFAULT_SAFETY["emergency_ok"] > DEFAULT_SAFETY["emergency_min"]

    def test_operating_state_values(self) -> None:
        """Operating states are exposed with lowercase names."""
        assert [state.value for state in OperatingState] == [
            "auto",
            "emergency",
            "moving",
            "pause",
            "error",
        ]
