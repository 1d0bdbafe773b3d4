"""Unit tests for modkeeper.utils.version_utils module.

Covers the version comparator (numeric cores, zero padding, pre-release
ordering), the pre-release filter, stable descending sorts and the
update-type classification used by reports.
"""

from __future__ import annotations

import pytest

from modkeeper.constants import UNVERSIONED
from modkeeper.utils.version_utils import (
    compare_versions,
    format_version_transition,
    get_update_type,
    get_version_display,
    is_safe_version,
    is_version_newer,
    sort_versions_descending,
    split_version,
)


# ============================================================================
# Test: split_version
# ============================================================================


@pytest.mark.unit
class TestSplitVersion:
    """Tests for split_version core/pre-release splitting."""

    def test_plain_release(self) -> None:
        """Test a plain three-part version.

        Happy path: Numeric parts and no pre-release tag.
        """
        assert split_version("1.2.3") == ([1, 2, 3], "")

    def test_prerelease_split_on_first_dash(self) -> None:
        """Test only the first dash separates the pre-release tag."""
        assert split_version("1.0.0-rc-1") == ([1, 0, 0], "rc-1")

    @pytest.mark.parametrize(
        "version,expected",
        [
            ("1.x", [1, 0]),
            ("v2.0", [0, 0]),
            ("3rc.1", [3, 1]),
            ("", [0]),
        ],
    )
    def test_malformed_components_become_zero(self, version: str, expected) -> None:
        """Test malformed components parse like leading-integer parsing.

        Edge case: Non-numeric text never raises.
        """
        assert split_version(version)[0] == expected


# ============================================================================
# Test: compare_versions
# ============================================================================


@pytest.mark.unit
class TestCompareVersions:
    """Tests for the total order on version strings."""

    @pytest.mark.parametrize(
        "left,right,expected",
        [
            ("1.0.0", "2.0.0", -1),
            ("2.0.0", "1.9.9", 1),
            ("1.10.0", "1.9.0", 1),
            ("1.2.3", "1.2.3", 0),
        ],
    )
    def test_numeric_ordering(self, left: str, right: str, expected: int) -> None:
        """Test components compare numerically, not as strings.

        Happy path: 1.10.0 is newer than 1.9.0.
        """
        assert compare_versions(left, right) == expected

    def test_zero_padding(self) -> None:
        """Test shorter versions are padded with zeros."""
        assert compare_versions("1.0", "1.0.0") == 0
        assert compare_versions("1", "1.0.1") == -1

    def test_release_above_prerelease(self) -> None:
        """Test a release sorts above its own pre-release."""
        assert compare_versions("1.0.0", "1.0.0-beta") == 1
        assert compare_versions("1.0.0-beta", "1.0.0") == -1

    def test_prerelease_tags_compare_lexicographically(self) -> None:
        """Test pre-release tags compare as plain strings.

        Edge case: beta.2 sorts above beta.11.
        """
        assert compare_versions("1.0.0-beta.2", "1.0.0-beta.11") == 1
        assert compare_versions("1.0.0-alpha", "1.0.0-beta") == -1

    def test_core_wins_over_prerelease(self) -> None:
        """Test a higher core beats a release of a lower core."""
        assert compare_versions("2.0.0-rc1", "1.9.9") == 1

    def test_antisymmetry(self) -> None:
        """Test swapping arguments flips the sign."""
        pairs = [("1.0.0", "1.0.1"), ("2.0.0-rc1", "2.0.0"), ("1.x", "1.0.0")]
        for left, right in pairs:
            assert compare_versions(left, right) == -compare_versions(right, left)

    def test_is_version_newer(self) -> None:
        """Test is_version_newer is a strict comparison."""
        assert is_version_newer("1.0.1", "1.0.0") is True
        assert is_version_newer("1.0.0", "1.0") is False


# ============================================================================
# Test: is_safe_version
# ============================================================================


@pytest.mark.unit
class TestIsSafeVersion:
    """Tests for the pre-release filter."""

    @pytest.mark.parametrize("version", ["10.2.3", "1.0.0", "2.0.0-1", "1.0.0-hotfix"])
    def test_release_versions_are_safe(self, version: str) -> None:
        """Test ordinary versions are safe.

        Happy path: No pre-release marker after a dash.
        """
        assert is_safe_version(version) is True

    @pytest.mark.parametrize(
        "version",
        [
            "1.0.0-alpha",
            "1.0.0-beta.2",
            "1.0.0-rc1",
            "1.0.0-RC1",
            "1.0.0-pre",
            "1.0.0-dev",
            "1.0.0-SNAPSHOT",
        ],
    )
    def test_prerelease_versions_are_unsafe(self, version: str) -> None:
        """Test markers are matched case-insensitively."""
        assert is_safe_version(version) is False

    def test_marker_requires_dash(self) -> None:
        """Test a marker without a leading dash does not count.

        Edge case: 1.0.0rc1 has no dash separator.
        """
        assert is_safe_version("1.0.0rc1") is True


# ============================================================================
# Test: sort_versions_descending
# ============================================================================


@pytest.mark.unit
class TestSortVersionsDescending:
    """Tests for newest-first sorting."""

    def test_sorts_newest_first(self) -> None:
        """Test mixed input is sorted newest first.

        Happy path: Numeric ordering with a pre-release in the mix.
        """
        versions = ["1.0.0", "10.0.0", "2.0.0-rc1", "2.0.0", "1.9.0"]
        assert sort_versions_descending(versions) == [
            "10.0.0",
            "2.0.0",
            "2.0.0-rc1",
            "1.9.0",
            "1.0.0",
        ]

    def test_equal_versions_keep_input_order(self) -> None:
        """Test the sort is stable for versions that compare equal."""
        assert sort_versions_descending(["1.0", "1.0.0", "0.9"]) == ["1.0", "1.0.0", "0.9"]
        assert sort_versions_descending(["1.0.0", "1.0", "0.9"]) == ["1.0.0", "1.0", "0.9"]

    def test_accepts_any_iterable(self) -> None:
        """Test generators are accepted."""
        assert sort_versions_descending(v for v in ["1.0.0", "2.0.0"]) == ["2.0.0", "1.0.0"]

    def test_empty(self) -> None:
        """Test empty input yields an empty list."""
        assert sort_versions_descending([]) == []


# ============================================================================
# Test: display helpers
# ============================================================================


@pytest.mark.unit
class TestDisplayHelpers:
    """Tests for version display formatting."""

    def test_get_version_display(self) -> None:
        """Test missing versions render as the unversioned sentinel."""
        assert get_version_display("1.0.0") == "1.0.0"
        assert get_version_display(None) == UNVERSIONED
        assert get_version_display("") == UNVERSIONED

    def test_format_version_transition(self) -> None:
        """Test transitions use an arrow."""
        assert format_version_transition("1.0.0", "2.0.0") == "1.0.0 → 2.0.0"
        assert format_version_transition(None, "2.0.0") == "unversioned → 2.0.0"


# ============================================================================
# Test: get_update_type
# ============================================================================


@pytest.mark.unit
class TestGetUpdateType:
    """Tests for update classification."""

    @pytest.mark.parametrize(
        "current,target,expected",
        [
            ("1.0.0", "2.0.0", "major"),
            ("1.0.0", "1.1.0", "minor"),
            ("1.0.0", "1.0.1", "patch"),
            ("1.0.0", "1.0.0", "same"),
            ("1.0", "1.0.0", "same"),
            ("2.0.0", "1.0.0", "downgrade"),
            ("1.0.0-rc1", "1.0.0", "update"),
            (None, "1.0.0", "new"),
            (UNVERSIONED, "1.0.0", "new"),
            ("1.0.0", None, "unknown"),
        ],
    )
    def test_classification(self, current, target, expected: str) -> None:
        """Test each classification.

        Happy path: One case per category.
        """
        assert get_update_type(current, target) == expected
