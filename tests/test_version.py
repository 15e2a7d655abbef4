"""Test version information."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import importlib.metadata

from medguard import __version__


def test_version_string():
    """Test that __version__ is a valid version string."""
    assert isinstance(__version__, str)
    assert len(__version__) > 0
    assert "." in __version__  # Should have at least major.minor format


def test_version_matches_package_metadata():
    """Test that __version__ matches the package metadata."""
    try:
        package_version = importlib.metadata.version("medguard-phi-scan")
        assert __version__ == package_version
    except importlib.metadata.PackageNotFoundError:
        # Package not installed, skip this test
        pass


def test_version_format():
    """Test that version follows semantic versioning pattern."""
    import re

    semver_pattern = r"^\d+\.\d+\.\d+(?:-[a-zA-Z0-9]+(?:\.\d+)?)?$"
    assert re.match(
        semver_pattern, __version__
    ), f"Version {__version__} doesn't follow semver format"
