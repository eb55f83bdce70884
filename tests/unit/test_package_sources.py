"""
Unit tests that every groupstore module compiles cleanly.
"""

import warnings
from pathlib import Path

import pytest

import groupstore

PACKAGE_ROOT = Path(groupstore.__file__).parent
SOURCES = sorted(PACKAGE_ROOT.rglob("*.py"))


class TestPackageSources:
    """Source files must compile without warnings."""

    def test_sources_found(self):
        names = {p.relative_to(PACKAGE_ROOT).as_posix() for p in SOURCES}
        assert "access/write_manager.py" in names

    @pytest.mark.parametrize("path", SOURCES, ids=lambda p: p.relative_to(PACKAGE_ROOT).as_posix())
    def test_compiles_without_warnings(self, path):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            compile(path.read_text(encoding="utf-8"), str(path), "exec")
