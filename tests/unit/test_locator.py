"""
Unit tests for group container locators.
"""

import pytest

from groupstore.store.locator import (
    DirectoryGroupLocator,
    GroupContainerLocator,
    StaticGroupLocator,
)


class TestDirectoryGroupLocator:
    """Tests for DirectoryGroupLocator."""

    def test_provisioned_group(self, tmp_path):
        (tmp_path / "group.com.example.a").mkdir()
        locator = DirectoryGroupLocator(tmp_path)
        assert locator.container_directory("group.com.example.a") == tmp_path / "group.com.example.a"

    def test_unprovisioned_group(self, tmp_path):
        assert DirectoryGroupLocator(tmp_path).container_directory("group.missing") is None

    def test_plain_file_is_not_a_container(self, tmp_path):
        (tmp_path / "group.file").write_text("x")
        assert DirectoryGroupLocator(tmp_path).container_directory("group.file") is None

    @pytest.mark.parametrize("group_id", ["", "../etc", "a/b", "group..x", "group id"])
    def test_malformed_ids_rejected(self, tmp_path, group_id):
        assert DirectoryGroupLocator(tmp_path).container_directory(group_id) is None

    def test_satisfies_protocol(self, tmp_path):
        assert isinstance(DirectoryGroupLocator(tmp_path), GroupContainerLocator)


class TestStaticGroupLocator:
    """Tests for StaticGroupLocator."""

    def test_mapping_and_add(self, tmp_path):
        locator = StaticGroupLocator({"group.a": str(tmp_path)})
        assert locator.container_directory("group.a") == tmp_path
        assert locator.container_directory("group.b") is None

        locator.add("group.b", tmp_path / "b")
        assert locator.container_directory("group.b") == tmp_path / "b"
        assert isinstance(locator, GroupContainerLocator)
