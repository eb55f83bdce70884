"""
Shared fixtures: temporary group containers and managers bound to them.
"""

import pytest

from groupstore.access.readonly_manager import ReadOnlyAccessManager
from groupstore.access.write_manager import WriteAccessManager
from groupstore.notify.memory import InMemoryChangeNotifier
from groupstore.schema.versions import build_plan, build_registry
from groupstore.store.locator import StaticGroupLocator
from groupstore.store.resolver import ContainerResolver

from tests.factories import DB_FILE, GROUP_ID


@pytest.fixture
def group_dir(tmp_path):
    """Provisioned group container directory."""
    directory = tmp_path / "containers" / GROUP_ID
    directory.mkdir(parents=True)
    return directory


@pytest.fixture
def db_path(group_dir):
    return group_dir / DB_FILE


@pytest.fixture
def locator(group_dir):
    return StaticGroupLocator({GROUP_ID: group_dir})


@pytest.fixture
def resolver():
    return ContainerResolver(build_registry(), build_plan(), busy_timeout_ms=2000)


@pytest.fixture
def notifier():
    return InMemoryChangeNotifier()


@pytest.fixture
def writer(resolver, locator, notifier):
    return WriteAccessManager(resolver, locator, GROUP_ID, file_name=DB_FILE, notifier=notifier)


@pytest.fixture
def reader(resolver, locator):
    return ReadOnlyAccessManager(resolver, locator, GROUP_ID, file_name=DB_FILE)
