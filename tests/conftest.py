import pytest

from ioc_intel.host import LoggingContextMenus, MemoryStorageArea
from ioc_intel.preferences import PreferencesState


@pytest.fixture
def memory_storage():
    return MemoryStorageArea()


@pytest.fixture
def menus():
    return LoggingContextMenus()


@pytest.fixture
def prefs(memory_storage, menus):
    return PreferencesState(memory_storage, menus, delay_s=0.01, max_wait_s=0.05)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for var in ("IOC_INTEL_DATA_DIR", "IOC_INTEL_SAVE_DELAY_S", "IOC_INTEL_SAVE_MAX_WAIT_S", "IOC_INTEL_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
