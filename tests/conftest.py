import pytest


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    """Point the XDG config lookup at an empty temp dir and run from there"""
    home = tmp_path / "xdg"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home))
    monkeypatch.chdir(tmp_path)
    return home
