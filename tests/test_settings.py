import pytest

from netconf_rpc.settings import NetconfSettings


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("PORT", "RPC_TIMEOUT", "HELLO_TIMEOUT", "CLOSE_TIMEOUT", "RAW", "PRESERVE_ATTRIBUTES", "DEBUG"):
        monkeypatch.delenv(f"NETCONF_{name}", raising=False)


def test_defaults():
    settings = NetconfSettings()

    assert settings.port == 22
    assert settings.rpc_timeout is None
    assert settings.hello_timeout is None
    assert settings.close_timeout == 5.0
    assert not settings.raw
    assert settings.preserve_attributes
    assert not settings.debug


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("NETCONF_PORT", "830")
    monkeypatch.setenv("NETCONF_RPC_TIMEOUT", "30")
    monkeypatch.setenv("NETCONF_PRESERVE_ATTRIBUTES", "false")

    settings = NetconfSettings()

    assert settings.port == 830
    assert settings.rpc_timeout == 30.0
    assert not settings.preserve_attributes


def test_dotenv_file(tmp_path):
    (tmp_path / ".env").write_text("NETCONF_HELLO_TIMEOUT=12.5\nNETCONF_DEBUG=true\nUNRELATED=1\n")

    settings = NetconfSettings()

    assert settings.hello_timeout == 12.5
    assert settings.debug
