from vqr.config import SYSTEM_ID_TESTNET, Settings


def test_defaults(monkeypatch) -> None:
    for name in ("RPC_HOST", "RPC_PORT", "RPC_USER", "RPC_PASSWORD", "UI_PORT", "PORT", "SYSTEM_ID"):
        monkeypatch.delenv(name, raising=False)
    s = Settings(_env_file=None)
    assert s.rpc_url == "http://localhost:18843"
    assert s.ui_port == 3000
    assert s.system_id == SYSTEM_ID_TESTNET
    assert s.rpc_user == ""


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("RPC_HOST", "  10.0.0.2 ")
    monkeypatch.setenv("RPC_PORT", "27486")
    monkeypatch.setenv("RPC_USER", "rpcuser")
    monkeypatch.setenv("RPC_PASSWORD", "secret")
    monkeypatch.delenv("UI_PORT", raising=False)
    monkeypatch.setenv("PORT", "8080")
    s = Settings(_env_file=None)
    assert s.rpc_url == "http://10.0.0.2:27486"
    assert s.rpc_user == "rpcuser"
    assert s.ui_port == 8080


def test_blank_host_falls_back_to_localhost(monkeypatch) -> None:
    monkeypatch.setenv("RPC_HOST", "   ")
    assert Settings(_env_file=None).rpc_host == "localhost"
