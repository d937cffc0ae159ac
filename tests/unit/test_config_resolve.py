from pathlib import Path

from wifisignal.config import CONFIG_ENV, resolve_config_path


def test_resolve_prefers_cli(tmp_path, monkeypatch):
    cfg = tmp_path / "a.yml"
    cfg.write_text("{}", encoding="utf-8")
    other = tmp_path / "b.yml"
    other.write_text("{}", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV, str(other))
    p = resolve_config_path(cfg)
    assert p == cfg.resolve()


def test_resolve_env_when_no_cli(tmp_path, monkeypatch):
    cfg = tmp_path / "b.yml"
    cfg.write_text("{}", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV, str(cfg))
    p = resolve_config_path(None)
    assert p == cfg.resolve()


def test_resolve_env_when_cli_missing(tmp_path, monkeypatch):
    cfg = tmp_path / "b.yml"
    cfg.write_text("{}", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV, str(cfg))
    p = resolve_config_path(tmp_path / "missing.yml")
    assert p == cfg.resolve()


def test_resolve_repo_configs(tmp_path, monkeypatch):
    (tmp_path / "configs").mkdir()
    (tmp_path / "configs" / "wifisignal.yml").write_text("{}", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(CONFIG_ENV, raising=False)
    if Path("/etc/wifisignal/wifisignal.yml").exists():
        return
    assert resolve_config_path(None) == (tmp_path / "configs" / "wifisignal.yml").resolve()


def test_unresolved_returns_first_candidate(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(CONFIG_ENV, raising=False)
    missing = tmp_path / "nope.yml"
    assert resolve_config_path(missing) == missing
