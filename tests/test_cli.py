import pytest
from typer.testing import CliRunner

from f1tv_dl.cli import app as cli_app
from f1tv_dl.models.credential import Credential, CredentialSource
from f1tv_dl.storage.token_store import ManualTokenFile, TokenStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    for name in ("F1TV_USER", "F1TV_PASS", "F1TV_DEBUG"):
        monkeypatch.delenv(name, raising=False)
    config_file = tmp_path / "config.ini"
    monkeypatch.setattr(cli_app, "CONFIG_DIR", tmp_path)
    monkeypatch.setattr(cli_app, "CONFIG_FILE", config_file)
    return config_file


def test_version():
    result = runner.invoke(cli_app.app, ["--version"])
    assert result.exit_code == 0
    assert "f1tv-dl" in result.output


def test_validate_reports_missing_ffmpeg(monkeypatch):
    monkeypatch.setattr(cli_app.shutil, "which", lambda name: None)
    result = runner.invoke(cli_app.app, ["validate"])
    assert result.exit_code == 1


def test_validate_with_defaults(monkeypatch):
    monkeypatch.setattr(cli_app.shutil, "which", lambda name: "/usr/bin/ffmpeg")
    result = runner.invoke(cli_app.app, ["validate"])
    assert result.exit_code == 0


def test_clear_cache_removes_token_files(tmp_path):
    store = TokenStore(tmp_path / ".token-cache.json")
    store.save(Credential("tok", CredentialSource.CACHE))
    ManualTokenFile(tmp_path / ".f1tv-cookies.json").write("tok")

    result = runner.invoke(cli_app.app, ["clear-cache", "--force"])

    assert result.exit_code == 0
    assert "2 file(s) removed" in result.output
    assert not (tmp_path / ".token-cache.json").exists()
    assert not (tmp_path / ".f1tv-cookies.json").exists()


def test_download_with_only_invalid_urls_exits_nonzero():
    result = runner.invoke(cli_app.app, ["download", "https://example.com/detail/1/race", "--delay", "0"])
    assert result.exit_code == 1


def test_validate_notes_that_login_needs_an_acquirer(monkeypatch):
    monkeypatch.setattr(cli_app.shutil, "which", lambda name: "/usr/bin/ffmpeg")
    monkeypatch.setenv("F1TV_USER", "driver@example.com")
    monkeypatch.setenv("F1TV_PASS", "secret")

    result = runner.invoke(cli_app.app, ["validate"])

    assert result.exit_code == 0
    assert "acquirer plugin" in result.output
