import pytest

from conftest import FakeResponse, FakeSession
from spatialvault import cli
from spatialvault.etl import msft_footprints


def test_version(capsys):
    with pytest.raises(SystemExit) as exit_info:
        cli.main(["--version"])
    assert exit_info.value.code == 0
    assert "spatialvault" in capsys.readouterr().out


def test_subcommand_required():
    with pytest.raises(SystemExit) as exit_info:
        cli.main([])
    assert exit_info.value.code == 2


def test_msft_list_dispatch(monkeypatch, capsys):
    session = FakeSession({
        msft_footprints.CSV_URL: [FakeResponse(text="Location,Url\nB,u1\nA,u2\nB,u3\n")]
    })
    monkeypatch.setattr(msft_footprints, "build_session", lambda: session)

    assert cli.main(["msft", "--list"]) == 0
    assert capsys.readouterr().out == "- A\n- B\n"


def test_errors_return_1(tmp_path):
    assert cli.main(["acled", "--config", str(tmp_path / "missing.toml")]) == 1
