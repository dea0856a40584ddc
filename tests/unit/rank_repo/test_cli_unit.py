from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from rank_repo import __version__, cli
from rank_repo.config import OutputFormat
from rank_repo.exceptions import NotAGitRepositoryError
from rank_repo.ignore import DEFAULT_IGNORE, IGNORE_FILE_NAME
from rank_repo.settings import HOME_ENV, SESSION_ENV

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home_dir = tmp_path / "home"
    monkeypatch.setenv(HOME_ENV, str(home_dir))
    monkeypatch.delenv(SESSION_ENV, raising=False)
    return home_dir


@pytest.fixture
def no_repo(mocker: MockerFixture) -> None:
    mocker.patch("rank_repo.cli.repo_root", side_effect=NotAGitRepositoryError(folder=Path()))


@pytest.mark.unit
def test_parse_args_tree_options() -> None:
    args = cli.parse_args(["tree", "some/dir", "-s", "7", "-d", "2", "--flat", "--format", "json", "-t"])

    assert args.command == "tree"
    assert args.path == "some/dir"
    assert args.min_score == 7
    assert args.depth == 2
    assert args.flat is True
    assert args.no_color is None
    assert args.format == "json"
    assert args.tokens is True


@pytest.mark.unit
def test_parse_args_cat_options() -> None:
    args = cli.parse_args(["cat", "a.rs", "b.rs", "-l", "8", "-S", "s1", "--no-headers"])

    assert args.files == ["a.rs", "b.rs"]
    assert args.level == 8
    assert args.session == "s1"
    assert args.no_headers is True
    assert args.no_session is False


@pytest.mark.unit
def test_parse_args_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.parse_args(["--version"])

    assert exc_info.value.code == 0
    assert __version__ in capsys.readouterr().out


@pytest.mark.unit
def test_parse_args_requires_command() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args([])


@pytest.mark.unit
@pytest.mark.usefixtures("no_repo")
def test_tree_settings_layers_cli_over_config(home: Path, tmp_path: Path) -> None:
    home.mkdir()
    (home / "config.yaml").write_text("min_score: 6\ndepth: 4\nflat: true\n", encoding="utf-8")
    project = tmp_path / "project"
    project.mkdir()
    (project / ".rank_repo.yaml").write_text("depth: 2\n", encoding="utf-8")

    settings = cli.tree_settings(cli.parse_args(["tree", str(project), "-s", "9"]))

    assert settings.min_score == 9
    assert settings.depth == 2
    assert settings.flat is True
    assert settings.no_color is False
    assert settings.home == home


@pytest.mark.unit
@pytest.mark.usefixtures("no_repo")
def test_cat_settings_session_sources(home: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(SESSION_ENV, "from-env")

    from_env = cli.cat_settings(cli.parse_args(["cat"]))
    explicit = cli.cat_settings(cli.parse_args(["cat", "-S", "mine"]))
    disabled = cli.cat_settings(cli.parse_args(["cat", "--no-session"]))

    assert from_env.session == "from-env"
    assert explicit.session == "mine"
    assert disabled.session is None
    assert from_env.level == 5
    assert from_env.session_dir == home / "sessions"


@pytest.mark.unit
@pytest.mark.usefixtures("home")
def test_main_reports_errors(mocker: MockerFixture, capsys: pytest.CaptureFixture[str]) -> None:
    mocker.patch("rank_repo.cli.open_repository", side_effect=NotAGitRepositoryError(folder=Path("x")))
    mocker.patch("rank_repo.cli.repo_root", side_effect=NotAGitRepositoryError(folder=Path("x")))

    code = cli.main(["tree", "--no-color"])

    assert code == 1
    assert capsys.readouterr().err.strip() == "Error: not a git repository"


@pytest.mark.unit
@pytest.mark.usefixtures("home", "no_repo")
def test_main_rejects_bad_format(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["tree", "--format", "yaml"]) == 1
    assert "Invalid format: yaml" in capsys.readouterr().err


@pytest.mark.unit
def test_session_creates_and_prints_export(home: Path, mocker: MockerFixture, capsys: pytest.CaptureFixture[str]) -> None:
    mocker.patch("rank_repo.cli.generate_session_id", return_value="sess-42")

    assert cli.main(["session"]) == 0

    assert capsys.readouterr().out.strip() == f"export {SESSION_ENV}=sess-42; echo 'Session created: sess-42'"
    assert (home / "sessions" / "sess-42.json").is_file()


@pytest.mark.unit
def test_session_reports_active_session(
    home: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv(SESSION_ENV, "sess-1")

    assert cli.main(["session"]) == 0

    assert capsys.readouterr().out.strip() == "echo 'Session already active: sess-1'"
    assert not (home / "sessions").exists()


@pytest.mark.unit
def test_session_clear(home: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    store = home / "sessions"
    store.mkdir(parents=True)
    (store / "old.json").write_text('{"name": "old", "files": {}}', encoding="utf-8")
    monkeypatch.setenv(SESSION_ENV, "old")

    assert cli.main(["session", "clear", "old"]) == 0

    out = capsys.readouterr().out
    assert "Cleared session 'old'" in out
    assert f"unset {SESSION_ENV}" in out
    assert not (store / "old.json").exists()
    assert cli.main(["session", "clear", "old"]) == 0


@pytest.mark.unit
@pytest.mark.usefixtures("home")
def test_init_local_refuses_to_overwrite(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.chdir(tmp_path)

    assert cli.main(["init"]) == 0
    target = tmp_path / IGNORE_FILE_NAME
    assert target.read_text(encoding="utf-8") == DEFAULT_IGNORE

    target.write_text("custom\n", encoding="utf-8")
    assert cli.main(["init"]) == 1
    assert "Use --force to overwrite" in capsys.readouterr().err
    assert target.read_text(encoding="utf-8") == "custom\n"

    assert cli.main(["init", "--force"]) == 0
    assert target.read_text(encoding="utf-8") == DEFAULT_IGNORE


@pytest.mark.unit
def test_init_global_writes_into_home(home: Path) -> None:
    assert cli.main(["init", "--global"]) == 0
    assert (home / "ignore").read_text(encoding="utf-8") == DEFAULT_IGNORE


@pytest.mark.unit
def test_output_format_parse() -> None:
    assert OutputFormat.parse(None) is OutputFormat.TEXT
    assert OutputFormat.parse(" Xml ") is OutputFormat.XML


@pytest.mark.unit
@pytest.mark.usefixtures("home", "no_repo")
@pytest.mark.parametrize(
    ("argv", "option"),
    [
        (["tree", "-s", "0"], "--min-score"),
        (["tree", "-d", "-1"], "--depth"),
        (["tree", "-j", "-1"], "--jobs"),
        (["cat", "-l", "11"], "--level"),
    ],
)
def test_out_of_range_options_are_reported(
    argv: list[str],
    option: str,
    capsys: pytest.CaptureFixture[str],
) -> None:
    assert cli.main(argv) == 1

    err = capsys.readouterr().err.strip().splitlines()
    assert len(err) == 1
    assert err[0].startswith(f"Error: Invalid value for {option}: ")


@pytest.mark.unit
@pytest.mark.usefixtures("home", "no_repo")
def test_out_of_range_value_names_the_bound(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["tree", "--min-score", "0"]) == 1
    assert "greater than or equal to 1" in capsys.readouterr().err


@pytest.mark.unit
@pytest.mark.usefixtures("home")
def test_unwritable_log_file_is_reported(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    log_file = tmp_path / "missing-dir" / "run.log"

    assert cli.main(["--log-file", str(log_file), "init", "--global"]) == 1

    err = capsys.readouterr().err
    assert err.startswith(f"Error: Cannot open log file {log_file}: ")
    assert not log_file.exists()
