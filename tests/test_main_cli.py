import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from main import _parse_args, main


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "127.0.0.1", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 8080


def test_seed_and_list_courses_commands(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("REGISTRAR_DB_PATH", str(tmp_path / "cli.sqlite3"))
    monkeypatch.delenv("REGISTRAR_CONFIG", raising=False)

    main(["seed"])
    assert "Seeded 2 course(s)." in capsys.readouterr().out

    main(["seed"])
    assert "nothing to seed" in capsys.readouterr().out

    main(["list-courses"])
    output = capsys.readouterr().out
    assert "CS101" in output
    assert "0/50" in output
    assert "MATH201" in output
