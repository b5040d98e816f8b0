"""
CLI Tests - Drive the command line entry point against a temp database.
"""

import pytest

from filesync.cli import build_parser, main


@pytest.fixture
def cli_env(temp_dir, monkeypatch):
    monkeypatch.setenv("HOME", str(temp_dir))
    monkeypatch.delenv("FILESYNC_DB_PATH", raising=False)
    return ["--db", str(temp_dir / "cli.db")]


class TestParser:
    def test_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_search_defaults_to_browse(self):
        args = build_parser().parse_args(["search"])
        assert args.query == ""
        assert args.project is None


class TestCommands:
    def test_add_index_and_search(self, cli_env, sample_files, capsys):
        root = str(sample_files["root"])

        assert main([*cli_env, "add", "/projects/a", root, "--index"]) == 0
        out = capsys.readouterr().out
        assert "indexed" in out
        assert "3 files" in out

        assert main([*cli_env, "search", "settings"]) == 0
        out = capsys.readouterr().out
        assert "settings.ts" in out

    def test_list(self, cli_env, sample_files, capsys):
        main([*cli_env, "add", "/projects/a", str(sample_files["root"])])
        capsys.readouterr()

        assert main([*cli_env, "list", "--project", "/projects/a"]) == 0
        out = capsys.readouterr().out
        assert "pending" in out
        assert "0/1 folders indexed" in out

    def test_duplicate_add_fails(self, cli_env, sample_files, capsys):
        root = str(sample_files["root"])
        main([*cli_env, "add", "/projects/a", root])

        assert main([*cli_env, "add", "/projects/a", root]) == 1
        assert "already added" in capsys.readouterr().err

    def test_index_background_pass(self, cli_env, sample_files, capsys):
        main([*cli_env, "add", "/projects/a", str(sample_files["root"])])
        capsys.readouterr()

        assert main([*cli_env, "index"]) == 0
        assert "1/1 folders indexed" in capsys.readouterr().out
