"""CLI tests for protosql."""

import json
import sys

import pytest

from protosql import cli


USER_PROTO = """
syntax = "proto3";
message User {
  int64 id = 1;
  string email = 2;
  optional int32 age = 3;
}
"""


def _run_cli(args, monkeypatch):
    monkeypatch.setattr(sys, "argv", ["protosql"] + args)
    return cli.main()


def _exit_code(args, monkeypatch) -> int:
    with pytest.raises(SystemExit) as excinfo:
        _run_cli(args, monkeypatch)
    return excinfo.value.code


def test_matching_schema_exits_zero(monkeypatch, capsys, sqlite_db, write_proto):
    _, uri = sqlite_db("CREATE TABLE users (id BIGINT NOT NULL PRIMARY KEY, email TEXT NOT NULL, age INTEGER)")
    proto = write_proto("user.proto", USER_PROTO)
    assert _exit_code(["--uri", uri, "--file", str(proto)], monkeypatch) == 0
    out = capsys.readouterr().out
    assert "User -> users" in out
    assert "[OK] Validation complete" in out
    assert "Status: OK" in out
    assert "Errors: 0" in out


def test_mismatch_exits_two(monkeypatch, capsys, sqlite_db, write_proto):
    _, uri = sqlite_db("CREATE TABLE users (id BIGINT NOT NULL PRIMARY KEY, email TEXT NOT NULL)")
    proto = write_proto("user.proto", USER_PROTO)
    assert _exit_code(["--uri", uri, "--file", str(proto)], monkeypatch) == cli.EXIT_MISMATCH
    out = capsys.readouterr().out
    assert "[ERROR] MISSING_COLUMN User.age -> users.age" in out
    assert "Status: MISMATCH" in out
    assert "Errors: 1" in out


def test_warnings_only_exit_zero(monkeypatch, capsys, sqlite_db, write_proto):
    _, uri = sqlite_db("CREATE TABLE users (id BIGINT NOT NULL, email TEXT, age INTEGER, note TEXT)")
    proto = write_proto("user.proto", USER_PROTO)
    assert _exit_code(["--uri", uri, "--file", str(proto)], monkeypatch) == 0
    out = capsys.readouterr().out
    assert "[WARNING] NULLABILITY_MISMATCH" in out
    assert "[WARNING] EXTRA_COLUMN" in out
    assert "Warnings: 2" in out


def test_no_extra_columns_flag(monkeypatch, capsys, sqlite_db, write_proto):
    _, uri = sqlite_db("CREATE TABLE users (id BIGINT NOT NULL, email TEXT NOT NULL, age INTEGER, note TEXT)")
    proto = write_proto("user.proto", USER_PROTO)
    assert _exit_code(["--uri", uri, "--file", str(proto), "--no-extra-columns"], monkeypatch) == 0
    out = capsys.readouterr().out
    assert "EXTRA_COLUMN" not in out
    assert "Warnings: 0" in out


def test_dir_and_output_report(monkeypatch, capsys, tmp_path, sqlite_db, write_proto):
    _, uri = sqlite_db("CREATE TABLE users (id BIGINT NOT NULL, email TEXT NOT NULL)")
    write_proto("user.proto", USER_PROTO)
    out_dir = tmp_path / "out"
    code = _exit_code(
        ["--uri", uri, "--dir", str(tmp_path / "protos"), "--output-dir", str(out_dir)],
        monkeypatch,
    )
    assert code == 2
    report_path = out_dir / cli.REPORT_FILENAME
    assert report_path.exists()
    data = json.loads(report_path.read_text(encoding="utf-8"))
    assert data["ok"] is False
    assert data["summary"] == {"errors": 1, "warnings": 0}
    assert data["issues"][0]["kind"] == "MISSING_COLUMN"
    assert data["pairings"] == [{"message": "User", "table": "users"}]
    assert f"Report: {report_path.resolve()}" in capsys.readouterr().out


def test_message_and_table_options(monkeypatch, capsys, sqlite_db, write_proto):
    _, uri = sqlite_db("CREATE TABLE app_users (id BIGINT NOT NULL, email TEXT NOT NULL, age INTEGER)")
    proto = write_proto("models.proto", USER_PROTO + "message Team { string name = 1; }")
    args = ["--uri", uri, "--file", str(proto), "--message", "User", "--table", "app_users"]
    assert _exit_code(args, monkeypatch) == 0
    out = capsys.readouterr().out
    assert "User -> app_users" in out
    assert "Team" not in out


def test_unknown_message_is_fatal(monkeypatch, capsys, sqlite_db, write_proto):
    _, uri = sqlite_db("CREATE TABLE users (id BIGINT)")
    proto = write_proto("user.proto", USER_PROTO)
    assert _exit_code(["--uri", uri, "--file", str(proto), "--message", "Nope"], monkeypatch) == 1
    assert "Error:" in capsys.readouterr().err


def test_table_requires_message(monkeypatch, capsys, write_proto):
    proto = write_proto("user.proto", USER_PROTO)
    assert _exit_code(["--uri", "sqlite://", "--file", str(proto), "--table", "users"], monkeypatch) == 1
    assert "--table requires --message" in capsys.readouterr().err


def test_parse_error_exits_one(monkeypatch, capsys, sqlite_db, write_proto):
    _, uri = sqlite_db()
    proto = write_proto("bad.proto", "message User { string email = ; }")
    assert _exit_code(["--uri", uri, "--file", str(proto)], monkeypatch) == 1
    err = capsys.readouterr().err
    assert err.startswith("Error:")
    assert "bad.proto" in err


def test_empty_dir_exits_one(monkeypatch, capsys, tmp_path):
    empty = tmp_path / "empty"
    empty.mkdir()
    assert _exit_code(["--uri", "sqlite://", "--dir", str(empty)], monkeypatch) == 1
    assert "No .proto files found" in capsys.readouterr().err


def test_missing_file_exits_one(monkeypatch, capsys, tmp_path):
    code = _exit_code(["--uri", "sqlite://", "--file", str(tmp_path / "missing.proto")], monkeypatch)
    assert code == 1
    assert "Proto file not found" in capsys.readouterr().err


def test_invalid_uri_exits_one(monkeypatch, capsys, write_proto):
    proto = write_proto("user.proto", USER_PROTO)
    assert _exit_code(["--uri", "not a uri", "--file", str(proto)], monkeypatch) == 1
    assert "Invalid database URI" in capsys.readouterr().err


def test_bad_config_exits_one(monkeypatch, capsys, tmp_path, write_proto):
    proto = write_proto("user.proto", USER_PROTO)
    config = tmp_path / "config.json"
    config.write_text('{"embeddingPolicy": "sideways"}', encoding="utf-8")
    code = _exit_code(["--uri", "sqlite://", "--file", str(proto), "--config", str(config)], monkeypatch)
    assert code == 1
    assert "Invalid config" in capsys.readouterr().err


def test_file_and_dir_are_exclusive(monkeypatch, tmp_path):
    code = _exit_code(["--uri", "sqlite://", "--file", "a.proto", "--dir", str(tmp_path)], monkeypatch)
    assert code == 2


def test_version(monkeypatch, capsys):
    assert _exit_code(["--version"], monkeypatch) == 0
    assert capsys.readouterr().out.startswith("protosql ")
