"""Tests for the command-line sync runner."""

import pytest

from streamcurator import cli


def test_parse_ignore_accepts_known_fields():
    assert cli.parse_ignore("tvg_id, logo") == ["tvg_id", "logo"]
    assert cli.parse_ignore("") == []


def test_parse_ignore_rejects_unknown_fields():
    with pytest.raises(ValueError, match="name"):
        cli.parse_ignore("tvg_id,name")


def test_invalid_ignore_exits_with_error(tmp_path, capsys):
    assert cli.main(["sync", "--ignore", "bogus", "--data-dir", str(tmp_path)]) == 1
    assert "Invalid ignore field" in capsys.readouterr().err


def test_unknown_action_is_rejected():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["refresh"])


def test_fixup_on_empty_database(tmp_path, capsys):
    assert cli.main(["fixup", "--data-dir", str(tmp_path)]) == 0
    out = capsys.readouterr().out
    assert "Action:    fixup" in out
    assert "Errors:    0" in out


def test_sync_without_providers(tmp_path, capsys):
    assert cli.main(["sync", "--user-id", "1", "--data-dir", str(tmp_path)]) == 0
    assert "Providers: 0" in capsys.readouterr().out
