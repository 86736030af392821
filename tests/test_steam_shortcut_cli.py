import json

import pytest

import steam_shortcut
from steam_shortcut import format_play_time, main, resolve_shortcuts_path
from steam_shortcuts import load


def run(capsys, *argv):
    rc = main(list(argv))
    out, err = capsys.readouterr()
    return rc, out, err


class TestList:
    def test_default_columns(self, capsys, sample_file):
        rc, out, _err = run(capsys, "list", str(sample_file))
        assert rc == 0
        assert out.splitlines() == ['3735928559 "Café™"', '42 "Heroic"']

    def test_folder_path(self, capsys, sample_file):
        rc, out, _err = run(capsys, "list", str(sample_file.parent))
        assert rc == 0
        assert len(out.splitlines()) == 2

    def test_keys_separator_and_order(self, capsys, sample_file):
        rc, out, _err = run(
            capsys, "list", str(sample_file), "--keys", "--separator", ",",
            "--tags", "PLAIN", "--index", "plain", "--devkit-game-id", "plain",
        )
        assert rc == 0
        assert out.splitlines()[0] == (
            'index = 0,app_id = 3735928559,app_name = "Café™",devkit_game_id = ,'
            'tags = ["favorite", "Emulation"]'
        )

    def test_all_overrides_columns(self, capsys, sample_file):
        rc, out, _err = run(capsys, "list", str(sample_file), "--all", "plain", "--separator", "|")
        assert rc == 0
        cells = out.splitlines()[1].split("|")
        assert cells[0] == "1"
        assert '"com.heroicgameslauncher.hgl"' in cells
        assert '"1970/01/01, 00:00:00 UTC"' in cells
        assert '"1970-01-01T00:00:00+00:00"' in cells

    def test_json(self, capsys, sample_file):
        rc, out, _err = run(capsys, "list", str(sample_file), "--json")
        assert rc == 0
        doc = json.loads(out)
        assert doc[0]["app_name"] == "Café™"
        assert doc[1]["index"] == 1

    def test_bad_column_mode(self, capsys, sample_file):
        with pytest.raises(SystemExit):
            main(["list", str(sample_file), "--exe", "padded"])

    def test_missing_file(self, capsys, tmp_path):
        rc, _out, err = run(capsys, "list", str(tmp_path / "nope"))
        assert rc == 2
        assert "Program aborted." in err

    def test_malformed_file(self, capsys, tmp_path):
        bad = tmp_path / "shortcuts.vdf"
        bad.write_bytes(b"\x05garbage")
        rc, _out, err = run(capsys, "list", str(bad))
        assert rc == 3
        assert "Unknown KV type byte" in err

    def test_empty_file(self, capsys, tmp_path):
        empty = tmp_path / "shortcuts.vdf"
        empty.write_bytes(b"")
        rc, _out, _err = run(capsys, "list", str(empty))
        assert rc == 3

    def test_steam_root_option(self, capsys, tmp_path, sample_vdf):
        cfg = tmp_path / "userdata" / "1234" / "config"
        cfg.mkdir(parents=True)
        (cfg / "shortcuts.vdf").write_bytes(sample_vdf)
        rc, out, _err = run(capsys, "list", "--steam-root", str(tmp_path))
        assert rc == 0
        assert out.splitlines()[1] == '42 "Heroic"'

    def test_auto_detected_steam_root(self, capsys, monkeypatch, tmp_path, sample_vdf):
        cfg = tmp_path / ".steam" / "steam" / "userdata" / "99" / "config"
        cfg.mkdir(parents=True)
        (cfg / "shortcuts.vdf").write_bytes(sample_vdf)
        monkeypatch.setattr(steam_shortcut.platform, "system", lambda: "Linux")
        monkeypatch.setattr(steam_shortcut.Path, "home", lambda: tmp_path)
        rc, out, _err = run(capsys, "list")
        assert rc == 0
        assert len(out.splitlines()) == 2

    def test_no_steam_root(self, capsys, monkeypatch, tmp_path):
        monkeypatch.setattr(steam_shortcut.platform, "system", lambda: "Linux")
        monkeypatch.setattr(steam_shortcut.Path, "home", lambda: tmp_path)
        rc, _out, err = run(capsys, "list")
        assert rc == 2
        assert "Steam root" in err


class TestEdit:
    def test_requires_force_for_existing_file(self, capsys, sample_file):
        before = sample_file.read_bytes()
        rc, _out, err = run(capsys, "edit", str(sample_file), "--idx", "0", "--key", "open_vr", "--val", "1")
        assert rc == 5
        assert "--force" in err
        assert sample_file.read_bytes() == before

    def test_in_place_with_backup(self, capsys, sample_file):
        before = sample_file.read_bytes()
        rc, out, _err = run(
            capsys, "edit", str(sample_file), "--idx", "0", "--key", "open_vr", "--val", "1", "--force",
        )
        assert rc == 0
        assert f"Write to file: {sample_file}" in out
        assert load(sample_file.read_bytes()).at(0).get("open_vr") == 1
        assert (sample_file.parent / "shortcuts.vdf.bak").read_bytes() == before

    def test_new_entry_to_out(self, capsys, sample_file, tmp_path):
        dest = tmp_path / "new.vdf"
        rc, _out, _err = run(
            capsys, "edit", str(sample_file), "--idx", "4", "--key", "tags", "--val", '["a","b"]', "--out", str(dest),
        )
        assert rc == 0
        scs = load(dest.read_bytes())
        assert [sc.index for sc in scs] == [0, 1, 4]
        assert scs.at(4).get("tags") == ["a", "b"]

    def test_type_mismatch(self, capsys, sample_file):
        before = sample_file.read_bytes()
        rc, _out, err = run(
            capsys, "edit", str(sample_file), "--idx", "0", "--key", "open_vr", "--val", "notanumber", "--force",
        )
        assert rc == 4
        assert "UInt32" in err
        assert sample_file.read_bytes() == before

    def test_unknown_key(self, capsys, sample_file):
        rc, _out, _err = run(
            capsys, "edit", str(sample_file), "--idx", "0", "--key", "nope", "--val", "1", "--force",
        )
        assert rc == 4

    def test_json_into_new_file(self, capsys, tmp_path):
        jpath = tmp_path / "in.json"
        jpath.write_text(json.dumps([{"index": 0, "app_name": "From JSON", "allow_overlay": 1}]), "utf-8")
        dest = tmp_path / "shortcuts.vdf"
        rc, _out, _err = run(capsys, "edit", "--json-path", str(jpath), "--out", str(dest))
        assert rc == 0
        sc = load(dest.read_bytes()).at(0)
        assert sc.get("app_name") == "From JSON"
        assert sc.get("allow_overlay") == 1

    def test_missing_json_file(self, capsys, tmp_path):
        rc, _out, err = run(capsys, "edit", "--json-path", str(tmp_path / "x.json"), "--out", str(tmp_path / "o.vdf"))
        assert rc == 2
        assert "JSON Path is invalid" in err

    @pytest.mark.parametrize("argv", [
        ["edit"],
        ["edit", "--out", "x.vdf"],
        ["edit", "shortcuts.vdf", "--idx", "0", "--key", "exe"],
    ])
    def test_usage_errors(self, capsys, argv):
        rc, _out, err = run(capsys, *argv)
        assert rc == 2
        assert "Check the usage." in err

    def test_unencodable_json_value(self, capsys, tmp_path):
        jpath = tmp_path / "in.json"
        jpath.write_text(json.dumps([{"index": 0, "app_name": "\ud800"}]), "utf-8")
        dest = tmp_path / "shortcuts.vdf"
        rc, _out, err = run(capsys, "edit", "--json-path", str(jpath), "--out", str(dest))
        assert rc == 4
        assert "app_name" in err
        assert not dest.exists()

    def test_quoted_tag_is_written(self, capsys, sample_file, tmp_path):
        dest = tmp_path / "quoted.vdf"
        rc, _out, _err = run(
            capsys, "edit", str(sample_file), "--idx", "1", "--key", "tags", "--val", '["say \\"hi\\""]',
            "--out", str(dest),
        )
        assert rc == 0
        assert load(dest.read_bytes()).at(1).get("tags") == ['say \\"hi\\"']

    def test_encoding_mismatch_is_not_written(self, capsys, monkeypatch, sample_file, tmp_path):
        monkeypatch.setattr(steam_shortcut.Shortcuts, "to_bytes", lambda self: b"\x00shortcuts\x00\x08\x08")
        dest = tmp_path / "out.vdf"
        rc, _out, err = run(
            capsys, "edit", str(sample_file), "--idx", "0", "--key", "open_vr", "--val", "1", "--out", str(dest),
        )
        assert rc == 5
        assert "verification failed" in err
        assert not dest.exists()


class TestOther:
    def test_check(self, capsys, sample_file):
        rc, out, _err = run(capsys, "check", str(sample_file))
        assert rc == 0
        assert "2 shortcuts, round-trip OK" in out

    def test_version(self, capsys):
        rc, out, _err = run(capsys, "version")
        assert rc == 0
        assert out.strip() == f"steam-shortcut {steam_shortcut.__version__}"

    def test_resolve_prefers_file(self, sample_file):
        assert resolve_shortcuts_path(str(sample_file)) == sample_file
        assert resolve_shortcuts_path(str(sample_file.parent)) == sample_file

    def test_play_time_formats(self):
        assert format_play_time(86400, "utc") == "1970/01/02, 00:00:00 UTC"
        assert format_play_time(86400, "iso") == "1970-01-02T00:00:00+00:00"

    def test_negative_index_is_rejected(self, sample_file):
        with pytest.raises(SystemExit):
            main(["edit", str(sample_file), "--idx", "-1", "--key", "exe", "--val", "x"])
