#!/usr/bin/env python3
# MIT License
#
# Copyright (c) 2026 sookyboo
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
import argparse
import json
import logging
import os
import platform
import shutil
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from steam_shortcuts import SHORTCUT_PROPS, PropKind, Shortcut, Shortcuts, verify_encoded, verify_roundtrip
from steam_vdf import (
    UINT32_MAX,
    MalformedInputError,
    OutputCollisionError,
    TypeMismatchError,
    UnknownPropertyError,
    VdfError,
)

__version__ = "0.3.0"

logger = logging.getLogger(__name__)


# ----------------------------
# Steam path detection
# ----------------------------
def detect_steam_root() -> Optional[Path]:
    system = platform.system().lower()

    candidates: List[Path] = []
    home = Path.home()

    if "windows" in system:
        pf86 = os.environ.get("PROGRAMFILES(X86)")
        pf = os.environ.get("PROGRAMFILES")
        if pf86:
            candidates.append(Path(pf86) / "Steam")
        if pf:
            candidates.append(Path(pf) / "Steam")
        candidates.append(Path("C:/Steam"))
    else:
        candidates.extend([
            home / ".steam" / "steam",
            home / ".local" / "share" / "Steam",
            home / ".var" / "app" / "com.valvesoftware.Steam" / "data" / "Steam",
            ])

    for c in candidates:
        if (c / "userdata").is_dir():
            return c
    return None


def choose_userdata_dir(steam_root: Path, steamid: Optional[str]) -> Tuple[Path, str]:
    """
    Pick userdata/<steamid>. Without an explicit id, the account whose
    config/shortcuts.vdf was modified last wins.
    """
    userdata = steam_root / "userdata"
    if not userdata.is_dir():
        raise FileNotFoundError(f"No userdata dir under {steam_root}")

    if steamid:
        d = userdata / steamid
        if not d.is_dir():
            raise FileNotFoundError(f"SteamID folder not found: {d}")
        return d, steamid

    best_dir: Optional[Path] = None
    best_mtime = -1.0
    for d in userdata.iterdir():
        if not d.is_dir() or not d.name.isdigit():
            continue
        vdf = d / "config" / "shortcuts.vdf"
        if vdf.is_file():
            mtime = vdf.stat().st_mtime
            if mtime > best_mtime:
                best_mtime = mtime
                best_dir = d

    if best_dir is None:
        raise FileNotFoundError(f"Could not find any shortcuts.vdf under {userdata}")
    return best_dir, best_dir.name


# ----------------------------
# shortcuts.vdf location and I/O
# ----------------------------
def resolve_shortcuts_path(path: str) -> Path:
    raw = Path(path)
    if raw.is_file():
        return raw
    joined = raw / "shortcuts.vdf"
    if joined.is_file():
        return joined
    raise FileNotFoundError(
        f"<SHORTCUTS_PATH> must be an existing file or a folder containing shortcuts.vdf: {path}"
    )


def locate_shortcuts(args: argparse.Namespace) -> Path:
    if args.shortcuts_path:
        return resolve_shortcuts_path(args.shortcuts_path)

    steam_root = Path(args.steam_root) if args.steam_root else detect_steam_root()
    if not steam_root:
        raise FileNotFoundError("Could not auto-detect Steam root. Pass <SHORTCUTS_PATH> or --steam-root.")
    userdir, steamid = choose_userdata_dir(steam_root, args.steamid)
    logger.info("Using shortcuts of SteamID %s", steamid)
    return resolve_shortcuts_path(str(userdir / "config"))


def load_shortcuts(path: Path) -> Shortcuts:
    data = path.read_bytes()
    if not data:
        raise MalformedInputError(f"{path} is empty")
    logger.info("Reading %s (%d bytes)", path, len(data))
    return Shortcuts.from_bytes(data)


def write_shortcuts(dest: Path, data: bytes, force: bool) -> None:
    if dest.exists():
        if not force:
            raise OutputCollisionError(f'Shortcuts file already exists at: "{dest}". Use --force to overwrite it.')
        bak = dest.with_name(dest.name + ".bak")
        shutil.copyfile(dest, bak)
        logger.info("Backup written to %s", bak)

    print(f"Write to file: {dest}")
    dest.write_bytes(data)


# ----------------------------
# Table output
# ----------------------------
MODE_NONE = "none"
MODE_PLAIN = "plain"
COLUMN_MODES = (MODE_NONE, MODE_PLAIN)

TIME_FORMAT = "%Y/%m/%d, %H:%M:%S"


def format_play_time(ts: int, style: str) -> str:
    if style == "utc":
        return datetime.fromtimestamp(ts, tz=timezone.utc).strftime(TIME_FORMAT) + " UTC"
    if style == "iso":
        return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()
    return datetime.fromtimestamp(ts).strftime(TIME_FORMAT)


@dataclass(frozen=True)
class Column:
    option: str
    order: int
    render: Callable[[Shortcut], str]
    default: str = MODE_NONE
    help: str = ""


def _prop_renderer(name: str, quoted: bool) -> Callable[[Shortcut], str]:
    def render(sc: Shortcut) -> str:
        val = sc.format(name)
        return f'"{val}"' if quoted else val
    return render


def _play_time_renderer(style: str) -> Callable[[Shortcut], str]:
    def render(sc: Shortcut) -> str:
        return f'"{format_play_time(sc.get("last_play_time"), style)}"'
    return render


def _build_columns() -> List[Column]:
    cols: List[Column] = []
    for p in SHORTCUT_PROPS:
        quoted = p.kind is PropKind.STRING and p.name != "devkit_game_id"
        default = MODE_PLAIN if p.name in ("app_id", "app_name") else MODE_NONE
        cols.append(Column(p.name, p.order, _prop_renderer(p.name, quoted), default, f"Shows {p.wire_name}"))

    play_time = next(p for p in SHORTCUT_PROPS if p.name == "last_play_time")
    cols.extend([
        Column("last_play_time_utc", play_time.order, _play_time_renderer("utc"),
               help='Shows LastPlayTime as "YYYY/MM/DD, hh:mm:ss UTC"'),
        Column("last_play_time_fmt", play_time.order, _play_time_renderer("local"),
               help='Shows LastPlayTime as "YYYY/MM/DD, hh:mm:ss" (local time)'),
        Column("last_play_time_iso", play_time.order, _play_time_renderer("iso"),
               help="Shows LastPlayTime in ISO 8601 (UTC)"),
    ])
    return cols


COLUMNS: List[Column] = _build_columns()


def render_table(shortcuts: Shortcuts, args: argparse.Namespace) -> List[str]:
    lines: List[str] = []
    for sc in shortcuts:
        cells: List[Tuple[int, str]] = []
        for col in COLUMNS:
            mode = args.all if args.all != MODE_NONE else getattr(args, col.option)
            if mode != MODE_PLAIN:
                continue
            val = col.render(sc)
            cells.append((col.order, f"{col.option} = {val}" if args.keys else val))
        cells.sort(key=lambda c: c[0])
        lines.append(args.separator.join(v for _o, v in cells))
    return lines


# ----------------------------
# Commands
# ----------------------------
def cmd_list(args: argparse.Namespace) -> int:
    scs = load_shortcuts(locate_shortcuts(args))
    if args.json:
        print(json.dumps(scs.to_json(), indent=2, sort_keys=True, ensure_ascii=False))
    else:
        for line in render_table(scs, args):
            print(line)
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    path = locate_shortcuts(args)
    count, ok = verify_roundtrip(path.read_bytes())
    print(f"{path}: {count} shortcuts, round-trip {'OK' if ok else 'MISMATCH'}")
    return 0 if ok else 5


def cmd_edit(args: argparse.Namespace) -> int:
    if args.shortcuts_path is None and args.out is None:
        return _usage("Missing required <SHORTCUTS_PATH> or --out. Check the usage.")
    if args.shortcuts_path is None and args.json_path is None:
        return _usage("Missing required <SHORTCUTS_PATH> or --json-path. Check the usage.")
    single = (args.idx, args.key, args.val)
    if args.json_path is None and any(x is None for x in single):
        return _usage("Missing required --json-path or --idx + --key + --val. Check the usage.")

    src = resolve_shortcuts_path(args.shortcuts_path) if args.shortcuts_path else None
    scs = load_shortcuts(src) if src else Shortcuts.empty()

    if all(x is not None for x in single):
        created = scs.set_field(args.idx, args.key, args.val)
        logger.info("%s shortcut %d: %s", "Created" if created else "Updated", args.idx, args.key)
    else:
        jpath = Path(args.json_path)
        if not jpath.is_file():
            raise FileNotFoundError(f"JSON Path is invalid. Missing file at {jpath}")
        merged = scs.update_from_json(jpath.read_text("utf-8"))
        logger.info("Merged %d shortcuts from %s", merged, jpath)

    dest = Path(args.out) if args.out else src
    out_bytes = scs.to_bytes()
    try:
        if not verify_encoded(scs, out_bytes):
            raise MalformedInputError("decoded entries differ from the edited ones")
    except VdfError as e:
        return _fail(f"Generated shortcuts.vdf verification failed: {e}", 5)

    try:
        write_shortcuts(dest, out_bytes, args.force)
    except OutputCollisionError:
        raise
    except OSError as e:
        return _fail(f"Unable to create file {dest}. {e}", 5)
    return 0


def cmd_version(_args: argparse.Namespace) -> int:
    print(f"steam-shortcut {__version__}")
    return 0


# ----------------------------
# Main
# ----------------------------
def _fail(msg: str, rc: int) -> int:
    print(f"Error! {msg}", file=sys.stderr)
    print("Program aborted.", file=sys.stderr)
    return rc


def _usage(msg: str) -> int:
    return _fail(f"Invalid input file: {msg}", 2)


def _index_arg(text: str) -> int:
    if not (text.isascii() and text.isdigit()) or int(text) > UINT32_MAX:
        raise argparse.ArgumentTypeError(f"invalid index: {text!r}")
    return int(text)


def _configure_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def _add_location_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("shortcuts_path", nargs="?", default=None,
                   help='Path to "shortcuts.vdf" or its folder (auto-detect if omitted)')
    p.add_argument("--steam-root", type=str, default=None, help="Path to Steam root (auto-detect if omitted)")
    p.add_argument("--steamid", type=str, default=None, help="SteamID folder under userdata/ (auto-pick if omitted)")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="steam-shortcut", description="VDF Shortcuts Editor for Steam Client")
    ap.add_argument("-v", "--verbose", action="count", default=0, help="More logging on stderr (-vv for debug)")
    sub = ap.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List entries summary info")
    _add_location_args(p_list)
    p_list.add_argument("--separator", default=" ", help="Table output columns separator")
    p_list.add_argument("--json", action="store_true",
                        help='Export list in JSON format. This will ignore "--separator", "--keys" and the columns.')
    p_list.add_argument("--keys", action="store_true", help="Show key for each value in table output")
    for col in COLUMNS:
        p_list.add_argument(
            "--" + col.option.replace("_", "-"),
            dest=col.option,
            type=str.lower,
            choices=COLUMN_MODES,
            default=col.default,
            metavar="FORMAT",
            help=f"{col.help} with the specified format (none|plain, default {col.default})",
        )
    p_list.add_argument("--all", type=str.lower, choices=COLUMN_MODES, default=MODE_NONE, metavar="FORMAT",
                        help="Override all columns format with the specified one")
    p_list.set_defaults(func=cmd_list)

    p_edit = sub.add_parser("edit", help="Update entries recreating the .vdf shortcuts file")
    p_edit.add_argument("shortcuts_path", nargs="?", default=None,
                        help='Path to input (and by default output) "shortcuts.vdf" or its folder')
    p_edit.add_argument("--json-path", default=None,
                        help="JSON file with entries to merge. Ignored when --idx, --key and --val are given.")
    p_edit.add_argument("--idx", type=_index_arg, default=None,
                        help="Index of the entry to operate on. A missing entry is created.")
    p_edit.add_argument("--key", default=None, help="Property to change on the entry (e.g. app_name, open_vr, tags)")
    p_edit.add_argument("--val", default=None, help='New value. Numbers for flags, JSON array for tags: ["a","b"]')
    p_edit.add_argument("--out", default=None, help="Output file for the generated vdf (default: <SHORTCUTS_PATH>)")
    p_edit.add_argument("--force", action="store_true", help="Overwrite destination if it exists")
    p_edit.set_defaults(func=cmd_edit)

    p_check = sub.add_parser("check", help="Verify shortcuts.vdf decodes and round-trips")
    _add_location_args(p_check)
    p_check.set_defaults(func=cmd_check)

    p_version = sub.add_parser("version", help="Print version information")
    p_version.set_defaults(func=cmd_version)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        return args.func(args)
    except OutputCollisionError as e:
        return _fail(f"Invalid output file: {e}", 5)
    except MalformedInputError as e:
        return _fail(f"Invalid input file: {e}", 3)
    except (TypeMismatchError, UnknownPropertyError) as e:
        return _fail(str(e), 4)
    except OSError as e:
        return _fail(f"Invalid input file: {e}", 2)


if __name__ == "__main__":
    raise SystemExit(main())
