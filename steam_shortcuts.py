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
"""
Typed model of shortcuts.vdf entries on top of the generic VDF tree.

A fixed schema of known properties drives both directions: decoded keys are
resolved against it (unknown keys are dropped) and entries are always written
back in its canonical order.
"""
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from steam_vdf import (
    UINT32_MAX,
    MalformedInputError,
    TypeMismatchError,
    UnknownPropertyError,
    kv_parse,
    kv_write,
)

logger = logging.getLogger(__name__)


# ----------------------------
# Schema
# ----------------------------
class PropKind(Enum):
    UINT32 = "UInt32"
    STRING = "String"
    STRING_LIST = "StringList"


def normalize_key(key: str) -> str:
    return str(key).lower().replace("_", "")


@dataclass(frozen=True)
class PropInfo:
    name: str
    wire_name: str
    kind: PropKind
    default: Any
    order: int

    @property
    def identifier(self) -> str:
        return normalize_key(self.name)

    def default_value(self) -> Any:
        if self.kind is PropKind.STRING_LIST:
            return list(self.default)
        return self.default


SHORTCUT_PROPS: Tuple[PropInfo, ...] = (
    PropInfo("index", "Index", PropKind.UINT32, 0, 0),
    PropInfo("app_id", "AppId", PropKind.UINT32, 0, 1),
    PropInfo("app_name", "AppName", PropKind.STRING, "", 2),
    PropInfo("exe", "Exe", PropKind.STRING, "", 3),
    PropInfo("start_dir", "StartDir", PropKind.STRING, "", 4),
    PropInfo("icon", "Icon", PropKind.STRING, "", 5),
    PropInfo("shortcut_path", "ShortcutPath", PropKind.STRING, "", 6),
    PropInfo("launch_options", "LaunchOptions", PropKind.STRING, "", 7),
    PropInfo("is_hidden", "IsHidden", PropKind.UINT32, 0, 8),
    PropInfo("allow_desktop_config", "AllowDesktopConfig", PropKind.UINT32, 0, 9),
    PropInfo("allow_overlay", "AllowOverlay", PropKind.UINT32, 0, 10),
    PropInfo("open_vr", "OpenVR", PropKind.UINT32, 0, 11),
    PropInfo("devkit", "Devkit", PropKind.UINT32, 0, 12),
    PropInfo("devkit_game_id", "DevkitGameID", PropKind.STRING, "", 13),
    PropInfo("devkit_override_app_id", "DevkitOverrideAppID", PropKind.UINT32, 0, 14),
    PropInfo("last_play_time", "LastPlayTime", PropKind.UINT32, 0, 15),
    PropInfo("flatpak_app_id", "FlatpakAppID", PropKind.STRING, "", 16),
    PropInfo("tags", "Tags", PropKind.STRING_LIST, (), 17),
)

_PROPS_BY_IDENTIFIER: Dict[str, PropInfo] = {p.identifier: p for p in SHORTCUT_PROPS}

# Index is the entry's key in the parent map, never a field of its own.
WRITE_ORDER: Tuple[PropInfo, ...] = tuple(sorted((p for p in SHORTCUT_PROPS if p.order != 0), key=lambda p: p.order))


def find_property(key: str) -> Optional[PropInfo]:
    """Resolve a switch name, identifier or wire name (any case, underscores ignored)."""
    return _PROPS_BY_IDENTIFIER.get(normalize_key(key))


def require_property(key: str) -> PropInfo:
    info = find_property(key)
    if info is None:
        raise UnknownPropertyError(f"Unknown shortcut property: {key!r}")
    return info


def kind_of(value: Any) -> Optional[PropKind]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return PropKind.UINT32
    if isinstance(value, str):
        return PropKind.STRING
    if isinstance(value, list):
        return PropKind.STRING_LIST
    return None


def _describe(value: Any) -> str:
    if isinstance(value, dict):
        return "Map"
    kind = kind_of(value)
    return kind.value if kind is not None else type(value).__name__


def check_text(info: PropInfo, s: str) -> str:
    """Strings are written NUL terminated as UTF-8."""
    if "\x00" in s:
        raise TypeMismatchError(f"{info.name}: strings cannot contain NUL characters", key=info.name)
    try:
        s.encode("utf-8")
    except UnicodeEncodeError:
        raise TypeMismatchError(f"{info.name}: {s!r} cannot be encoded as UTF-8", key=info.name) from None
    return s


def check_value(info: PropInfo, value: Any) -> Any:
    """Validate a Python value against the property's kind. Returns the value to store."""
    if kind_of(value) is not info.kind:
        raise TypeMismatchError(f"{info.name} expects {info.kind.value} but got {_describe(value)}", key=info.name)
    if info.kind is PropKind.UINT32 and not 0 <= value <= UINT32_MAX:
        raise TypeMismatchError(f"{info.name}: {value} is out of UInt32 range", key=info.name)
    if info.kind is PropKind.STRING_LIST:
        if not all(isinstance(s, str) for s in value):
            raise TypeMismatchError(f"{info.name} expects a list of strings", key=info.name)
        return [check_text(info, s) for s in value]
    if info.kind is PropKind.STRING:
        return check_text(info, value)
    return value


def parse_text(info: PropInfo, kind: PropKind, text: str) -> Any:
    if kind is PropKind.UINT32:
        if not (text.isascii() and text.isdigit()) or int(text) > UINT32_MAX:
            raise TypeMismatchError(f"Cannot convert from {text} to UInt32", key=info.name)
        return int(text)
    if kind is PropKind.STRING_LIST:
        try:
            arr = json.loads(text)
        except ValueError:
            arr = None
        if not isinstance(arr, list) or not all(isinstance(s, str) for s in arr):
            raise TypeMismatchError(
                f'Cannot deserialize `{text}` as JsonStringArray. Expected something like ["str1","str2"].',
                key=info.name,
            )
        return [check_text(info, s) for s in arr]
    return check_text(info, text)


def escape_tag(s: str) -> str:
    return s.replace("\\", "\\\\").replace('"', '\\"')


# ----------------------------
# Entries
# ----------------------------
def _tagged_to_string_list(info: PropInfo, tree: Dict[str, Any], index: int) -> List[str]:
    out: List[str] = []
    for k, v in tree.items():
        if isinstance(v, str):
            out.append(v)
        else:
            logger.warning("Shortcut %d: %s[%s] is %s, using empty string", index, info.wire_name, k, _describe(v))
            out.append("")
    return out


def _coerce_tagged(info: PropInfo, val: Any, index: int) -> Any:
    if info.kind is PropKind.UINT32 and isinstance(val, int):
        return val
    if info.kind is PropKind.STRING and isinstance(val, str):
        return val
    if info.kind is PropKind.STRING_LIST and isinstance(val, dict):
        return _tagged_to_string_list(info, val, index)
    raise TypeMismatchError(
        f"Shortcut {index}: {info.wire_name} expects {info.kind.value} but got {_describe(val)}", key=info.name
    )


@dataclass
class Shortcut:
    properties: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "Shortcut":
        return cls()

    @classmethod
    def from_tree(cls, index: int, tree: Dict[str, Any]) -> "Shortcut":
        props: Dict[str, Any] = {}
        for key, val in tree.items():
            info = find_property(key)
            if info is None:
                logger.debug("Shortcut %d: dropping unknown key %r", index, key)
                continue
            if info.order == 0:
                continue
            props[info.name] = _coerce_tagged(info, val, index)
        props["index"] = index
        return cls(props)

    @property
    def index(self) -> int:
        return self.get("index")

    def get(self, key: str) -> Any:
        info = require_property(key)
        if info.name in self.properties:
            return self.properties[info.name]
        return info.default_value()

    def set(self, key: str, value: Any) -> None:
        info = require_property(key)
        self.properties[info.name] = check_value(info, value)

    def format(self, key: str) -> str:
        val = self.get(key)
        if isinstance(val, list):
            return json.dumps(val, ensure_ascii=False)
        return str(val)

    def values(self) -> Dict[str, Any]:
        """Every schema property, defaults filled in."""
        return {p.name: self.get(p.name) for p in SHORTCUT_PROPS}

    def to_tree(self) -> Dict[str, Any]:
        tree: Dict[str, Any] = {}
        for info in WRITE_ORDER:
            val = check_value(info, self.get(info.name))
            if info.kind is PropKind.STRING_LIST:
                val = {str(n): escape_tag(s) for n, s in enumerate(val)}
            tree[info.wire_name] = val
        return tree

    def to_json(self) -> Dict[str, Any]:
        return {k: self.properties[k] for k in sorted(self.properties)}


# ----------------------------
# Collection
# ----------------------------
def _parse_index(key: str) -> int:
    if not (key.isascii() and key.isdigit()) or int(key) > UINT32_MAX:
        raise MalformedInputError(f"Shortcut key {key!r} is not a valid index")
    return int(key)


def _parse_json_index(item: Dict[str, Any], n: int) -> int:
    index = item.get("index")
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index <= UINT32_MAX:
        raise MalformedInputError(f'JSON entry #{n} has no valid "index"')
    return index


class Shortcuts:
    def __init__(self) -> None:
        self.entries: Dict[int, Shortcut] = {}

    @classmethod
    def empty(cls) -> "Shortcuts":
        return cls()

    @classmethod
    def from_bytes(cls, data: bytes) -> "Shortcuts":
        root = kv_parse(data)
        if "shortcuts" not in root:
            raise MalformedInputError('Not a shortcuts.vdf (missing "shortcuts" root key)')
        sc_map = root["shortcuts"]
        if not isinstance(sc_map, dict):
            raise MalformedInputError('shortcuts.vdf: "shortcuts" is not a map')

        out = cls()
        for key, tree in sc_map.items():
            index = _parse_index(key)
            if not isinstance(tree, dict):
                raise MalformedInputError(f"Shortcut {key!r} is not a map")
            out.entries[index] = Shortcut.from_tree(index, tree)
        logger.debug("Loaded %d shortcuts", len(out))
        return out

    def to_bytes(self) -> bytes:
        trees = {str(index): sc.to_tree() for index, sc in self.items()}
        data = kv_write({"shortcuts": trees})
        logger.debug("Serialized %d shortcuts into %d bytes", len(trees), len(data))
        return data

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, index: object) -> bool:
        return index in self.entries

    def __iter__(self) -> Iterator[Shortcut]:
        for _index, sc in self.items():
            yield sc

    def items(self) -> List[Tuple[int, Shortcut]]:
        return sorted(self.entries.items())

    def at(self, index: int) -> Optional[Shortcut]:
        return self.entries.get(index)

    def insert(self, index: int, sc: Shortcut) -> None:
        """Add or replace the entry at index."""
        sc.properties["index"] = index
        self.entries[index] = sc

    def at_or_new(self, index: int) -> Tuple[Shortcut, bool]:
        sc = self.entries.get(index)
        if sc is not None:
            return sc, False
        sc = Shortcut.empty()
        self.insert(index, sc)
        return sc, True

    def set_field(self, index: int, key: str, text: str) -> bool:
        """
        Parse text into the property's current kind and store it on entry index,
        creating the entry when missing. Returns True when an entry was created.
        Nothing is modified when the text does not parse.
        """
        info = require_property(key)
        if info.order == 0:
            raise UnknownPropertyError("index is the entry key and cannot be edited")

        current = self.entries.get(index)
        kind = info.kind
        if current is not None and info.name in current.properties:
            kind = kind_of(current.properties[info.name]) or info.kind
        value = parse_text(info, kind, text)

        sc, created = self.at_or_new(index)
        sc.properties[info.name] = value
        return created

    def to_json(self) -> List[Dict[str, Any]]:
        return [sc.to_json() for sc in self]

    def update_from_json(self, text: str) -> int:
        """
        Merge a JSON array of shortcut objects (the format printed by list --json)
        into the collection. Returns the number of objects merged.
        """
        try:
            doc = json.loads(text)
        except ValueError as e:
            raise MalformedInputError(f"JSON input is invalid: {e}") from e
        if isinstance(doc, dict) and "shortcuts" in doc:
            doc = doc["shortcuts"]
        if not isinstance(doc, list):
            raise MalformedInputError("JSON input must be an array of shortcut objects")

        staged: List[Tuple[int, Dict[str, Any]]] = []
        for n, item in enumerate(doc):
            if not isinstance(item, dict):
                raise MalformedInputError(f"JSON entry #{n} is not an object")
            index = _parse_json_index(item, n)
            props: Dict[str, Any] = {}
            for key, val in item.items():
                info = find_property(key)
                if info is None:
                    logger.debug("JSON entry #%d: dropping unknown key %r", n, key)
                    continue
                if info.order == 0:
                    continue
                props[info.name] = check_value(info, val)
            staged.append((index, props))

        for index, props in staged:
            sc, _created = self.at_or_new(index)
            sc.properties.update(props)
        return len(staged)

    def normalized(self) -> Dict[int, Dict[str, Any]]:
        return {index: sc.values() for index, sc in self.items()}


def verify_roundtrip(data: bytes) -> Tuple[int, bool]:
    """
    Decode, re-encode and decode again; compare the two models with defaults
    applied. Malformed input raises.
    """
    a = Shortcuts.from_bytes(data)
    b = Shortcuts.from_bytes(a.to_bytes())
    return len(a), a.normalized() == b.normalized()


def verify_encoded(shortcuts: Shortcuts, data: bytes) -> bool:
    """
    Check that data, the encoding of shortcuts, decodes back to the same model.
    Tags are compared in their escaped, on-disk form. Malformed data raises.
    """
    expected = shortcuts.normalized()
    for values in expected.values():
        values["tags"] = [escape_tag(s) for s in values["tags"]]
    return Shortcuts.from_bytes(data).normalized() == expected


# ----------------------------
# Collaborator API
# ----------------------------
def load(data: bytes) -> Shortcuts:
    return Shortcuts.from_bytes(data)


def save(shortcuts: Shortcuts) -> bytes:
    return shortcuts.to_bytes()


def get(shortcuts: Shortcuts, index: int) -> Optional[Shortcut]:
    return shortcuts.at(index)


def set_field(shortcuts: Shortcuts, index: int, key: str, text: str) -> bool:
    return shortcuts.set_field(index, key, text)


def iterate(shortcuts: Shortcuts) -> Iterator[Shortcut]:
    return iter(shortcuts)
