from typing import Any, Dict

import pytest

from steam_vdf import kv_write


def vdf_bytes(entries: Dict[str, Dict[str, Any]]) -> bytes:
    """Encode {"<index>": {key: value}} under the shortcuts root, in the given key order."""
    return kv_write({"shortcuts": entries})


@pytest.fixture
def sample_vdf() -> bytes:
    return vdf_bytes({
        "0": {
            "appid": 3735928559,
            "AppName": "Café™",
            "exe": '"/usr/bin/retroarch"',
            "StartDir": '"/usr/bin/"',
            "LaunchOptions": "-L snes",
            "IsHidden": 0,
            "AllowOverlay": 1,
            "LastPlayTime": 0,
            "tags": {"0": "favorite", "1": "Emulation"},
        },
        "1": {
            "appid": 42,
            "AppName": "Heroic",
            "Exe": "/opt/Heroic/heroic",
            "FlatpakAppID": "com.heroicgameslauncher.hgl",
            "OpenVR": 1,
        },
    })


@pytest.fixture
def sample_file(tmp_path, sample_vdf):
    cfg = tmp_path / "config"
    cfg.mkdir()
    path = cfg / "shortcuts.vdf"
    path.write_bytes(sample_vdf)
    return path
