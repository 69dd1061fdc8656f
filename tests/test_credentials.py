from __future__ import annotations

import json

from engine.credentials import CredentialStore


def test_load_missing_file_leaves_store_empty(tmp_path) -> None:
    store = CredentialStore(tmp_path / "cookies.json")
    store.load()
    assert dict(store.snapshot()) == {}
    assert store.get("netease") == ""


def test_load_reads_json_object(tmp_path) -> None:
    path = tmp_path / "cookies.json"
    path.write_text(json.dumps({"netease": "MUSIC_U=1", "qq": "uin=2", "kugou": None}), encoding="utf-8")
    store = CredentialStore(path)
    store.load()
    assert dict(store.snapshot()) == {"netease": "MUSIC_U=1", "qq": "uin=2"}


def test_load_invalid_json_is_ignored(tmp_path) -> None:
    path = tmp_path / "cookies.json"
    path.write_text("{not json", encoding="utf-8")
    store = CredentialStore(path, initial={"qq": "stale"})
    store.load()
    assert dict(store.snapshot()) == {}


def test_load_non_object_is_ignored(tmp_path) -> None:
    path = tmp_path / "cookies.json"
    path.write_text("[1, 2]", encoding="utf-8")
    store = CredentialStore(path)
    store.load()
    assert dict(store.snapshot()) == {}


def test_replace_persists_and_swaps_whole_map(tmp_path) -> None:
    path = tmp_path / "nested" / "cookies.json"
    store = CredentialStore(path, initial={"qq": "old", "kuwo": "keep?"})
    store.replace({"qq": "new"})

    assert dict(store.snapshot()) == {"qq": "new"}
    assert store.get("kuwo") == ""
    assert json.loads(path.read_text(encoding="utf-8")) == {"qq": "new"}
    assert [p.name for p in path.parent.iterdir()] == ["cookies.json"]


def test_snapshot_is_unaffected_by_later_replace() -> None:
    store = CredentialStore(initial={"qq": "one"})
    before = store.snapshot()
    store.replace({"qq": "two"}, persist=False)
    assert before["qq"] == "one"
    assert store.get("qq") == "two"


def test_reload_after_replace_round_trips(tmp_path) -> None:
    path = tmp_path / "cookies.json"
    CredentialStore(path).replace({"netease": "a=b"})
    store = CredentialStore(path)
    store.load()
    assert store.get("netease") == "a=b"
