"""Tests for suspension snapshots"""

import pytest

from tab_suspender.host import TabInfo
from tab_suspender.snapshots import SnapshotStore, SuspensionSnapshot, snapshot_key, url_hash
from tab_suspender.store import StorageError


@pytest.mark.parametrize(
    "url,expected",
    [
        ("", "0"),
        ("a", "2p"),
        ("ab", "2e9"),
    ],
)
def test_url_hash_known_values(url, expected):
    assert url_hash(url) == expected


def test_url_hash_is_stable_and_distinct():
    assert url_hash("https://a.example/") == url_hash("https://a.example/")
    assert url_hash("https://a.example/") != url_hash("https://b.example/")


def test_url_hash_handles_non_ascii():
    """Characters outside the BMP hash as two code units"""
    assert url_hash("https://a.example/\U0001f600") != url_hash("https://a.example/")
    assert url_hash("https://a.example/é").isalnum()


def test_snapshot_key_prefix():
    assert snapshot_key("a") == "snapshot_2p"


@pytest.mark.asyncio
async def test_save_captures_scroll_position(store, host):
    tab = host.add_tab(
        TabInfo(id="t1", url="https://a.example/", title="A", fav_icon_url="https://a.example/i.png"),
        {"getScrollPosition": {"position": {"x": 10, "y": 250}}},
    )
    snapshots = SnapshotStore(store, host, scroll_timeout=0.05)

    saved = await snapshots.save(tab)
    loaded = snapshots.load("https://a.example/")

    assert loaded == saved
    assert loaded.title == "A"
    assert (loaded.scroll_position.x, loaded.scroll_position.y) == (10, 250)


@pytest.mark.asyncio
async def test_save_without_responder_uses_origin(store, host):
    tab = host.add_tab(TabInfo(id="t1", url="https://a.example/"))
    saved = await SnapshotStore(store, host, scroll_timeout=0.05).save(tab)
    assert (saved.scroll_position.x, saved.scroll_position.y) == (0, 0)


@pytest.mark.asyncio
async def test_save_with_malformed_position(store, host):
    tab = host.add_tab(TabInfo(id="t1", url="https://a.example/"), {"getScrollPosition": {"position": "top"}})
    saved = await SnapshotStore(store, host, scroll_timeout=0.05).save(tab)
    assert (saved.scroll_position.x, saved.scroll_position.y) == (0, 0)


@pytest.mark.asyncio
async def test_save_replaces_previous(store):
    snapshots = SnapshotStore(store)
    await snapshots.save(TabInfo(id="t1", url="https://a.example/", title="old"))
    await snapshots.save(TabInfo(id="t2", url="https://a.example/", title="new"))
    assert snapshots.load("https://a.example/").title == "new"
    assert len(store.keys(prefix="snapshot_")) == 1


@pytest.mark.asyncio
async def test_save_failure_raises(store, monkeypatch):
    def fail(key, value):
        raise StorageError("read-only")

    monkeypatch.setattr(store, "set", fail)
    with pytest.raises(StorageError):
        await SnapshotStore(store).save(TabInfo(id="t1", url="https://a.example/"))


def test_load_missing(store):
    assert SnapshotStore(store).load("https://nowhere.example/") is None


def test_load_malformed(store):
    store.set(snapshot_key("https://a.example/"), {"title": "no url"})
    assert SnapshotStore(store).load("https://a.example/") is None


def test_clear(store):
    snapshots = SnapshotStore(store)
    store.set(snapshot_key("https://a.example/"), SuspensionSnapshot(url="https://a.example/").model_dump())
    snapshots.clear("https://a.example/")
    assert snapshots.load("https://a.example/") is None


def test_purge_older_than(store):
    now = 1_700_000_000.0
    old = SuspensionSnapshot(url="https://old.example/", captured_at=now - 8 * 86400)
    fresh = SuspensionSnapshot(url="https://fresh.example/", captured_at=now - 3600)
    store.set(snapshot_key(old.url), old.model_dump())
    store.set(snapshot_key(fresh.url), fresh.model_dump())
    store.set("settings", {"globalTimeout": 300000})

    removed = SnapshotStore(store).purge_older_than(7 * 86400, now=now)

    assert removed == 1
    assert store.keys(prefix="snapshot_") == [snapshot_key(fresh.url)]
    assert store.get("settings") is not None


def test_purge_nothing_expired(store):
    assert SnapshotStore(store).purge_older_than(now=1_700_000_000.0) == 0
