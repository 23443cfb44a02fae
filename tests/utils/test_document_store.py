import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from lostmap.core.interfaces import SERVER_TIMESTAMP
from lostmap.db.db import create_db_and_tables, make_engine
from lostmap.utils.document_store import SQLDocumentStore

pytestmark = pytest.mark.anyio


@pytest.fixture
def store():
    engine = make_engine("sqlite://")
    create_db_and_tables(engine)
    yield SQLDocumentStore(engine)
    engine.dispose()


class Recorder:
    def __init__(self):
        self.snapshots = []
        self.errors = []

    def on_snapshot(self, docs):
        self.snapshots.append(docs)

    def on_error(self, exc):
        self.errors.append(exc)

    async def wait(self, count, timeout=2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while len(self.snapshots) < count:
            assert loop.time() < deadline, f"expected {count} snapshots, got {len(self.snapshots)}"
            await asyncio.sleep(0.01)
        return self.snapshots[-1]


def fields(description="Blue backpack", **overrides):
    values = {
        "description": description,
        "latitude": 44.56,
        "longitude": -69.66,
        "created_at": SERVER_TIMESTAMP,
        "image_url": None,
        "owner_id": "alex",
        "owner_display_name": "Alex",
    }
    values.update(overrides)
    return values


def subscribe(store, recorder):
    return store.subscribe("lost_items", "created_at", True, recorder.on_snapshot, recorder.on_error)


async def test_initial_snapshot_is_delivered(store):
    recorder = Recorder()
    subscribe(store, recorder)

    assert await recorder.wait(1) == []


async def test_insert_publishes_full_snapshot(store):
    recorder = Recorder()
    subscribe(store, recorder)
    await recorder.wait(1)

    before = datetime.now(timezone.utc).replace(tzinfo=None)
    doc_id = await store.insert("lost_items", fields())
    docs = await recorder.wait(2)

    assert [d["id"] for d in docs] == [doc_id]
    assert docs[0]["description"] == "Blue backpack"
    assert docs[0]["created_at"].replace(tzinfo=None) >= before - timedelta(seconds=1)


async def test_snapshots_are_newest_first(store):
    recorder = Recorder()
    base = datetime(2024, 9, 1, tzinfo=timezone.utc)
    older = await store.insert("lost_items", fields("older", created_at=base))
    newer = await store.insert("lost_items", fields("newer", created_at=base + timedelta(hours=1)))

    subscribe(store, recorder)
    docs = await recorder.wait(1)

    assert [d["id"] for d in docs] == [newer, older]


async def test_update_is_partial(store):
    recorder = Recorder()
    doc_id = await store.insert("lost_items", fields(image_url="https://img/1.webp"))
    subscribe(store, recorder)
    await recorder.wait(1)

    await store.update("lost_items", doc_id, {"description": "Black backpack"})
    docs = await recorder.wait(2)

    assert docs[0]["description"] == "Black backpack"
    assert docs[0]["image_url"] == "https://img/1.webp"
    assert docs[0]["owner_id"] == "alex"


@pytest.mark.parametrize("bad", [{"color": "red"}, {"created_at": SERVER_TIMESTAMP}, {"id": "x"}])
async def test_update_rejects_unknown_and_read_only_fields(store, bad):
    doc_id = await store.insert("lost_items", fields())

    with pytest.raises(ValueError):
        await store.update("lost_items", doc_id, bad)


async def test_update_missing_document(store):
    with pytest.raises(LookupError):
        await store.update("lost_items", "nope", {"description": "x"})


async def test_unknown_collection(store):
    with pytest.raises(LookupError):
        await store.insert("found_items", fields())


async def test_nothing_is_delivered_after_unsubscribe(store):
    recorder = Recorder()
    subscription = subscribe(store, recorder)
    await recorder.wait(1)

    subscription.unsubscribe()
    await store.insert("lost_items", fields())
    await asyncio.sleep(0.05)

    assert len(recorder.snapshots) == 1


async def test_older_snapshots_never_overwrite_newer_ones(store):
    recorder = Recorder()
    subscription = subscribe(store, recorder)
    await recorder.wait(1)

    subscription._deliver(10, [{"id": "new"}])
    subscription._deliver(5, [{"id": "stale"}])

    assert recorder.snapshots[-1] == [{"id": "new"}]
