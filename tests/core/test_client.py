import asyncio

import pytest

from lostmap.core.client import MapClient
from lostmap.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from lostmap.db.db import create_db_and_tables, make_engine
from lostmap.utils.document_store import SQLDocumentStore

from fakes import FakeBlobStore, FakeGeocodeService, FakeIdentityProvider, make_doc, make_identity

pytestmark = pytest.mark.anyio


async def wait_for(condition, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def sql_documents():
    engine = make_engine("sqlite://")
    create_db_and_tables(engine)
    yield SQLDocumentStore(engine)
    engine.dispose()


def make_client(documents, identity=None):
    return MapClient(FakeIdentityProvider(identity), documents, FakeBlobStore(), FakeGeocodeService())


async def test_commit_round_trips_to_every_client(sql_documents):
    alex = make_client(sql_documents, make_identity(uid="alex"))
    viewer = make_client(sql_documents)
    alex.open()
    viewer.open()
    await wait_for(lambda: alex.feed.snapshots_applied and viewer.feed.snapshots_applied)

    alex.click_map(44.56, -69.66)
    alex.drafts.update(description="Blue backpack")
    report_id = await alex.commit()

    await wait_for(lambda: len(viewer.records) == 1 and len(alex.records) == 1)
    pin = viewer.records.get(report_id)
    assert pin.description == "Blue backpack"
    assert pin.owner_id == "alex"
    assert [e.is_owner for e in alex.records.entries()] == [True]
    assert [e.is_owner for e in viewer.records.entries()] == [False]

    alex.close()
    viewer.close()


async def test_edit_round_trip(sql_documents):
    alex = make_client(sql_documents, make_identity(uid="alex"))
    alex.open()
    alex.click_map(44.56, -69.66)
    alex.drafts.update(description="Blue backpack")
    report_id = await alex.commit()
    await wait_for(lambda: alex.records.get(report_id) is not None)

    alex.start_edit(report_id)
    alex.drafts.update(description="Blue backpack, found by the library")
    await alex.commit()

    await wait_for(lambda: alex.records.get(report_id).description.endswith("library"))
    assert alex.records.get(report_id).location.latitude == 44.56
    alex.close()


async def test_closed_client_stops_receiving(sql_documents):
    writer = make_client(sql_documents, make_identity(uid="w"))
    reader = make_client(sql_documents)
    writer.open()
    reader.open()
    await wait_for(lambda: reader.feed.snapshots_applied == 1)

    reader.close()
    writer.click_map(44.0, -69.0)
    writer.drafts.update(description="Gloves")
    await writer.commit()
    await wait_for(lambda: len(writer.records) == 1)

    assert len(reader.records) == 0
    writer.close()


def test_start_edit_unknown_report(documents):
    client = make_client(documents)

    with pytest.raises(NotFoundError):
        client.start_edit("missing")


def test_start_edit_checks_ownership(documents):
    client = make_client(documents, make_identity(uid="me"))
    client.open()
    documents.emit([make_doc("r1", owner_id="someone-else")])

    with pytest.raises(PermissionDeniedError):
        client.start_edit("r1")
    assert client.drafts.current() is None


def test_click_outside_the_map(documents):
    client = make_client(documents)

    with pytest.raises(ValidationError):
        client.click_map(123.0, 0.0)
