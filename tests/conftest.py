import pytest

from lostmap.core.draft import DraftEditor
from lostmap.core.record_store import RecordStore
from lostmap.core.session import SessionContext
from fakes import FakeBlobStore, FakeDocumentStore, FakeGeocodeService, FakeIdentityProvider


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def identity_provider():
    return FakeIdentityProvider()


@pytest.fixture
def session(identity_provider):
    return SessionContext(identity_provider)


@pytest.fixture
def records(session):
    return RecordStore(session)


@pytest.fixture
def drafts(session):
    return DraftEditor(session)


@pytest.fixture
def documents():
    return FakeDocumentStore()


@pytest.fixture
def blobs():
    return FakeBlobStore()


@pytest.fixture
def geocoder():
    return FakeGeocodeService()
