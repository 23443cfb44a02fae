import pytest

from lostmap.core.client import MapClient
from lostmap.core.errors import NotFoundError, TransportError, ValidationError
from lostmap.core.geocode import GeocodeResolver
from lostmap.models.report import Location

from fakes import FakeGeocodeService, place

pytestmark = pytest.mark.anyio


async def test_resolves_to_the_most_relevant_place():
    service = FakeGeocodeService([place(44.5625, -69.6626, "Miller Library"), place(40.0, -70.0)])

    location = await GeocodeResolver(service).resolve("  Library ")

    assert location == Location(latitude=44.5625, longitude=-69.6626)
    assert service.queries == ["Library"]


async def test_empty_result_is_not_found():
    with pytest.raises(NotFoundError) as exc:
        await GeocodeResolver(FakeGeocodeService([])).resolve("Library")

    assert exc.value.message == "Location not found"


async def test_service_failure_is_a_transport_error():
    service = FakeGeocodeService(error=ConnectionError("dns"))

    with pytest.raises(TransportError) as exc:
        await GeocodeResolver(service).resolve("Library")

    assert exc.value.message == "Search failed"


async def test_blank_query_never_reaches_the_service():
    service = FakeGeocodeService([place(1, 2)])

    with pytest.raises(ValidationError):
        await GeocodeResolver(service).resolve("   ")

    assert service.queries == []


@pytest.fixture
def client(identity_provider, documents, blobs, geocoder):
    return MapClient(identity_provider, documents, blobs, geocoder)


async def test_search_moves_the_marker(client, geocoder):
    geocoder.results = [place(44.56, -69.66)]

    await client.search("Library")

    assert client.search_marker == Location(latitude=44.56, longitude=-69.66)


@pytest.mark.parametrize(
    "results, error, expected",
    [([], None, NotFoundError), ([place(1, 2)], TimeoutError("slow"), TransportError)],
)
async def test_failed_search_leaves_the_marker(client, geocoder, results, error, expected):
    geocoder.results = [place(44.56, -69.66)]
    await client.search("Library")

    geocoder.results = results
    geocoder.error = error
    with pytest.raises(expected):
        await client.search("Nowhere")

    assert client.search_marker == Location(latitude=44.56, longitude=-69.66)
