import pytest

from lostmap.core.errors import SignInError
from lostmap.db.db import create_db_and_tables, make_engine
from lostmap.utils.identity import AccountIdentityProvider, hash_password, verify_password

pytestmark = pytest.mark.anyio


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


def fake_google(token, client_id):
    if token != "good-token":
        raise SignInError("Invalid Google ID token")
    return {"sub": "g-123", "email": "alex@colby.edu", "name": "Alex Doe", "picture": "https://pic"}


@pytest.fixture
def provider(engine):
    return AccountIdentityProvider(engine, google_client_id="client-id", google_verifier=fake_google)


def test_password_hashing_round_trip():
    hashed = hash_password("hunter22")

    assert hashed != "hunter22"
    assert verify_password("hunter22", hashed)
    assert not verify_password("hunter23", hashed)


async def test_listener_fires_immediately_and_on_changes(provider):
    seen = []
    provider.on_identity_changed(seen.append)

    identity = await provider.sign_up("Sam@Colby.edu", "secret1")
    await provider.sign_out()

    assert seen == [None, identity, None]
    assert identity.email == "sam@colby.edu"
    assert identity.label == "sam@colby.edu"
    assert identity.provider == "password"


async def test_email_sign_in(provider, engine):
    created = await provider.sign_up("sam@colby.edu", "secret1", name="Sam")
    await provider.sign_out()

    identity = await AccountIdentityProvider(engine).sign_in("email", email="sam@colby.edu", password="secret1")

    assert identity.uid == created.uid
    assert identity.label == "Sam"


@pytest.mark.parametrize("email, password", [("sam@colby.edu", "wrong-pass"), ("nobody@colby.edu", "secret1")])
async def test_email_sign_in_failures(provider, email, password):
    await provider.sign_up("sam@colby.edu", "secret1")
    await provider.sign_out()

    with pytest.raises(SignInError):
        await provider.sign_in("email", email=email, password=password)

    seen = []
    provider.on_identity_changed(seen.append)
    assert seen == [None]


@pytest.mark.parametrize("email, password", [("not-an-email", "secret1"), ("sam@colby.edu", "123")])
async def test_sign_up_validation(provider, email, password):
    with pytest.raises(SignInError):
        await provider.sign_up(email, password)


async def test_sign_up_twice(provider):
    await provider.sign_up("sam@colby.edu", "secret1")

    with pytest.raises(SignInError):
        await provider.sign_up("sam@colby.edu", "other-secret")


async def test_google_sign_in_creates_then_reuses_the_account(provider):
    first = await provider.sign_in("google", id_token="good-token")
    await provider.sign_out()
    second = await provider.sign_in("google", id_token="good-token")

    assert first.uid == second.uid
    assert first.display_name == "Alex Doe"
    assert first.provider == "google"


async def test_google_sign_in_links_existing_email_account(provider):
    by_email = await provider.sign_up("alex@colby.edu", "secret1")
    by_google = await provider.sign_in("google", id_token="good-token")

    assert by_google.uid == by_email.uid


async def test_google_sign_in_rejects_bad_token(provider):
    with pytest.raises(SignInError):
        await provider.sign_in("google", id_token="forged")


async def test_google_sign_in_needs_client_id(engine):
    with pytest.raises(SignInError):
        await AccountIdentityProvider(engine).sign_in("google", id_token="good-token")


async def test_unknown_method(provider):
    with pytest.raises(SignInError):
        await provider.sign_in("github")
