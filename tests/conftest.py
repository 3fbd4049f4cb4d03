import os

# settings are read at import time
os.environ["ENCODE_KEY"] = "test-encode-key-0123456789abcdef0123"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_HOST"] = ""

from typing import Callable, Generator

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from fanlink.core.challenge_store import ChallengeStore, get_challenge_store
from fanlink.core.jwt_utils import create_access_token
from fanlink.db.base import Base
from fanlink.db.session import get_db
from fanlink.db.wallet_repository import WalletLinkRepository
from fanlink.services.wallet_link import WalletLinkService

# Fixed keys so failures are reproducible
ALICE_KEY = "0x" + "11" * 32
BOB_KEY = "0x" + "22" * 32
CAROL_KEY = "0x" + "33" * 32


class FakeClock:
    """Manually advanced clock for expiry tests"""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def challenge_store(clock: FakeClock) -> ChallengeStore:
    return ChallengeStore(ttl_seconds=300, app_name="FanLink", clock=clock)


@pytest.fixture
def db_engine():
    """In-memory SQLite database shared by every session of one test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def service(challenge_store: ChallengeStore, db_session: Session) -> WalletLinkService:
    return WalletLinkService(challenge_store, WalletLinkRepository(db_session))


@pytest.fixture
def api_overrides(session_factory, challenge_store: ChallengeStore):
    """Point the app at the test database and challenge store"""

    def override_get_db() -> Generator:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_challenge_store] = lambda: challenge_store
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(api_overrides) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application"""
    with TestClient(api_overrides) as test_client:
        yield test_client


@pytest.fixture
def alice() -> LocalAccount:
    return Account.from_key(ALICE_KEY)


@pytest.fixture
def bob() -> LocalAccount:
    return Account.from_key(BOB_KEY)


@pytest.fixture
def carol() -> LocalAccount:
    return Account.from_key(CAROL_KEY)


@pytest.fixture
def sign() -> Callable[[LocalAccount, str], str]:
    """personal_sign a message, returns 0x-prefixed hex"""

    def _sign(account: LocalAccount, message: str) -> str:
        signed = account.sign_message(encode_defunct(text=message))
        return "0x" + bytes(signed.signature).hex()

    return _sign


@pytest.fixture
def auth_headers() -> Callable[[str], dict]:
    def _headers(account_id: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(account_id)}"}

    return _headers


@pytest.fixture
def break_checksum() -> Callable[[str], str]:
    """Flip the case of the first letter of a checksummed address"""

    def _break(address: str) -> str:
        body = address[2:]
        for i, char in enumerate(body):
            if char.isalpha():
                return "0x" + body[:i] + char.swapcase() + body[i + 1:]
        raise ValueError("address has no letters to flip")

    return _break
