from __future__ import annotations

import os

# Settings are read once at import time.
os.environ.setdefault("ENVIRONMENT", "local")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-user-tokens-0123456789")
os.environ.setdefault("DEBUG_ERRORS", "false")
os.environ.setdefault("IAP_DEV_MODE", "false")

from collections.abc import Callable, Generator  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from cryptography.hazmat.primitives import serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import ec  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from pydantic import SecretStr  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine, delete  # noqa: E402

from app.api.deps import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import (  # noqa: E402
    Entitlement,
    PlanEntitlement,
    SubscriptionPlan,
    UserProfile,
    UserSubscription,
)
from app.services.iap_service import SubscriptionVerifier, get_subscription_verifier  # noqa: E402
from app.storekit.client import AppStoreClient  # noqa: E402
from app.storekit.config import AppStoreConfig  # noqa: E402
from app.storekit.signer import AppStoreTokenSigner  # noqa: E402
from tests.utils import PROD_URL, SANDBOX_URL  # noqa: E402


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session
        # Clean tables after each test (children first).
        session.rollback()
        session.exec(delete(UserSubscription))
        session.exec(delete(PlanEntitlement))
        session.exec(delete(Entitlement))
        session.exec(delete(SubscriptionPlan))
        session.exec(delete(UserProfile))
        session.commit()


@pytest.fixture(scope="function")
def client(engine) -> Generator[TestClient, None, None]:
    def _override_get_db() -> Generator[Session, None, None]:
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="session")
def private_key_pem() -> str:
    key = ec.generate_private_key(ec.SECP256R1())
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def store_config(private_key_pem: str) -> AppStoreConfig:
    return AppStoreConfig(
        issuer_id="57246542-96fe-1a63-e053-0824d011072a",
        key_id="2X9R4HXF34",
        private_key=SecretStr(private_key_pem),
        bundle_id="com.example.app",
        production_base_url=PROD_URL,
        sandbox_base_url=SANDBOX_URL,
    )


Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def make_client(store_config: AppStoreConfig) -> Callable[..., AppStoreClient]:
    def _make(handler: Handler, **overrides) -> AppStoreClient:
        config = store_config.model_copy(update=overrides) if overrides else store_config
        return AppStoreClient(
            config, AppStoreTokenSigner(config), transport=httpx.MockTransport(handler)
        )

    return _make


@pytest.fixture
def use_apple(make_client) -> Generator[Callable[..., SubscriptionVerifier], None, None]:
    """Route /iap/verify through a verifier whose App Store calls hit ``handler``."""

    def _install(handler: Handler, *, clock: Callable[[], float] | None = None, **overrides) -> SubscriptionVerifier:
        apple = make_client(handler, **overrides)
        kwargs = {"clock": clock} if clock else {}
        verifier = SubscriptionVerifier(apple.config, client=apple, **kwargs)
        app.dependency_overrides[get_subscription_verifier] = lambda: verifier
        return verifier

    yield _install
    app.dependency_overrides.pop(get_subscription_verifier, None)
