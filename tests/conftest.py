from typing import AsyncGenerator, Optional

import httpx
import pytest
import pytest_asyncio
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.api.deps import AuthContext, auth_scheme, get_optional_auth_context
from app.api.v1.interviews import get_ai_client
from app.api.v1.rooms import get_channel_issuer
from app.database import get_db, init_db
from app.main import app
from app.models import ServiceCost
from app.services.ai_client import AIServiceClient
from app.services.channel_tokens import ChannelTokenIssuer
from app.services.cost_catalog import CostCatalog
from app.services.wallet_service import WalletService
from app.utils.locks import KeyedLock


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'wallet.db'}")
    await init_db(engine)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as session:
        await CostCatalog(session).seed_defaults()

    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def locks() -> KeyedLock:
    return KeyedLock()


@pytest.fixture
def wallet_service(db, locks) -> WalletService:
    return WalletService(db, locks=locks)


async def set_service_cost(session_factory, service_name: str, cost: int) -> None:
    async with session_factory() as session:
        row = await session.get(ServiceCost, service_name)
        if row is None:
            session.add(ServiceCost(service_name=service_name, cost=cost))
        else:
            row.cost = cost
        await session.commit()


async def remove_service_cost(session_factory, service_name: str) -> None:
    async with session_factory() as session:
        row = await session.get(ServiceCost, service_name)
        if row is not None:
            await session.delete(row)
            await session.commit()


class FakeAIService:
    """Records forwarded calls and answers like the AI microservice"""

    def __init__(self):
        self.calls = []
        self.status_code = 201
        self.body = {"session_id": "sess_123", "total_questions": 5}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        return httpx.Response(self.status_code, json=self.body)


@pytest.fixture
def fake_ai() -> FakeAIService:
    return FakeAIService()


@pytest.fixture
def channel_issuer() -> ChannelTokenIssuer:
    return ChannelTokenIssuer("practice-app", "channel-test-secret", ttl_seconds=600)


@pytest_asyncio.fixture
async def client(session_factory, fake_ai, channel_issuer) -> AsyncGenerator[AsyncClient, None]:
    """API client; the bearer token value is taken as the user id"""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_auth(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
    ) -> Optional[AuthContext]:
        if not credentials:
            return None
        return AuthContext(user_id=credentials.credentials)

    ai_client = AIServiceClient("http://ai.test", transport=httpx.MockTransport(fake_ai.handler))

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_optional_auth_context] = override_auth
    app.dependency_overrides[get_ai_client] = lambda: ai_client
    app.dependency_overrides[get_channel_issuer] = lambda: channel_issuer

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    await ai_client.aclose()


def auth(user_id: str) -> dict:
    return {"Authorization": f"Bearer {user_id}"}
