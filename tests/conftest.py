"""
Shared test fixtures for the Visuluxe-Vault test suite.

Each test gets its own SQLite database (aiosqlite) under tmp_path, a
FastAPI app built from explicit Settings, and an httpx client wired
through ASGITransport.
"""
import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport

from visuluxe_vault.config import Settings
from visuluxe_vault.database import init_db
from visuluxe_vault.main import create_app
from visuluxe_vault.models.provider import Provider
from visuluxe_vault.models.user import AppRole
from visuluxe_vault.services.crypto import Cipher, generate_key
from visuluxe_vault.services.identity import IdentityService
from visuluxe_vault.services.jwt_service import create_token

PASSWORD = "correct horse battery staple"
JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256-0123456789"


@pytest.fixture
def encryption_key():
    return generate_key()


@pytest.fixture
def cipher(encryption_key):
    return Cipher.from_base64(encryption_key)


@pytest.fixture
def settings(tmp_path, encryption_key):
    return Settings(
        JWT_SECRET=JWT_SECRET,
        ENCRYPTION_KEY=encryption_key,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'vault.db'}",
        LOG_LEVEL="WARNING",
    )


@pytest_asyncio.fixture
async def app(settings):
    app = create_app(settings)
    await init_db(app.state.engine)
    yield app
    await app.state.engine.dispose()


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client wrapping the vault app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def db(app):
    async with app.state.sessionmaker() as session:
        yield session


@pytest.fixture
def make_user(db):
    async def _make(email: str, role: AppRole = AppRole.USER, password: str = PASSWORD):
        return await IdentityService.create_user(db, email, password, role)
    return _make


@pytest.fixture
def make_provider(db):
    async def _make(
        name: str = "openai",
        api_key: str | None = None,
        encrypted_with: Cipher | None = None,
        base_url: str | None = None,
    ):
        provider = Provider(name=name, display_name=name.title(), base_url=base_url)
        if api_key is not None and encrypted_with is not None:
            provider.mark_encrypted(encrypted_with.encrypt(api_key))
        else:
            provider.api_key_encrypted = api_key
        db.add(provider)
        await db.commit()
        await db.refresh(provider)
        return provider
    return _make


@pytest.fixture
def auth_headers(settings):
    def _headers(user) -> dict:
        token = create_token(settings, user.id, user.email)["access_token"]
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user("admin@visuluxe.app", AppRole.ADMIN)


@pytest_asyncio.fixture
async def super_admin(make_user):
    return await make_user("root@visuluxe.app", AppRole.SUPER_ADMIN)
