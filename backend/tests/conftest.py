# tests/conftest.py - Shared test fixtures
import os
import tempfile

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["ENVIRONMENT"] = "test"
os.environ["UPLOAD_ROOT"] = tempfile.mkdtemp(prefix="handoff-uploads-")

from models import Base, Freelancer, Portal, Client, Project
from auth import AuthService
from database import get_db_session, enable_sqlite_foreign_keys
from main import app

TEST_PASSWORD = "TestPassword123!"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_engine):
    """HTTP test client with overridden DB dependency"""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def make_freelancer(db, email: str, name: str = "Freelancer") -> Freelancer:
    freelancer = Freelancer(
        email=email,
        name=name,
        password_hash=AuthService.hash_password(TEST_PASSWORD),
    )
    db.add(freelancer)
    await db.commit()
    await db.refresh(freelancer)
    return freelancer


async def make_portal(db, owner: Freelancer, subdomain: str) -> Portal:
    portal = Portal(owner_id=owner.id, subdomain=subdomain, name=subdomain.title())
    db.add(portal)
    await db.commit()
    await db.refresh(portal)
    return portal


async def make_client(db, portal: Portal, email: str, name: str = "Client") -> Client:
    record = Client(portal_id=portal.id, name=name, email=email)
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return record


async def make_project(db, owner: Client, name: str = "Website") -> Project:
    project = Project(client_id=owner.id, name=name)
    db.add(project)
    await db.commit()
    await db.refresh(project)
    return project


@pytest_asyncio.fixture
async def freelancer(db_session):
    """Create a test freelancer"""
    return await make_freelancer(db_session, "ada@handoff.dev", "Ada Lovelace")


@pytest_asyncio.fixture
async def other_freelancer(db_session):
    """A second, unrelated freelancer"""
    return await make_freelancer(db_session, "grace@handoff.dev", "Grace Hopper")


@pytest_asyncio.fixture
async def portal(db_session, freelancer):
    return await make_portal(db_session, freelancer, "ada")


@pytest_asyncio.fixture
async def client_record(db_session, portal):
    return await make_client(db_session, portal, "bob@acme.test", "Bob")


@pytest_asyncio.fixture
async def project(db_session, client_record):
    return await make_project(db_session, client_record)


@pytest_asyncio.fixture
async def foreign_project(db_session, other_freelancer):
    """A project at the end of another freelancer's chain"""
    other_portal = await make_portal(db_session, other_freelancer, "grace")
    other_client = await make_client(db_session, other_portal, "eve@rival.test", "Eve")
    return await make_project(db_session, other_client, "Rival site")


def get_auth_headers(freelancer: Freelancer) -> dict:
    """Generate auth headers for a freelancer"""
    token = AuthService.token_for(freelancer)
    return {"Authorization": f"Bearer {token}"}


def client_headers(record: Client) -> dict:
    return {"X-Client-Token": record.access_token}


def fail_commits_with(monkeypatch, *kinds) -> None:
    """Make any commit that would insert one of `kinds` raise OperationalError"""
    original_commit = AsyncSession.commit

    async def failing_commit(self):
        if any(isinstance(obj, kinds) for obj in self.new):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        return await original_commit(self)

    monkeypatch.setattr(AsyncSession, "commit", failing_commit)
