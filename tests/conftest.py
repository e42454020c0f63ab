"""Pytest configuration and shared fixtures."""

import os

# Set environment for testing BEFORE importing the application
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CACHE_ENABLED"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from edulink.core.database import get_db
from edulink.main import app
from edulink.models import (
    Base, ClassModel, Parent, Student, Subject, Teacher, Tenant,
)


@pytest.fixture
async def engine():
    """One in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def tenant(db) -> Tenant:
    tenant = Tenant(school_code="edl001", school_name="EduLink Test School")
    db.add(tenant)
    await db.commit()
    return tenant


class EntityFactory:
    """Creates committed rows for one tenant."""

    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id

    async def _add(self, obj):
        self.db.add(obj)
        await self.db.commit()
        return obj

    async def subject(self, name: str, code: str = None) -> Subject:
        return await self._add(Subject(tenant_id=self.tenant_id, name=name, code=code))

    async def klass(self, name: str, subject_ids=None, maximum_students: int = 30) -> ClassModel:
        return await self._add(ClassModel(
            tenant_id=self.tenant_id,
            name=name,
            subject_ids=list(subject_ids or []),
            maximum_students=maximum_students,
        ))

    async def student(self, name: str, **fields) -> Student:
        return await self._add(Student(tenant_id=self.tenant_id, name=name, **fields))

    async def students(self, count: int, class_id: str, prefix: str = "Pupil") -> None:
        self.db.add_all([
            Student(tenant_id=self.tenant_id, name=f"{prefix} {i}", class_id=class_id, age=10)
            for i in range(count)
        ])
        await self.db.commit()

    async def parent(self, name: str, children_ids=None, **fields) -> Parent:
        return await self._add(Parent(
            tenant_id=self.tenant_id, name=name, children_ids=list(children_ids or []), **fields
        ))

    async def teacher(self, name: str, subject: str = None, class_ids=None) -> Teacher:
        return await self._add(Teacher(
            tenant_id=self.tenant_id, name=name, subject=subject, class_ids=list(class_ids or [])
        ))


@pytest.fixture
def make(db, tenant) -> EntityFactory:
    return EntityFactory(db, tenant.id)


@pytest.fixture
async def client(session_factory, tenant):
    """HTTP client against the app with get_db bound to the test database."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test",
                           headers={"X-School-Id": tenant.id}) as client:
        yield client
    app.dependency_overrides = {}
