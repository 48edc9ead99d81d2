# (c) Copyright Datacraft, 2026
"""Shared test fixtures."""
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from uuid_extensions import uuid7str

from datashield.core.db.base import Base
from datashield.core.db.engine import get_session
from datashield.core.features.rls.db import (
	PolicyDB,
	TenantRoleAssignmentModel,
	TenantGroupMembershipModel,
	UserProfileModel,
)
from datashield.core.features.rls.models import Policy

TENANT_ID = "tenant-acme"


@pytest.fixture
async def db_session():
	"""Session over a fresh in-memory SQLite database."""
	engine = create_async_engine(
		"sqlite+aiosqlite://",
		poolclass=StaticPool,
		connect_args={"check_same_thread": False},
	)
	async with engine.begin() as conn:
		await conn.run_sync(Base.metadata.create_all)

	session_factory = async_sessionmaker(engine, expire_on_commit=False)
	async with session_factory() as session:
		yield session

	await engine.dispose()


@pytest.fixture
def tenant_id() -> str:
	return TENANT_ID


@pytest.fixture
def make_policy(db_session: AsyncSession):
	"""Factory fixture for persisted policies."""
	async def _make_policy(
		predicate_template: str = "region = {region}",
		tenant_id: str = TENANT_ID,
		**kwargs,
	) -> Policy:
		policy = await PolicyDB(db_session).create(
			Policy(
				tenant_id=tenant_id,
				predicate_template=predicate_template,
				name=kwargs.pop("name", "Test policy"),
				**kwargs,
			)
		)
		await db_session.commit()
		return policy

	return _make_policy


@pytest.fixture
def make_member(db_session: AsyncSession):
	"""Factory fixture for a user with roles, groups and a profile in a tenant."""
	async def _make_member(
		user_id: str | None = None,
		tenant_id: str = TENANT_ID,
		roles: list[str] | None = None,
		groups: list[str] | None = None,
		profile: dict | None = None,
		active: bool = True,
	) -> str:
		user_id = user_id or uuid7str()
		for role in roles if roles is not None else ["viewer"]:
			db_session.add(TenantRoleAssignmentModel(
				tenant_id=tenant_id,
				user_id=user_id,
				role_name=role,
				is_active=active,
			))
		for group in groups or []:
			db_session.add(TenantGroupMembershipModel(
				tenant_id=tenant_id,
				user_id=user_id,
				group_name=group,
			))
		if profile is not None:
			db_session.add(UserProfileModel(user_id=user_id, profile_data=profile))
		await db_session.commit()
		return user_id

	return _make_member


@pytest.fixture
async def api_client(db_session: AsyncSession):
	"""HTTP client for the API, sharing the test database session."""
	from datashield.app import app

	async def _get_session():
		yield db_session

	app.dependency_overrides[get_session] = _get_session
	async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
		yield client
	app.dependency_overrides.clear()
