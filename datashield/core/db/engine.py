# (c) Copyright Datacraft, 2026
import logging
import ssl
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from datashield.core.config import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def get_engine() -> AsyncEngine:
	settings = get_settings()

	connect_args = {}
	if settings.db_ssl:
		# asyncpg requires an SSL context, not sslmode
		ssl_context = ssl.create_default_context()
		ssl_context.check_hostname = False
		ssl_context.verify_mode = ssl.CERT_NONE
		connect_args["ssl"] = ssl_context

	logger.debug("Creating database engine")
	return create_async_engine(
		settings.async_db_url,
		poolclass=NullPool,
		connect_args=connect_args,
	)


@lru_cache
def get_session_factory() -> async_sessionmaker:
	return async_sessionmaker(get_engine(), expire_on_commit=False)


async def get_db():
	async with get_session_factory()() as session:
		yield session


# Alias used by feature routers
get_session = get_db
