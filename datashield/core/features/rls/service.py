# (c) Copyright Datacraft, 2026
"""Row-level security service bound to a database session."""
import hashlib
import logging
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from datashield.core.config import get_settings
from datashield.core.exceptions import RLSError
from .context import ContextResolver
from .db import PolicyDB, TenantDirectory
from .engine import RLSEngine
from .models import RLSResult, requested_datasets

logger = logging.getLogger(__name__)


def query_hash(query: str) -> str:
	return hashlib.sha256(query.encode()).hexdigest()


class RLSService:
	"""
	Applies row-level security for the dataset execution path.

	Usage:
		async with get_session() as session:
			service = RLSService(session)
			query = await service.apply_rls(
				base_query="SELECT * FROM sales",
				user_id="user-123",
				tenant_id="tenant-1",
				dataset_ids=["ds-1"],
			)
			await session.commit()

	Any RLSError raised here means the query must not be executed.
	"""

	def __init__(self, session: AsyncSession, audit: bool | None = None):
		settings = get_settings()
		self.session = session
		self.db = PolicyDB(session)
		directory = TenantDirectory(session)
		self.resolver = ContextResolver(roles=directory, profiles=directory, groups=directory)
		self.engine = RLSEngine(self.db, self.resolver, alias_prefix=settings.rls_alias_prefix)
		self.audit = settings.rls_audit_enabled if audit is None else audit

	async def apply_rls(
		self,
		base_query: str,
		user_id: str,
		tenant_id: str,
		dataset_ids: Iterable[str],
	) -> str:
		result = await self.apply_rls_detailed(base_query, user_id, tenant_id, dataset_ids)
		return result.query

	async def apply_rls_detailed(
		self,
		base_query: str,
		user_id: str,
		tenant_id: str,
		dataset_ids: Iterable[str],
	) -> RLSResult:
		dataset_ids = requested_datasets(dataset_ids)
		try:
			result = await self.engine.apply_rls_detailed(base_query, user_id, tenant_id, dataset_ids)
		except RLSError as e:
			if self.audit:
				await self.db.log_query(
					tenant_id=tenant_id,
					user_id=user_id,
					dataset_ids=dataset_ids,
					applied_policy_ids=[],
					base_query_hash=query_hash(base_query),
					final_query_hash=None,
					outcome="denied",
					error_message=str(e),
				)
			raise

		if self.audit:
			await self.db.log_query(
				tenant_id=tenant_id,
				user_id=user_id,
				dataset_ids=dataset_ids,
				applied_policy_ids=result.applied_policy_ids,
				base_query_hash=query_hash(base_query),
				final_query_hash=query_hash(result.query),
				outcome="applied" if result.is_filtered else "unfiltered",
			)
		return result

