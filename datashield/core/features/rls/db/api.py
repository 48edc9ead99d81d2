# (c) Copyright Datacraft, 2026
"""Database operations for row-level security."""
import logging
from typing import Any, Sequence

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from datashield.core.exceptions import NotFoundError
from ..models import Policy, PolicyLevel, apply_changes
from ..store import PolicyStore, prepare_new_policy
from .orm import (
	RLSPolicyModel,
	RLSQueryAuditLogModel,
	TenantRoleAssignmentModel,
	TenantGroupMembershipModel,
	UserProfileModel,
)

logger = logging.getLogger(__name__)

# Domain field -> column, where the names differ
_COLUMN_NAMES = {"dataset_scope": "dataset_ids"}


class PolicyDB(PolicyStore):
	"""Policy store backed by the rls_policies table."""

	def __init__(self, session: AsyncSession):
		self.session = session

	# --- Policy CRUD ---

	async def create(self, policy: Policy) -> Policy:
		"""Create a new policy."""
		policy = prepare_new_policy(policy)
		model = RLSPolicyModel(
			id=policy.id,
			tenant_id=policy.tenant_id,
			name=policy.name,
			description=policy.description,
			level=policy.level.value,
			target_id=policy.target_id,
			dataset_ids=list(policy.dataset_scope),
			predicate_template=policy.predicate_template,
			context_keys=list(policy.context_keys) if policy.context_keys is not None else None,
			priority=policy.priority,
			is_active=policy.is_active,
			performance_hint=dict(policy.performance_hint),
			created_by=policy.created_by,
			created_at=policy.created_at,
			updated_at=policy.updated_at,
		)
		self.session.add(model)
		await self.session.flush()
		return self.model_to_policy(model)

	async def get(self, policy_id: str) -> Policy | None:
		"""Get a policy by ID."""
		model = await self.session.get(RLSPolicyModel, policy_id)
		return self.model_to_policy(model) if model else None

	async def update(self, policy_id: str, changes: dict[str, Any]) -> Policy:
		"""Apply a partial update; the row is rewritten within the session transaction."""
		model = await self.session.get(RLSPolicyModel, policy_id)
		if model is None:
			raise NotFoundError(f"Policy {policy_id} not found")

		updated = apply_changes(self.model_to_policy(model), changes)
		for key, value in self._to_columns(updated).items():
			setattr(model, key, value)

		await self.session.flush()
		return self.model_to_policy(model)

	async def delete(self, policy_id: str) -> bool:
		"""Delete a policy."""
		model = await self.session.get(RLSPolicyModel, policy_id)
		if not model:
			return False
		await self.session.delete(model)
		await self.session.flush()
		return True

	async def list_for_tenant(self, tenant_id: str) -> list[Policy]:
		"""Every policy of a tenant in priority order."""
		return await self._select(RLSPolicyModel.tenant_id == tenant_id)

	async def list_active_for_tenant(self, tenant_id: str) -> list[Policy]:
		"""Active policies of a tenant in priority order."""
		return await self._select(
			and_(
				RLSPolicyModel.tenant_id == tenant_id,
				RLSPolicyModel.is_active.is_(True),
			)
		)

	async def _select(self, condition) -> list[Policy]:
		query = (
			select(RLSPolicyModel)
			.where(condition)
			.order_by(
				RLSPolicyModel.priority.desc(),
				RLSPolicyModel.created_at.asc(),
				RLSPolicyModel.id.asc(),
			)
		)
		result = await self.session.execute(query)
		return [self.model_to_policy(m) for m in result.scalars().all()]

	# --- Audit Logging ---

	async def log_query(
		self,
		tenant_id: str,
		user_id: str,
		dataset_ids: Sequence[str],
		applied_policy_ids: Sequence[str],
		base_query_hash: str,
		final_query_hash: str | None,
		outcome: str,
		error_message: str | None = None,
	) -> RLSQueryAuditLogModel:
		"""Record one pass of a query through row-level security."""
		log = RLSQueryAuditLogModel(
			tenant_id=tenant_id,
			user_id=user_id,
			dataset_ids=list(dataset_ids),
			applied_policy_ids=list(applied_policy_ids),
			base_query_hash=base_query_hash,
			final_query_hash=final_query_hash,
			outcome=outcome,
			error_message=error_message,
		)
		self.session.add(log)
		await self.session.flush()
		return log

	async def get_query_logs(
		self,
		tenant_id: str,
		user_id: str | None = None,
		limit: int = 100,
	) -> Sequence[RLSQueryAuditLogModel]:
		"""Query audit logs, newest first."""
		query = select(RLSQueryAuditLogModel).where(RLSQueryAuditLogModel.tenant_id == tenant_id)
		if user_id:
			query = query.where(RLSQueryAuditLogModel.user_id == user_id)
		query = query.order_by(
			RLSQueryAuditLogModel.created_at.desc(),
			RLSQueryAuditLogModel.id.desc(),
		).limit(limit)
		result = await self.session.execute(query)
		return result.scalars().all()

	# --- Helpers ---

	@staticmethod
	def _to_columns(policy: Policy) -> dict[str, Any]:
		return {
			"name": policy.name,
			"description": policy.description,
			"level": policy.level.value,
			"target_id": policy.target_id,
			_COLUMN_NAMES["dataset_scope"]: list(policy.dataset_scope),
			"predicate_template": policy.predicate_template,
			"context_keys": list(policy.context_keys) if policy.context_keys is not None else None,
			"priority": policy.priority,
			"is_active": policy.is_active,
			"performance_hint": dict(policy.performance_hint),
			"updated_at": policy.updated_at,
		}

	@staticmethod
	def model_to_policy(model: RLSPolicyModel) -> Policy:
		"""Convert RLSPolicyModel to domain Policy object."""
		return Policy(
			id=model.id,
			tenant_id=model.tenant_id,
			name=model.name or "",
			description=model.description or "",
			level=PolicyLevel(model.level),
			target_id=model.target_id,
			dataset_scope=tuple(model.dataset_ids or ()),
			predicate_template=model.predicate_template,
			context_keys=tuple(model.context_keys) if model.context_keys is not None else None,
			priority=model.priority,
			is_active=model.is_active,
			performance_hint=dict(model.performance_hint or {}),
			created_by=model.created_by,
			created_at=model.created_at,
			updated_at=model.updated_at,
		)


class TenantDirectory:
	"""
	Role, group and profile lookups over the membership tables.

	Plays the role-assignment, group and user-profile collaborators for
	ContextResolver.
	"""

	def __init__(self, session: AsyncSession):
		self.session = session

	async def get_roles(self, user_id: str, tenant_id: str) -> list[str]:
		"""Active role names of a user in a tenant."""
		query = (
			select(TenantRoleAssignmentModel.role_name)
			.where(
				and_(
					TenantRoleAssignmentModel.user_id == user_id,
					TenantRoleAssignmentModel.tenant_id == tenant_id,
					TenantRoleAssignmentModel.is_active.is_(True),
				)
			)
			.distinct()
			.order_by(TenantRoleAssignmentModel.role_name)
		)
		result = await self.session.execute(query)
		return list(result.scalars().all())

	async def get_groups(self, user_id: str, tenant_id: str) -> list[str]:
		"""Group names of a user in a tenant."""
		query = (
			select(TenantGroupMembershipModel.group_name)
			.where(
				and_(
					TenantGroupMembershipModel.user_id == user_id,
					TenantGroupMembershipModel.tenant_id == tenant_id,
				)
			)
			.distinct()
			.order_by(TenantGroupMembershipModel.group_name)
		)
		result = await self.session.execute(query)
		return list(result.scalars().all())

	async def get_profile(self, user_id: str) -> dict[str, Any] | None:
		"""Profile document of a user, or None when there is none."""
		model = await self.session.get(UserProfileModel, user_id)
		if model is None:
			return None
		return dict(model.profile_data or {})
