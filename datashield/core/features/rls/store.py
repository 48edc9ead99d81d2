# (c) Copyright Datacraft, 2026
"""Policy store interface and an in-process implementation."""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any

from uuid_extensions import uuid7str

from datashield.core.exceptions import NotFoundError
from datashield.core.utils.tz import utc_now
from .models import Policy, apply_changes, validate_policy

logger = logging.getLogger(__name__)


class PolicyStore(ABC):
	"""Durable mapping from policy id to policy record."""

	@abstractmethod
	async def create(self, policy: Policy) -> Policy:
		"""Validate and persist a new policy, assigning id and timestamps."""

	@abstractmethod
	async def get(self, policy_id: str) -> Policy | None:
		"""Policy by id, or None."""

	@abstractmethod
	async def update(self, policy_id: str, changes: dict[str, Any]) -> Policy:
		"""Apply a partial update and return the new record."""

	@abstractmethod
	async def delete(self, policy_id: str) -> bool:
		"""Hard delete; True when a record was removed."""

	@abstractmethod
	async def list_for_tenant(self, tenant_id: str) -> list[Policy]:
		"""Every policy of a tenant, active or not, in priority order."""

	async def list_active_for_tenant(self, tenant_id: str) -> list[Policy]:
		"""Active policies of a tenant in priority order."""
		return [p for p in await self.list_for_tenant(tenant_id) if p.is_active]

	async def require(self, policy_id: str) -> Policy:
		policy = await self.get(policy_id)
		if policy is None:
			raise NotFoundError(f"Policy {policy_id} not found")
		return policy


def prepare_new_policy(policy: Policy) -> Policy:
	"""Validate a policy for insertion and stamp id and timestamps."""
	policy = validate_policy(policy)
	now = utc_now()
	return replace(
		policy,
		id=policy.id or uuid7str(),
		created_at=now,
		updated_at=now,
	)


class InMemoryPolicyStore(PolicyStore):
	"""
	Process-local policy store.

	Records are immutable and replaced whole under a lock, so concurrent
	readers see either the old or the new version of a policy.
	"""

	def __init__(self, policies: list[Policy] | None = None):
		self._policies: dict[str, Policy] = {}
		self._lock = threading.Lock()
		for policy in policies or []:
			stored = prepare_new_policy(policy)
			self._policies[stored.id] = stored

	async def create(self, policy: Policy) -> Policy:
		stored = prepare_new_policy(policy)
		with self._lock:
			self._policies[stored.id] = stored
		logger.debug(f"Created policy {stored.id} for tenant {stored.tenant_id}")
		return stored

	async def get(self, policy_id: str) -> Policy | None:
		return self._policies.get(policy_id)

	async def update(self, policy_id: str, changes: dict[str, Any]) -> Policy:
		with self._lock:
			current = self._policies.get(policy_id)
			if current is None:
				raise NotFoundError(f"Policy {policy_id} not found")
			updated = apply_changes(current, changes)
			self._policies[policy_id] = updated
		logger.debug(f"Updated policy {policy_id}: {sorted(changes)}")
		return updated

	async def delete(self, policy_id: str) -> bool:
		with self._lock:
			removed = self._policies.pop(policy_id, None)
		return removed is not None

	async def list_for_tenant(self, tenant_id: str) -> list[Policy]:
		snapshot = list(self._policies.values())
		return sorted(
			(p for p in snapshot if p.tenant_id == tenant_id),
			key=Policy.sort_key,
		)
