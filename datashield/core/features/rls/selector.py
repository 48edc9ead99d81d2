# (c) Copyright Datacraft, 2026
"""Pick the policies that restrict a dataset query."""
from typing import Iterable

from .models import Policy
from .store import PolicyStore


def select_applicable(
	policies: Iterable[Policy],
	tenant_id: str,
	dataset_ids: Iterable[str],
) -> list[Policy]:
	"""
	Active policies of the tenant whose scope is empty or intersects
	dataset_ids, highest priority first, then oldest first.

	Scope entries naming datasets that no longer exist simply never match.
	"""
	requested = set(dataset_ids)
	return sorted(
		(p for p in policies if p.applies_to(tenant_id, requested)),
		key=Policy.sort_key,
	)


class PolicySelector:

	def __init__(self, store: PolicyStore):
		self.store = store

	async def select_applicable(self, tenant_id: str, dataset_ids: Iterable[str]) -> list[Policy]:
		candidates = await self.store.list_active_for_tenant(tenant_id)
		return select_applicable(candidates, tenant_id, dataset_ids)
