# (c) Copyright Datacraft, 2026
"""
Row-level security engine.

Rewrites a dataset query so that it only returns the rows a user may see:

1. resolve the user's context in the tenant
2. select the active policies scoped to the requested datasets
3. substitute each policy's predicate template against the context
4. wrap the query once per predicate, highest priority outermost

Every failure is fatal to the whole rewrite. A query that cannot be
filtered is never handed back unfiltered.
"""
import logging
from typing import Iterable

from datashield.core.exceptions import SubstitutionError
from .composer import DEFAULT_ALIAS_PREFIX, compose_layers
from .context import ContextResolver
from .models import RLSResult, requested_datasets
from .selector import PolicySelector
from .store import PolicyStore
from .substitution import substitute

logger = logging.getLogger(__name__)


class RLSEngine:

	def __init__(
		self,
		store: PolicyStore,
		resolver: ContextResolver,
		alias_prefix: str = DEFAULT_ALIAS_PREFIX,
	):
		self.selector = PolicySelector(store)
		self.resolver = resolver
		self.alias_prefix = alias_prefix

	async def apply_rls(
		self,
		base_query: str,
		user_id: str,
		tenant_id: str,
		dataset_ids: Iterable[str],
	) -> str:
		"""Return base_query filtered by every applicable policy."""
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

		context = await self.resolver.resolve(user_id, tenant_id)

		policies = await self.selector.select_applicable(tenant_id, dataset_ids)
		if not policies:
			logger.debug(f"No RLS policies for tenant {tenant_id}, datasets {dataset_ids}")
			return RLSResult(query=base_query, base_query=base_query)

		bag = context.as_bag()
		predicates = []
		for policy in policies:
			try:
				predicate = substitute(policy.predicate_template, bag)
			except SubstitutionError as e:
				logger.warning(
					f"RLS substitution failed for policy {policy.id} "
					f"(user {user_id}, tenant {tenant_id}): {e}"
				)
				raise e.for_policy(policy.id, policy.name) from e
			predicates.append((predicate, policy.id))

		query, layers = compose_layers(base_query, predicates, alias_prefix=self.alias_prefix)
		for layer in layers:
			logger.debug(f"RLS layer {layer.alias} from policy {layer.policy_id}: {layer.predicate}")
		logger.info(
			f"Applied {len(layers)} RLS policies for user {user_id} in tenant {tenant_id}"
		)
		return RLSResult(query=query, base_query=base_query, layers=layers)
