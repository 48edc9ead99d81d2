# (c) Copyright Datacraft, 2026
"""Resolve the attribute bag describing a user within a tenant."""
import logging
from typing import Any, Protocol

from datashield.core.exceptions import NotFoundError
from .models import RESERVED_CONTEXT_KEYS, UserContext

logger = logging.getLogger(__name__)


class RoleProvider(Protocol):
	async def get_roles(self, user_id: str, tenant_id: str) -> list[str]:
		...


class ProfileProvider(Protocol):
	async def get_profile(self, user_id: str) -> dict[str, Any] | None:
		...


class GroupProvider(Protocol):
	async def get_groups(self, user_id: str, tenant_id: str) -> list[str]:
		...


def flatten_profile(profile: dict[str, Any], prefix: str = "") -> dict[str, Any]:
	"""
	Flatten nested profile objects into underscore-joined names.

	{"org": {"unit": "emea"}, "region": "EU"} -> {"org_unit": "emea", "region": "EU"}

	Objects themselves are not kept, only their leaves. When a flattened
	name is already taken, the shallower value wins.
	"""
	flattened = {}
	nested = []

	for key, value in profile.items():
		full_key = f"{prefix}_{key}" if prefix else str(key)
		if isinstance(value, dict):
			nested.append((full_key, value))
		else:
			flattened[full_key] = value

	for full_key, value in nested:
		for key, leaf in flatten_profile(value, full_key).items():
			if key in flattened:
				logger.warning(f"Profile key {key!r} is defined more than once, keeping the first value")
				continue
			flattened[key] = leaf

	return flattened


def _unique(values) -> tuple[str, ...]:
	seen: dict[str, None] = {}
	for value in values or ():
		if value is not None:
			seen.setdefault(str(value), None)
	return tuple(seen)


class ContextResolver:
	"""
	Builds a UserContext from the role, group and profile collaborators.

	A user without any active role in the tenant has no membership there
	and gets NotFoundError; callers must deny rather than skip filtering.
	Attributes missing from the profile are left out, never defaulted.
	"""

	def __init__(
		self,
		roles: RoleProvider,
		profiles: ProfileProvider,
		groups: GroupProvider | None = None,
	):
		self.roles = roles
		self.profiles = profiles
		self.groups = groups

	async def resolve(self, user_id: str, tenant_id: str) -> UserContext:
		roles = _unique(await self.roles.get_roles(user_id, tenant_id))
		if not roles:
			logger.warning(f"No active membership for user {user_id} in tenant {tenant_id}")
			raise NotFoundError(f"No context for user {user_id} in tenant {tenant_id}")

		groups = ()
		if self.groups is not None:
			groups = _unique(await self.groups.get_groups(user_id, tenant_id))

		profile = await self.profiles.get_profile(user_id) or {}
		attributes = {
			key: value for key, value in flatten_profile(profile).items()
			if key not in RESERVED_CONTEXT_KEYS
		}
		shadowed = sorted(set(profile) & RESERVED_CONTEXT_KEYS)
		if shadowed:
			logger.warning(f"Ignoring reserved profile keys for user {user_id}: {shadowed}")

		return UserContext(
			user_id=user_id,
			tenant_id=tenant_id,
			roles=roles,
			groups=groups,
			attributes=attributes,
		)
