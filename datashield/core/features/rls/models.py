# (c) Copyright Datacraft, 2026
"""Row-level security domain models."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from datashield.core.exceptions import ValidationError
from datashield.core.utils.tz import utc_now
from .substitution import extract_placeholders


class PolicyLevel(str, Enum):
	"""Granularity a policy is written for."""
	TENANT = "tenant"
	GROUP = "group"
	USER = "user"
	DASHBOARD = "dashboard"
	CHART = "chart"
	VIEW = "view"


# Fields a partial update may touch
UPDATABLE_FIELDS = frozenset({
	"name",
	"description",
	"level",
	"target_id",
	"dataset_scope",
	"predicate_template",
	"context_keys",
	"priority",
	"is_active",
	"performance_hint",
})

IMMUTABLE_FIELDS = frozenset({"id", "tenant_id", "created_by", "created_at", "updated_at"})

# Context keys filled by the resolver, never by a profile document
RESERVED_CONTEXT_KEYS = frozenset({"user_id", "tenant_id", "workspace_id", "roles", "groups"})


def normalize_scope(dataset_ids: Iterable[str] | None) -> tuple[str, ...]:
	"""Drop duplicates and blanks, keeping first-occurrence order."""
	if dataset_ids is None:
		return ()
	if isinstance(dataset_ids, str):
		raise ValidationError("dataset_scope must be a list of dataset ids", field="dataset_scope")
	seen: dict[str, None] = {}
	for dataset_id in dataset_ids:
		key = str(dataset_id).strip()
		if key:
			seen.setdefault(key, None)
	return tuple(seen)


def requested_datasets(dataset_ids: Iterable[str]) -> list[str]:
	"""Dataset ids of a query request as a list."""
	if isinstance(dataset_ids, str):
		raise ValidationError("dataset_ids must be a list of dataset ids", field="dataset_ids")
	return list(dataset_ids)


@dataclass(frozen=True)
class Policy:
	"""
	A row-level security policy.

	Instances are immutable; updates produce a new record so that a reader
	holding a policy never observes a half-applied change.
	"""
	tenant_id: str
	predicate_template: str
	name: str = ""
	description: str = ""
	level: PolicyLevel = PolicyLevel.TENANT
	target_id: str | None = None
	dataset_scope: tuple[str, ...] = ()
	context_keys: tuple[str, ...] | None = None
	priority: int = 0
	is_active: bool = True
	performance_hint: dict[str, Any] = field(default_factory=dict)
	id: str | None = None
	created_by: str | None = None
	created_at: datetime | None = None
	updated_at: datetime | None = None

	@property
	def is_universal(self) -> bool:
		"""True when the policy applies to every dataset query in its tenant."""
		return not self.dataset_scope

	def applies_to(self, tenant_id: str, dataset_ids: Iterable[str]) -> bool:
		"""Check tenant, activation and dataset scope intersection."""
		if not self.is_active or self.tenant_id != tenant_id:
			return False
		if self.is_universal:
			return True
		requested = set(dataset_ids)
		return any(dataset_id in requested for dataset_id in self.dataset_scope)

	def sort_key(self) -> tuple:
		"""Priority descending, then oldest first, then id."""
		created = self.created_at.timestamp() if self.created_at else 0.0
		return (-self.priority, created, self.id or "")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"tenant_id": self.tenant_id,
			"name": self.name,
			"description": self.description,
			"level": self.level.value,
			"target_id": self.target_id,
			"dataset_scope": list(self.dataset_scope),
			"predicate_template": self.predicate_template,
			"context_keys": list(self.context_keys) if self.context_keys is not None else None,
			"priority": self.priority,
			"is_active": self.is_active,
			"performance_hint": dict(self.performance_hint),
			"created_by": self.created_by,
			"created_at": self.created_at.isoformat() if self.created_at else None,
			"updated_at": self.updated_at.isoformat() if self.updated_at else None,
		}

	@classmethod
	def from_dict(cls, data: dict) -> "Policy":
		context_keys = data.get("context_keys")
		return cls(
			id=data.get("id"),
			tenant_id=data.get("tenant_id"),
			name=data.get("name") or "",
			description=data.get("description") or "",
			level=PolicyLevel(data.get("level") or PolicyLevel.TENANT.value),
			target_id=data.get("target_id"),
			dataset_scope=normalize_scope(data.get("dataset_scope")),
			predicate_template=data.get("predicate_template"),
			context_keys=tuple(context_keys) if context_keys is not None else None,
			priority=data.get("priority", 0),
			is_active=data.get("is_active", True),
			performance_hint=data.get("performance_hint") or {},
			created_by=data.get("created_by"),
			created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else None,
			updated_at=datetime.fromisoformat(data["updated_at"]) if data.get("updated_at") else None,
		)


def validate_policy(policy: Policy) -> Policy:
	"""
	Check a policy record and return it with normalized fields.

	Raises ValidationError on the first problem found.
	"""
	if not policy.tenant_id or not str(policy.tenant_id).strip():
		raise ValidationError("tenant_id is required", field="tenant_id")
	if not isinstance(policy.predicate_template, str) or not policy.predicate_template.strip():
		raise ValidationError("predicate_template is required", field="predicate_template")

	try:
		level = PolicyLevel(policy.level)
	except ValueError:
		raise ValidationError(f"Unknown policy level: {policy.level!r}", field="level") from None

	if isinstance(policy.priority, bool) or not isinstance(policy.priority, int):
		raise ValidationError("priority must be an integer", field="priority")
	if not isinstance(policy.is_active, bool):
		raise ValidationError("is_active must be a boolean", field="is_active")
	if policy.performance_hint is not None and not isinstance(policy.performance_hint, dict):
		raise ValidationError("performance_hint must be an object", field="performance_hint")

	context_keys = policy.context_keys
	if context_keys is not None:
		if isinstance(context_keys, str):
			raise ValidationError("context_keys must be a list of names", field="context_keys")
		context_keys = tuple(context_keys)
		undeclared = [
			key for key in extract_placeholders(policy.predicate_template)
			if key not in context_keys
		]
		if undeclared:
			raise ValidationError(
				f"predicate_template references undeclared context keys: {', '.join(undeclared)}",
				field="context_keys",
			)

	return replace(
		policy,
		name=policy.name or "",
		description=policy.description or "",
		performance_hint=policy.performance_hint or {},
		level=level,
		dataset_scope=normalize_scope(policy.dataset_scope),
		context_keys=context_keys,
	)


def apply_changes(policy: Policy, changes: dict[str, Any]) -> Policy:
	"""Build the post-update record for a partial update."""
	immutable = sorted(set(changes) & IMMUTABLE_FIELDS)
	if immutable:
		raise ValidationError(f"Fields cannot be updated: {', '.join(immutable)}", field=immutable[0])
	unknown = sorted(set(changes) - UPDATABLE_FIELDS)
	if unknown:
		raise ValidationError(f"Unknown policy fields: {', '.join(unknown)}", field=unknown[0])

	updated = replace(policy, **changes, updated_at=utc_now())
	return validate_policy(updated)


@dataclass(frozen=True)
class UserContext:
	"""Attributes describing one user within one tenant at resolution time."""
	user_id: str
	tenant_id: str
	roles: tuple[str, ...] = ()
	groups: tuple[str, ...] = ()
	attributes: dict[str, Any] = field(default_factory=dict)

	def as_bag(self) -> dict[str, Any]:
		"""Flat mapping handed to template substitution."""
		bag = {
			key: value for key, value in self.attributes.items()
			if key not in RESERVED_CONTEXT_KEYS
		}
		bag.update(
			user_id=self.user_id,
			tenant_id=self.tenant_id,
			workspace_id=self.tenant_id,
			roles=list(self.roles),
			groups=list(self.groups),
		)
		return bag


@dataclass(frozen=True)
class RLSLayer:
	"""One wrapping level of a composed query."""
	alias: str
	predicate: str
	policy_id: str | None = None


@dataclass(frozen=True)
class RLSResult:
	"""Outcome of applying row-level security to a query."""
	query: str
	base_query: str
	layers: tuple[RLSLayer, ...] = ()

	@property
	def applied_policy_ids(self) -> list[str]:
		return [layer.policy_id for layer in self.layers if layer.policy_id]

	@property
	def is_filtered(self) -> bool:
		return bool(self.layers)
