# (c) Copyright Datacraft, 2026
"""
Errors raised by the row-level security pipeline.

None of these are transient: they describe bad policy data or a missing
user context, so nothing in the pipeline retries them. Any of them
reaching a query execution path means the query must not run.
"""


class RLSError(Exception):
	"""Base class for row-level security errors."""


class ValidationError(RLSError):
	"""A policy is malformed on create or update."""

	def __init__(self, message: str, field: str | None = None):
		super().__init__(message)
		self.field = field


class NotFoundError(RLSError):
	"""A policy id is unknown, or no context exists for a user in a tenant."""


class SubstitutionError(RLSError):
	"""A predicate template cannot be rendered against a user context."""

	def __init__(
		self,
		message: str,
		policy_id: str | None = None,
		missing_keys: list[str] | None = None,
	):
		super().__init__(message)
		self.policy_id = policy_id
		self.missing_keys = missing_keys or []

	def for_policy(self, policy_id: str, policy_name: str | None = None) -> "SubstitutionError":
		"""Return a copy of this error naming the policy it was raised for."""
		label = f"{policy_name!r} ({policy_id})" if policy_name else policy_id
		return SubstitutionError(
			f"Policy {label}: {self}",
			policy_id=policy_id,
			missing_keys=list(self.missing_keys),
		)
