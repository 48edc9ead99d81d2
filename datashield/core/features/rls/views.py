# (c) Copyright Datacraft, 2026
"""Pydantic schemas for the row-level security API."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import Policy, PolicyLevel


class PolicyCreate(BaseModel):
	"""Schema for creating a policy."""
	model_config = ConfigDict(extra="forbid")

	name: str = Field(..., min_length=1, max_length=200)
	description: str = ""
	level: PolicyLevel = PolicyLevel.TENANT
	target_id: str | None = None
	dataset_scope: list[str] = Field(default_factory=list)
	predicate_template: str = Field(..., min_length=1)
	context_keys: list[str] | None = None
	priority: int = 0
	is_active: bool = True
	performance_hint: dict[str, Any] = Field(default_factory=dict)


class PolicyUpdate(BaseModel):
	"""Schema for updating a policy. Only fields that are sent are changed."""
	model_config = ConfigDict(extra="forbid")

	name: str | None = Field(default=None, min_length=1, max_length=200)
	description: str | None = None
	level: PolicyLevel | None = None
	target_id: str | None = None
	dataset_scope: list[str] | None = None
	predicate_template: str | None = Field(default=None, min_length=1)
	context_keys: list[str] | None = None
	priority: int | None = None
	is_active: bool | None = None
	performance_hint: dict[str, Any] | None = None

	@field_validator("name", "level", "dataset_scope", "predicate_template", "priority", "is_active")
	@classmethod
	def not_null(cls, value):
		if value is None:
			raise ValueError("may be omitted but not null")
		return value


class PolicyResponse(BaseModel):
	"""Schema for policy response."""
	id: str
	tenant_id: str
	name: str
	description: str
	level: PolicyLevel
	target_id: str | None
	dataset_scope: list[str]
	predicate_template: str
	context_keys: list[str] | None
	priority: int
	is_active: bool
	performance_hint: dict[str, Any]
	created_by: str | None
	created_at: datetime | None
	updated_at: datetime | None

	@classmethod
	def from_policy(cls, policy: Policy) -> "PolicyResponse":
		return cls(**policy.to_dict())


class PolicyListResponse(BaseModel):
	items: list[PolicyResponse]
	total: int


class PreviewRequest(BaseModel):
	"""Apply row-level security to a query on behalf of a user."""
	model_config = ConfigDict(extra="forbid")

	user_id: str = Field(..., min_length=1)
	base_query: str = Field(..., min_length=1)
	dataset_ids: list[str] = Field(default_factory=list)


class PreviewLayer(BaseModel):
	alias: str
	policy_id: str | None
	predicate: str


class PreviewResponse(BaseModel):
	query: str
	filtered: bool
	applied_policy_ids: list[str]
	layers: list[PreviewLayer]
