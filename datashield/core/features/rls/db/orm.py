# (c) Copyright Datacraft, 2026
"""SQLAlchemy ORM models for row-level security."""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, JSON, Index
from uuid_extensions import uuid7str

from datashield.core.db.base import Base
from datashield.core.utils.tz import utc_now
from ..models import PolicyLevel


class RLSPolicyModel(Base):
	"""Persisted row-level security policy."""
	__tablename__ = "rls_policies"

	id = Column(String(36), primary_key=True, default=uuid7str)
	tenant_id = Column(String(36), nullable=False)
	name = Column(String(200), nullable=False, default="")
	description = Column(Text, default="")
	level = Column(String(20), nullable=False, default=PolicyLevel.TENANT.value)
	target_id = Column(String(36), nullable=True)
	dataset_ids = Column(JSON, default=list)  # Ordered; empty applies to every dataset
	predicate_template = Column(Text, nullable=False)
	context_keys = Column(JSON, nullable=True)
	priority = Column(Integer, nullable=False, default=0)
	is_active = Column(Boolean, nullable=False, default=True)
	performance_hint = Column(JSON, default=dict)
	created_by = Column(String(36), nullable=True)
	created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
	updated_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

	__table_args__ = (
		Index("ix_rls_policies_tenant_active", "tenant_id", "is_active"),
		Index("ix_rls_policies_priority", "priority", "created_at"),
	)


class RLSQueryAuditLogModel(Base):
	"""One row per query passed through row-level security."""
	__tablename__ = "rls_query_audit_logs"

	id = Column(String(36), primary_key=True, default=uuid7str)
	tenant_id = Column(String(36), nullable=False)
	user_id = Column(String(36), nullable=False)
	dataset_ids = Column(JSON, default=list)
	applied_policy_ids = Column(JSON, default=list)
	base_query_hash = Column(String(64), nullable=False)
	final_query_hash = Column(String(64), nullable=True)
	outcome = Column(String(20), nullable=False)  # applied, unfiltered, denied
	error_message = Column(Text, nullable=True)
	created_at = Column(DateTime(timezone=True), default=utc_now, index=True)

	__table_args__ = (
		Index("ix_rls_audit_tenant_time", "tenant_id", "created_at"),
		Index("ix_rls_audit_user", "user_id"),
	)


class TenantRoleAssignmentModel(Base):
	"""Role held by a user inside a tenant."""
	__tablename__ = "tenant_role_assignments"

	id = Column(String(36), primary_key=True, default=uuid7str)
	tenant_id = Column(String(36), nullable=False)
	user_id = Column(String(36), nullable=False)
	role_name = Column(String(100), nullable=False)
	is_active = Column(Boolean, nullable=False, default=True)
	created_at = Column(DateTime(timezone=True), default=utc_now)

	__table_args__ = (
		Index("ix_tenant_roles_user_tenant", "user_id", "tenant_id"),
	)


class TenantGroupMembershipModel(Base):
	"""Group a user belongs to inside a tenant."""
	__tablename__ = "tenant_group_memberships"

	id = Column(String(36), primary_key=True, default=uuid7str)
	tenant_id = Column(String(36), nullable=False)
	user_id = Column(String(36), nullable=False)
	group_name = Column(String(100), nullable=False)

	__table_args__ = (
		Index("ix_tenant_groups_user_tenant", "user_id", "tenant_id"),
	)


class UserProfileModel(Base):
	"""Free-form profile document of a user."""
	__tablename__ = "user_profiles"

	user_id = Column(String(36), primary_key=True)
	profile_data = Column(JSON, default=dict)
	updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
