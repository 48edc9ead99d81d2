# (c) Copyright Datacraft, 2026
"""Database models and operations for row-level security."""
from .orm import (
	RLSPolicyModel,
	RLSQueryAuditLogModel,
	TenantRoleAssignmentModel,
	TenantGroupMembershipModel,
	UserProfileModel,
)
from .api import PolicyDB, TenantDirectory

__all__ = [
	"RLSPolicyModel",
	"RLSQueryAuditLogModel",
	"TenantRoleAssignmentModel",
	"TenantGroupMembershipModel",
	"UserProfileModel",
	"PolicyDB",
	"TenantDirectory",
]
