# (c) Copyright Datacraft, 2026
"""Tests for policy validation and user context."""
from datetime import datetime, timezone

import pytest

from datashield.core.exceptions import ValidationError
from datashield.core.features.rls.models import (
	Policy,
	PolicyLevel,
	UserContext,
	apply_changes,
	normalize_scope,
	validate_policy,
)


def _policy(**kwargs) -> Policy:
	defaults = {"tenant_id": "t1", "predicate_template": "region = {region}"}
	defaults.update(kwargs)
	return Policy(**defaults)


class TestValidatePolicy:

	def test_valid_policy_normalized(self):
		policy = validate_policy(_policy(level="user", dataset_scope=["d1", "d2", "d1", " "]))
		assert policy.level is PolicyLevel.USER
		assert policy.dataset_scope == ("d1", "d2")

	@pytest.mark.parametrize("template", [None, "", "   "])
	def test_predicate_template_required(self, template):
		with pytest.raises(ValidationError) as exc_info:
			validate_policy(_policy(predicate_template=template))
		assert exc_info.value.field == "predicate_template"

	@pytest.mark.parametrize("tenant_id", [None, "", "  "])
	def test_tenant_required(self, tenant_id):
		with pytest.raises(ValidationError) as exc_info:
			validate_policy(_policy(tenant_id=tenant_id))
		assert exc_info.value.field == "tenant_id"

	def test_unknown_level(self):
		with pytest.raises(ValidationError, match="Unknown policy level"):
			validate_policy(_policy(level="galaxy"))

	def test_priority_must_be_int(self):
		with pytest.raises(ValidationError):
			validate_policy(_policy(priority="high"))
		with pytest.raises(ValidationError):
			validate_policy(_policy(priority=True))

	def test_context_keys_must_cover_template(self):
		with pytest.raises(ValidationError, match="undeclared context keys: roles"):
			validate_policy(_policy(
				predicate_template="region = {region} AND role IN ${roles}",
				context_keys=["region"],
			))

	def test_declared_context_keys_accepted(self):
		policy = validate_policy(_policy(context_keys=["region", "extra"]))
		assert policy.context_keys == ("region", "extra")

	def test_scope_must_be_list(self):
		with pytest.raises(ValidationError):
			normalize_scope("d1")


class TestApplyChanges:

	def test_partial_update_keeps_other_fields(self):
		created = datetime(2026, 1, 1, tzinfo=timezone.utc)
		original = validate_policy(_policy(
			id="p1", name="Old", priority=3, created_at=created, updated_at=created,
		))
		updated = apply_changes(original, {"name": "New"})

		assert updated.name == "New"
		assert updated.priority == 3
		assert updated.predicate_template == original.predicate_template
		assert updated.created_at == created
		assert updated.updated_at > created
		# The original record is untouched
		assert original.name == "Old"

	def test_immutable_fields_rejected(self):
		with pytest.raises(ValidationError, match="cannot be updated"):
			apply_changes(_policy(), {"tenant_id": "other"})

	def test_unknown_fields_rejected(self):
		with pytest.raises(ValidationError, match="Unknown policy fields"):
			apply_changes(_policy(), {"colour": "red"})

	def test_update_revalidates(self):
		with pytest.raises(ValidationError):
			apply_changes(_policy(), {"predicate_template": ""})


class TestPolicyScope:

	def test_universal_scope_applies_everywhere(self):
		policy = _policy()
		assert policy.applies_to("t1", [])
		assert policy.applies_to("t1", ["anything"])

	def test_scope_intersection(self):
		policy = _policy(dataset_scope=("d1", "d2"))
		assert policy.applies_to("t1", ["d2", "d9"])
		assert not policy.applies_to("t1", ["d9"])

	def test_other_tenant_and_inactive(self):
		assert not _policy().applies_to("t2", ["d1"])
		assert not _policy(is_active=False).applies_to("t1", ["d1"])

	def test_round_trip_dict(self):
		policy = validate_policy(_policy(id="p1", dataset_scope=["d1"], context_keys=["region"]))
		assert Policy.from_dict(policy.to_dict()) == policy


class TestUserContext:

	def test_bag_contains_identity_and_attributes(self):
		context = UserContext(
			user_id="u1",
			tenant_id="t1",
			roles=("admin",),
			groups=("emea",),
			attributes={"department": "finance"},
		)
		assert context.as_bag() == {
			"department": "finance",
			"user_id": "u1",
			"tenant_id": "t1",
			"workspace_id": "t1",
			"roles": ["admin"],
			"groups": ["emea"],
		}

	def test_attributes_cannot_override_identity(self):
		context = UserContext(
			user_id="u1",
			tenant_id="t1",
			roles=("viewer",),
			attributes={"roles": ["admin"], "user_id": "root"},
		)
		bag = context.as_bag()
		assert bag["roles"] == ["viewer"]
		assert bag["user_id"] == "u1"
