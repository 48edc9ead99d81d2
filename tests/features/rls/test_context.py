# (c) Copyright Datacraft, 2026
"""Tests for user context resolution."""
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from datashield.core.exceptions import NotFoundError
from datashield.core.features.rls.context import ContextResolver, flatten_profile


def _collaborators(roles=None, profile=None, groups=None):
	directory = MagicMock()
	directory.get_roles = AsyncMock(return_value=roles if roles is not None else ["viewer"])
	directory.get_profile = AsyncMock(return_value=profile)
	directory.get_groups = AsyncMock(return_value=groups or [])
	return directory


async def test_resolve_combines_roles_groups_and_profile():
	directory = _collaborators(
		roles=["viewer", "analyst", "viewer"],
		groups=["emea"],
		profile={"department": "finance", "region": "EU"},
	)
	resolver = ContextResolver(roles=directory, profiles=directory, groups=directory)

	context = await resolver.resolve("u1", "t1")

	assert context.user_id == "u1"
	assert context.tenant_id == "t1"
	assert context.roles == ("viewer", "analyst")
	assert context.groups == ("emea",)
	assert context.attributes == {"department": "finance", "region": "EU"}
	directory.get_roles.assert_awaited_once_with("u1", "t1")
	directory.get_profile.assert_awaited_once_with("u1")


async def test_no_membership_raises_not_found():
	directory = _collaborators(roles=[])
	resolver = ContextResolver(roles=directory, profiles=directory)

	with pytest.raises(NotFoundError):
		await resolver.resolve("stranger", "t1")
	directory.get_profile.assert_not_awaited()


async def test_missing_profile_gives_no_attributes():
	directory = _collaborators(profile=None)
	resolver = ContextResolver(roles=directory, profiles=directory)

	context = await resolver.resolve("u1", "t1")

	assert context.attributes == {}
	assert context.groups == ()


async def test_missing_attributes_are_not_defaulted():
	directory = _collaborators(profile={"region": "EU"})
	resolver = ContextResolver(roles=directory, profiles=directory)

	bag = (await resolver.resolve("u1", "t1")).as_bag()

	assert "department" not in bag


async def test_profile_cannot_spoof_reserved_keys():
	directory = _collaborators(
		roles=["viewer"],
		profile={"roles": ["admin"], "tenant_id": "other", "level": "senior"},
	)
	resolver = ContextResolver(roles=directory, profiles=directory)

	context = await resolver.resolve("u1", "t1")

	assert context.attributes == {"level": "senior"}
	assert context.as_bag()["roles"] == ["viewer"]
	assert context.as_bag()["tenant_id"] == "t1"


def test_flatten_profile_nested_objects():
	profile = {"org": {"unit": "emea", "cost": {"center": 42}}, "region": "EU", "tags": ["a"]}
	assert flatten_profile(profile) == {
		"org_unit": "emea",
		"org_cost_center": 42,
		"region": "EU",
		"tags": ["a"],
	}


@pytest.mark.parametrize("profile", [
	{"org_unit": "top", "org": {"unit": "nested"}},
	{"org": {"unit": "nested"}, "org_unit": "top"},
])
def test_flatten_profile_prefers_top_level_key(profile, caplog):
	with caplog.at_level(logging.WARNING):
		assert flatten_profile(profile) == {"org_unit": "top"}
	assert "org_unit" in caplog.text
