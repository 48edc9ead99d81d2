# (c) Copyright Datacraft, 2026
"""Tests for the in-process policy store."""
import asyncio

import pytest

from datashield.core.exceptions import NotFoundError, ValidationError
from datashield.core.features.rls.models import Policy
from datashield.core.features.rls.store import InMemoryPolicyStore


@pytest.fixture
def store() -> InMemoryPolicyStore:
	return InMemoryPolicyStore()


async def test_create_assigns_id_and_defaults(store):
	policy = await store.create(Policy(tenant_id="t1", predicate_template="a = {a}"))

	assert policy.id
	assert policy.priority == 0
	assert policy.is_active is True
	assert policy.created_at is not None
	assert policy.created_at == policy.updated_at
	assert await store.get(policy.id) == policy


async def test_create_requires_template(store):
	with pytest.raises(ValidationError):
		await store.create(Policy(tenant_id="t1", predicate_template=None))
	assert await store.list_for_tenant("t1") == []


async def test_get_unknown_returns_none(store):
	assert await store.get("missing") is None


async def test_require_unknown_raises(store):
	with pytest.raises(NotFoundError):
		await store.require("missing")


async def test_update_is_partial_and_bumps_updated_at(store):
	policy = await store.create(Policy(
		tenant_id="t1", predicate_template="a = {a}", name="First", priority=2,
	))
	await asyncio.sleep(0.001)

	updated = await store.update(policy.id, {"is_active": False})

	assert updated.is_active is False
	assert updated.name == "First"
	assert updated.priority == 2
	assert updated.updated_at > policy.updated_at
	assert updated.created_at == policy.created_at


async def test_update_replaces_record_atomically(store):
	policy = await store.create(Policy(tenant_id="t1", predicate_template="a = {a}"))
	held = await store.get(policy.id)

	await store.update(policy.id, {"predicate_template": "b = {b}", "priority": 9})

	# A reader holding the old record still sees a consistent old version
	assert held.predicate_template == "a = {a}"
	assert held.priority == 0
	current = await store.get(policy.id)
	assert (current.predicate_template, current.priority) == ("b = {b}", 9)


async def test_failed_update_leaves_record_untouched(store):
	policy = await store.create(Policy(tenant_id="t1", predicate_template="a = {a}"))

	with pytest.raises(ValidationError):
		await store.update(policy.id, {"name": "ok", "predicate_template": ""})

	assert await store.get(policy.id) == policy


async def test_update_unknown_raises(store):
	with pytest.raises(NotFoundError):
		await store.update("missing", {"name": "x"})


async def test_delete(store):
	policy = await store.create(Policy(tenant_id="t1", predicate_template="a = {a}"))

	assert await store.delete(policy.id) is True
	assert await store.get(policy.id) is None
	assert await store.delete(policy.id) is False


async def test_list_for_tenant_ordered_and_scoped(store):
	low = await store.create(Policy(tenant_id="t1", predicate_template="x", priority=1))
	high = await store.create(Policy(tenant_id="t1", predicate_template="x", priority=10))
	tie = await store.create(Policy(tenant_id="t1", predicate_template="x", priority=1))
	await store.create(Policy(tenant_id="t2", predicate_template="x", priority=50))
	inactive = await store.create(Policy(
		tenant_id="t1", predicate_template="x", priority=5, is_active=False,
	))

	listed = await store.list_for_tenant("t1")
	assert [p.id for p in listed] == [high.id, inactive.id, low.id, tie.id]

	active = await store.list_active_for_tenant("t1")
	assert [p.id for p in active] == [high.id, low.id, tie.id]


async def test_seeded_policies_are_validated():
	with pytest.raises(ValidationError):
		InMemoryPolicyStore([Policy(tenant_id="", predicate_template="x")])
