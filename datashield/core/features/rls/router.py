# (c) Copyright Datacraft, 2026
"""FastAPI router for row-level security policy administration."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from datashield.core.db.engine import get_session
from datashield.core.exceptions import NotFoundError, RLSError, SubstitutionError, ValidationError
from .db import PolicyDB
from .models import Policy
from .service import RLSService
from .views import (
	PolicyCreate, PolicyUpdate, PolicyResponse, PolicyListResponse,
	PreviewRequest, PreviewResponse, PreviewLayer,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tenants/{tenant_id}/rls", tags=["rls"])


def _http_error(error: RLSError) -> HTTPException:
	if isinstance(error, NotFoundError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
	if isinstance(error, (ValidationError, SubstitutionError)):
		return HTTPException(status_code=422, detail=str(error))
	return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


async def _tenant_policy(db: PolicyDB, tenant_id: str, policy_id: str) -> Policy:
	"""Load a policy, hiding policies of other tenants."""
	policy = await db.get(policy_id)
	if policy is None or policy.tenant_id != tenant_id:
		raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Policy not found")
	return policy


# --- Policy CRUD ---

@router.post("/policies", response_model=PolicyResponse, status_code=status.HTTP_201_CREATED)
async def create_policy(
	tenant_id: str,
	data: PolicyCreate,
	session: Annotated[AsyncSession, Depends(get_session)],
	actor_id: Annotated[str | None, Header(alias="X-Actor-Id")] = None,
):
	"""Create a new policy."""
	db = PolicyDB(session)
	try:
		policy = await db.create(
			Policy.from_dict({**data.model_dump(), "tenant_id": tenant_id, "created_by": actor_id})
		)
	except RLSError as e:
		raise _http_error(e)

	await session.commit()
	logger.info(f"Policy {policy.id} created in tenant {tenant_id} by {actor_id}")
	return PolicyResponse.from_policy(policy)


@router.get("/policies", response_model=PolicyListResponse)
async def list_policies(
	tenant_id: str,
	session: Annotated[AsyncSession, Depends(get_session)],
	active_only: bool = False,
):
	"""List policies of the tenant in priority order."""
	db = PolicyDB(session)
	if active_only:
		policies = await db.list_active_for_tenant(tenant_id)
	else:
		policies = await db.list_for_tenant(tenant_id)
	return PolicyListResponse(
		items=[PolicyResponse.from_policy(p) for p in policies],
		total=len(policies),
	)


@router.get("/policies/{policy_id}", response_model=PolicyResponse)
async def get_policy(
	tenant_id: str,
	policy_id: str,
	session: Annotated[AsyncSession, Depends(get_session)],
):
	"""Get a policy by ID."""
	policy = await _tenant_policy(PolicyDB(session), tenant_id, policy_id)
	return PolicyResponse.from_policy(policy)


@router.patch("/policies/{policy_id}", response_model=PolicyResponse)
async def update_policy(
	tenant_id: str,
	policy_id: str,
	data: PolicyUpdate,
	session: Annotated[AsyncSession, Depends(get_session)],
):
	"""Update the fields that were sent."""
	db = PolicyDB(session)
	await _tenant_policy(db, tenant_id, policy_id)

	try:
		policy = await db.update(policy_id, data.model_dump(exclude_unset=True))
	except RLSError as e:
		raise _http_error(e)

	await session.commit()
	return PolicyResponse.from_policy(policy)


@router.delete("/policies/{policy_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_policy(
	tenant_id: str,
	policy_id: str,
	session: Annotated[AsyncSession, Depends(get_session)],
):
	"""Delete a policy."""
	db = PolicyDB(session)
	await _tenant_policy(db, tenant_id, policy_id)
	await db.delete(policy_id)
	await session.commit()
	logger.info(f"Policy {policy_id} deleted from tenant {tenant_id}")
	return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Preview ---

@router.post("/preview", response_model=PreviewResponse)
async def preview_query(
	tenant_id: str,
	data: PreviewRequest,
	session: Annotated[AsyncSession, Depends(get_session)],
):
	"""Show the query a user's dataset request would run as."""
	service = RLSService(session)
	try:
		result = await service.apply_rls_detailed(
			data.base_query, data.user_id, tenant_id, data.dataset_ids
		)
	except RLSError as e:
		# Keep the denial in the audit log
		await session.commit()
		raise _http_error(e)

	await session.commit()
	return PreviewResponse(
		query=result.query,
		filtered=result.is_filtered,
		applied_policy_ids=result.applied_policy_ids,
		layers=[
			PreviewLayer(alias=layer.alias, policy_id=layer.policy_id, predicate=layer.predicate)
			for layer in result.layers
		],
	)
