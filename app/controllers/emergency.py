"""Emergency call controller: the dispatch-side CRUD over call records."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from app.controllers.dependencies import RepositoryDep
from app.services.call_repository import CallNotFoundError
from app.views import (
    EmergencyCallCreateRequest,
    EmergencyCallResponse,
    EmergencyCallUpdateRequest,
    ErrorResponse,
)

router = APIRouter(
    prefix="/emergency",
    tags=["emergency"],
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)


@router.post("", response_model=EmergencyCallResponse, status_code=status.HTTP_201_CREATED)
async def create_emergency_call(
    payload: EmergencyCallCreateRequest,
    repository: RepositoryDep,
) -> EmergencyCallResponse:
    call = await repository.create_call(payload)
    return EmergencyCallResponse.model_validate(call)


@router.get("", response_model=list[EmergencyCallResponse])
async def list_emergency_calls(repository: RepositoryDep) -> list[EmergencyCallResponse]:
    calls = await repository.list_calls()
    return [EmergencyCallResponse.model_validate(call) for call in calls]


@router.get("/{call_id}", response_model=EmergencyCallResponse)
async def get_emergency_call(call_id: str, repository: RepositoryDep) -> EmergencyCallResponse:
    try:
        call = await repository.get_call(call_id)
    except CallNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Emergency call not found",
        ) from None
    return EmergencyCallResponse.model_validate(call)


@router.patch("/{call_id}", response_model=EmergencyCallResponse)
async def update_emergency_call(
    call_id: str,
    payload: EmergencyCallUpdateRequest,
    repository: RepositoryDep,
) -> EmergencyCallResponse:
    if not payload.model_fields_set:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="No fields to update",
        )
    try:
        call = await repository.update_call(call_id, payload)
    except CallNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Emergency call not found",
        ) from None
    return EmergencyCallResponse.model_validate(call)


__all__ = ["router"]
