"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, status

from app.pipelines.intake import (
    CallIntakePipeline,
    CallSessionRegistry,
    UnknownSessionError,
    get_registry,
)
from app.services.call_repository import SqlAlchemyCallRepository, get_call_repository

RegistryDep = Annotated[CallSessionRegistry, Depends(get_registry)]
RepositoryDep = Annotated[SqlAlchemyCallRepository, Depends(get_call_repository)]


async def get_live_call(session_id: str, registry: RegistryDep) -> CallIntakePipeline:
    """Resolve the pipeline for a live call or answer 404."""

    try:
        return registry.get(session_id)
    except UnknownSessionError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Call session not found",
        ) from None


LiveCallDep = Annotated[CallIntakePipeline, Depends(get_live_call)]


__all__ = ["LiveCallDep", "RegistryDep", "RepositoryDep", "get_live_call"]
