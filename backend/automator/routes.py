"""API routes for automator definitions and the publish lifecycle."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from automator.automator_model import Automator, AutomatorDefinition
from automator.automator_service import AutomatorService, get_automator_service
from automator.errors import (
    AutomatorNotFound,
    MalformedDefinition,
    NameConflict,
    PersistenceError,
    ValidationFailed,
)

router = APIRouter()


class ActorRequest(BaseModel):
    """request body carrying the acting user's id."""

    actor_id: str


class SaveDefinitionRequest(ActorRequest):
    definition: AutomatorDefinition


class CreateAutomatorRequest(ActorRequest):
    name: str
    description: Optional[str] = None
    template: Optional[str] = None


class UpdateAutomatorRequest(ActorRequest):
    name: Optional[str] = None
    description: Optional[str] = None


def _not_found(e: AutomatorNotFound) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


def _unavailable(e: PersistenceError) -> HTTPException:
    return HTTPException(status_code=503, detail=f"Automator storage unavailable: {e}")


@router.get("/automators/{automator_id}", response_model_exclude_none=True)
async def get_automator(
    automator_id: str,
    service: AutomatorService = Depends(get_automator_service),
) -> Automator:
    """get a single automator."""
    try:
        return await service.load(automator_id)
    except AutomatorNotFound as e:
        raise _not_found(e)
    except PersistenceError as e:
        raise _unavailable(e)


@router.get("/teams/{team_id}/automators", response_model_exclude_none=True)
async def list_for_team(
    team_id: str,
    service: AutomatorService = Depends(get_automator_service),
) -> List[Automator]:
    """list a team's automators, newest first."""
    try:
        return await service.list_for_team(team_id)
    except PersistenceError as e:
        raise _unavailable(e)


@router.post("/teams/{team_id}/automators", status_code=201, response_model_exclude_none=True)
async def create_automator(
    team_id: str,
    request: CreateAutomatorRequest,
    service: AutomatorService = Depends(get_automator_service),
) -> Automator:
    """create a new draft automator."""
    try:
        if not await service.is_name_unique(team_id, request.name):
            raise HTTPException(
                status_code=409,
                detail=f"Automator name already in use: {request.name}",
            )
        return await service.create(
            team_id=team_id,
            name=request.name,
            actor_id=request.actor_id,
            description=request.description,
            template=request.template,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise _unavailable(e)


@router.patch("/automators/{automator_id}", response_model_exclude_none=True)
async def update_automator(
    automator_id: str,
    request: UpdateAutomatorRequest,
    service: AutomatorService = Depends(get_automator_service),
) -> Automator:
    """rename an automator or change its description."""
    try:
        return await service.update(
            automator_id,
            request.actor_id,
            name=request.name,
            description=request.description,
        )
    except NameConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except AutomatorNotFound as e:
        raise _not_found(e)
    except PersistenceError as e:
        raise _unavailable(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/automators/{automator_id}/definition", response_model_exclude_none=True)
async def save_automator_definition(
    automator_id: str,
    request: SaveDefinitionRequest,
    service: AutomatorService = Depends(get_automator_service),
) -> Automator:
    """overwrite the stored definition (last write wins)."""
    try:
        return await service.save(automator_id, request.definition, request.actor_id)
    except MalformedDefinition as e:
        raise HTTPException(status_code=422, detail=str(e))
    except AutomatorNotFound as e:
        raise _not_found(e)
    except PersistenceError as e:
        raise _unavailable(e)


@router.post("/automators/{automator_id}/publish", response_model_exclude_none=True)
async def publish_automator(
    automator_id: str,
    request: ActorRequest,
    service: AutomatorService = Depends(get_automator_service),
) -> Automator:
    """publish an automator; refused with an itemized list when invalid."""
    try:
        return await service.publish(automator_id, request.actor_id)
    except ValidationFailed as e:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "Automator is not valid",
                "errors": [
                    issue.model_dump(mode="json", by_alias=True, exclude_none=True)
                    for issue in e.issues
                ],
            },
        )
    except AutomatorNotFound as e:
        raise _not_found(e)
    except PersistenceError as e:
        raise _unavailable(e)


@router.post("/automators/{automator_id}/unpublish", response_model_exclude_none=True)
async def unpublish_automator(
    automator_id: str,
    request: ActorRequest,
    service: AutomatorService = Depends(get_automator_service),
) -> Automator:
    """set an automator back to draft."""
    try:
        return await service.unpublish(automator_id, request.actor_id)
    except AutomatorNotFound as e:
        raise _not_found(e)
    except PersistenceError as e:
        raise _unavailable(e)
