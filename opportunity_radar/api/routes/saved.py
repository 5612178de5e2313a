from fastapi import APIRouter, Depends, HTTPException, Response, status as http_status

from opportunity_radar.schemas.opportunities import SavedOpportunityOut, SaveOpportunityRequest
from opportunity_radar.services.repository import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    get_repository,
)

router = APIRouter()


@router.get("", response_model=list[SavedOpportunityOut])
async def list_saved_opportunities(user_id: str, repository=Depends(get_repository)) -> list[SavedOpportunityOut]:
    try:
        return await repository.list_saved_opportunities(user_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.post("", response_model=SavedOpportunityOut, status_code=http_status.HTTP_201_CREATED)
async def save_opportunity(
    user_id: str,
    payload: SaveOpportunityRequest,
    repository=Depends(get_repository),
) -> SavedOpportunityOut:
    try:
        return await repository.save_opportunity(user_id, payload.opportunity_id, payload.notes)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.delete("/{opportunity_id}", status_code=http_status.HTTP_204_NO_CONTENT)
async def remove_saved_opportunity(
    user_id: str,
    opportunity_id: str,
    repository=Depends(get_repository),
) -> Response:
    try:
        await repository.remove_saved_opportunity(user_id, opportunity_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return Response(status_code=http_status.HTTP_204_NO_CONTENT)
