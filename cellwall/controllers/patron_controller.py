"""HTTP controller serving the published cell allocation."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from cellwall.controllers.dependencies import get_result_repository
from cellwall.repository.result_repository import ExportError, ResultRepository
from cellwall.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["patrons"])


@router.get(
    "/patron-data",
    status_code=status.HTTP_200_OK,
    response_class=Response,
    responses={200: {"content": {"application/json": {}}}},
)
async def patron_data(
    repository: ResultRepository = Depends(get_result_repository),
) -> Response:
    """Return the last published allocation document byte for byte."""
    try:
        content = repository.read_raw()
    except FileNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No allocation result has been published yet",
        ) from exc
    except ExportError as exc:
        logger.warning("Failed to read allocation result | error=%s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Allocation result could not be read",
        ) from exc
    return Response(content=content, media_type="application/json")
