"""
Placement Router - Alignment Chart
alignment_chart/routers/placements.py

Session placements on the chart. New placements are returned immediately in
the pending state; analysis and avatar resolution finish in the background
unless `wait=true` is passed.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict

from alignment_chart.config import settings
from alignment_chart.core.dependencies import get_reconciler
from alignment_chart.core.exceptions import PersistenceError
from alignment_chart.models.placement import Placement
from alignment_chart.routers.analysis import AnalysisRequest, raise_error
from alignment_chart.session.reconciler import OptimisticStateReconciler


router = APIRouter(prefix=f"{settings.API_V1_PREFIX}/placements", tags=["Placements"])


#  Schemas


class PositionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    x: float
    y: float


class PlacementListResponse(BaseModel):
    items: List[Placement]
    total: int


class DeleteResponse(BaseModel):
    deleted: bool
    id: Optional[str] = None
    message: str


#  Exception Helpers


def raise_placement_not_found():
    raise_error(status.HTTP_404_NOT_FOUND, "PLACEMENT_NOT_FOUND", "Placement not found")


def raise_placement_locked():
    raise_error(
        status.HTTP_409_CONFLICT,
        "PLACEMENT_LOCKED",
        "Only resolved, manually placed entries can be moved",
    )


def raise_persistence_error(e: PersistenceError):
    raise_error(status.HTTP_503_SERVICE_UNAVAILABLE, "LOCAL_STORE_UNAVAILABLE", str(e))


def _clean_handle(request: AnalysisRequest) -> str:
    handle = request.handle.strip()
    if not handle:
        raise_error(status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR", "Handle cannot be empty")
    return handle


#  Routes


@router.get("", response_model=PlacementListResponse, summary="List placements")
async def list_placements(reconciler: OptimisticStateReconciler = Depends(get_reconciler)):
    items = reconciler.placements()
    return PlacementListResponse(items=items, total=len(items))


@router.get(
    "/analyses",
    response_model=PlacementListResponse,
    summary="List completed AI analyses",
    description="Resolved AI placements with a successful analysis, newest first.",
)
async def list_analyses(reconciler: OptimisticStateReconciler = Depends(get_reconciler)):
    items = reconciler.analyses()
    return PlacementListResponse(items=items, total=len(items))


@router.post(
    "/analyze",
    response_model=Placement,
    status_code=status.HTTP_201_CREATED,
    summary="Place a handle using AI analysis",
)
async def create_ai_placement(
    request: AnalysisRequest,
    wait: bool = Query(False, description="Wait for the analysis to resolve before responding"),
    reconciler: OptimisticStateReconciler = Depends(get_reconciler),
):
    handle = _clean_handle(request)
    if not wait:
        return reconciler.start_analysis(handle)
    placement = await reconciler.submit_analysis(handle)
    if placement is None:
        raise_error(
            status.HTTP_502_BAD_GATEWAY,
            "ANALYSIS_FAILED",
            f"Analysis for '{handle}' failed and the placement was removed",
        )
    return placement


@router.post(
    "/random",
    response_model=Placement,
    status_code=status.HTTP_201_CREATED,
    summary="Place a handle at a random position",
)
async def create_random_placement(
    request: AnalysisRequest,
    wait: bool = Query(False, description="Wait for the avatar to resolve before responding"),
    reconciler: OptimisticStateReconciler = Depends(get_reconciler),
):
    handle = _clean_handle(request)
    if not wait:
        return reconciler.start_random(handle)
    placement = await reconciler.submit_random(handle)
    if placement is None:
        raise_placement_not_found()
    return placement


@router.get("/{placement_id}", response_model=Placement, summary="Get a placement")
async def get_placement(
    placement_id: str,
    reconciler: OptimisticStateReconciler = Depends(get_reconciler),
):
    placement = reconciler.get(placement_id)
    if placement is None:
        raise_placement_not_found()
    return placement


@router.patch("/{placement_id}/position", response_model=Placement, summary="Move a placement")
async def move_placement(
    placement_id: str,
    update: PositionUpdate,
    reconciler: OptimisticStateReconciler = Depends(get_reconciler),
):
    if reconciler.get(placement_id) is None:
        raise_placement_not_found()
    placement = reconciler.move(placement_id, update.x, update.y)
    if placement is None:
        raise_placement_locked()
    return placement


@router.delete("/{placement_id}", response_model=DeleteResponse, summary="Remove a placement")
async def delete_placement(
    placement_id: str,
    reconciler: OptimisticStateReconciler = Depends(get_reconciler),
):
    try:
        deleted = await reconciler.remove(placement_id)
    except PersistenceError as e:
        raise_persistence_error(e)
    if not deleted:
        raise_placement_not_found()
    return DeleteResponse(deleted=True, id=placement_id, message="Placement removed")


@router.delete("", response_model=DeleteResponse, summary="Remove all placements")
async def clear_placements(reconciler: OptimisticStateReconciler = Depends(get_reconciler)):
    try:
        await reconciler.clear()
    except PersistenceError as e:
        raise_persistence_error(e)
    return DeleteResponse(deleted=True, message="All placements removed")
