"""
MBG Watch - Admin Router
Review console: query, scoring breakdown, audit trail, status transitions.
"""
from datetime import date, datetime
from typing import List, Optional, Union
import logging

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from ..auth import get_admin_actor
from ..models.scoring import Actor
from ..services.review import ReportFilters, ReviewService
from .reports import CamelModel, get_review_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class StatusUpdateRequest(CamelModel):
    status: str
    notes: Optional[str] = None


class BulkStatusUpdateRequest(CamelModel):
    report_ids: List[str] = Field(min_length=1)
    status: str
    notes: Optional[str] = None


# =============================================================================
# REPORTS
# =============================================================================

@router.get("/reports")
def query_reports(
    page: int = Query(1),
    limit: int = Query(10),
    category: Optional[str] = None,
    status: Optional[str] = None,
    credibility_level: Optional[str] = Query(None, alias="credibilityLevel"),
    province_id: Optional[str] = Query(None, alias="provinceId"),
    city_id: Optional[str] = Query(None, alias="cityId"),
    district_id: Optional[str] = Query(None, alias="districtId"),
    start_date: Optional[Union[datetime, date]] = Query(None, alias="startDate"),
    end_date: Optional[Union[datetime, date]] = Query(None, alias="endDate"),
    search: Optional[str] = None,
    actor: Actor = Depends(get_admin_actor),
    service: ReviewService = Depends(get_review_service),
):
    filters = ReportFilters(
        category=category,
        status=status,
        credibility_level=credibility_level,
        province_id=province_id,
        city_id=city_id,
        district_id=district_id,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    return service.query(filters, page, limit, actor)


@router.patch("/reports/bulk-status")
def bulk_update_status(
    request: BulkStatusUpdateRequest,
    actor: Actor = Depends(get_admin_actor),
    service: ReviewService = Depends(get_review_service),
):
    return {"data": service.bulk_update_status(request.report_ids, request.status, request.notes, actor)}


@router.get("/reports/{report_id}/scoring")
def get_scoring(
    report_id: str,
    actor: Actor = Depends(get_admin_actor),
    service: ReviewService = Depends(get_review_service),
):
    return {"data": service.get_scoring(report_id, actor)}


@router.get("/reports/{report_id}/history")
def get_history(
    report_id: str,
    actor: Actor = Depends(get_admin_actor),
    service: ReviewService = Depends(get_review_service),
):
    return {"data": service.get_history(report_id, actor)}


@router.patch("/reports/{report_id}/status")
def update_status(
    report_id: str,
    request: StatusUpdateRequest,
    actor: Actor = Depends(get_admin_actor),
    service: ReviewService = Depends(get_review_service),
):
    return {"data": service.update_status(report_id, request.status, request.notes, actor)}


@router.post("/reports/{report_id}/rescore")
def rescore(
    report_id: str,
    actor: Actor = Depends(get_admin_actor),
    service: ReviewService = Depends(get_review_service),
):
    return {"data": service.rescore(report_id, actor)}


# =============================================================================
# SCORING CONFIG / DASHBOARD
# =============================================================================

@router.get("/scoring/thresholds")
def get_thresholds(
    actor: Actor = Depends(get_admin_actor),
    service: ReviewService = Depends(get_review_service),
):
    return {"data": service.get_thresholds(actor)}


@router.get("/dashboard")
def dashboard(
    actor: Actor = Depends(get_admin_actor),
    service: ReviewService = Depends(get_review_service),
):
    return {"data": service.dashboard_stats(actor)}
