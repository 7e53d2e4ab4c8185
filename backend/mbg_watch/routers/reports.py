"""
MBG Watch - Reports Router
Reporter-facing endpoints: submit, attach evidence, list own reports.
"""
from datetime import datetime
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from ..auth import get_actor
from ..database import get_db
from ..models.scoring import Actor
from ..services.review import EvidenceUpload, ReportDraft, ReviewService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


def get_review_service(db: Session = Depends(get_db)) -> ReviewService:
    return ReviewService(db)


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EvidenceFileIn(CamelModel):
    reference: str = Field(min_length=1, max_length=500)
    file_name: str = Field(min_length=1, max_length=255)
    content_type: str = Field(min_length=1, max_length=100)
    size_bytes: int = Field(ge=0)

    def to_upload(self) -> EvidenceUpload:
        return EvidenceUpload(
            reference=self.reference,
            file_name=self.file_name,
            content_type=self.content_type,
            size_bytes=self.size_bytes,
        )


class SubmitReportRequest(CamelModel):
    category: str
    title: str
    description: str
    location: str
    province_id: str
    city_id: str
    district_id: Optional[str] = None
    incident_date: datetime
    relation: str
    relation_detail: Optional[str] = None
    is_anonymous: bool = False
    files: List[EvidenceFileIn] = Field(default_factory=list)


class AttachEvidenceRequest(CamelModel):
    files: List[EvidenceFileIn]


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
def submit_report(
    request: SubmitReportRequest,
    actor: Actor = Depends(get_actor),
    service: ReviewService = Depends(get_review_service),
):
    """Submit a new report. It is scored immediately and starts as pending."""
    draft = ReportDraft(
        category=request.category,
        title=request.title,
        description=request.description,
        location=request.location,
        province_id=request.province_id,
        city_id=request.city_id,
        district_id=request.district_id,
        incident_date=request.incident_date,
        relation=request.relation,
        relation_detail=request.relation_detail,
        is_anonymous=request.is_anonymous,
        files=[f.to_upload() for f in request.files],
    )
    return {"data": service.submit(draft, actor)}


@router.get("/mine")
def list_my_reports(
    page: int = Query(1),
    limit: int = Query(10),
    actor: Actor = Depends(get_actor),
    service: ReviewService = Depends(get_review_service),
):
    return service.list_mine(actor, page=page, limit=limit)


@router.post("/{report_id}/evidence")
def attach_evidence(
    report_id: str,
    request: AttachEvidenceRequest,
    actor: Actor = Depends(get_actor),
    service: ReviewService = Depends(get_review_service),
):
    """Add evidence to your own report; re-scores it and resumes review if it was waiting."""
    return {"data": service.attach_evidence(report_id, [f.to_upload() for f in request.files], actor)}
