"""
MBG Watch - Wire Serializers

ORM rows -> JSON-ready dicts with camelCase keys. Datetimes are ISO-8601 UTC.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from ...models.db_models import ReportDB, ReportFileDB, ReportStatusHistoryDB
from ...models.scoring import ScoringResult
from ..credibility import thresholds as t

# Factor name -> ReportDB column
FACTOR_COLUMNS = {
    "relation": "score_relation",
    "locationTime": "score_location_time",
    "evidence": "score_evidence",
    "narrative": "score_narrative",
    "reporterHistory": "score_reporter_history",
    "similarity": "score_similarity",
}

FACTOR_META = {
    "relation": (t.MAX_RELATION, "Reporter relation"),
    "locationTime": (t.MAX_LOCATION_TIME, "Location & time"),
    "evidence": (t.MAX_EVIDENCE, "Evidence"),
    "narrative": (t.MAX_NARRATIVE, "Narrative"),
    "reporterHistory": (t.MAX_REPORTER_HISTORY, "Reporter history"),
    "similarity": (t.MAX_SIMILARITY, "Report similarity"),
}


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() + "Z" if value else None


def apply_scores(report: ReportDB, result: ScoringResult) -> None:
    """Copy a scoring result onto its report row."""
    for factor in result.factors:
        setattr(report, FACTOR_COLUMNS[factor.name], factor.value)
    report.total_score = result.total_score
    report.credibility_level = result.credibility_level
    report.score_provisional = result.provisional
    report.is_potential_duplicate = result.duplicate_of_id is not None
    report.duplicate_of_id = result.duplicate_of_id
    report.scoring_notes = {
        "degradedReason": result.degraded_reason,
        "corroboratingIds": list(result.corroborating_ids),
    }


def factor_breakdown(report: ReportDB) -> Dict[str, Dict[str, Any]]:
    breakdown = {}
    for name, column in FACTOR_COLUMNS.items():
        maximum, label = FACTOR_META[name]
        breakdown[name] = {"value": getattr(report, column), "max": maximum, "label": label}
    return breakdown


def serialize_file(f: ReportFileDB) -> Dict[str, Any]:
    return {
        "id": f.id,
        "reference": f.reference,
        "fileName": f.file_name,
        "contentType": f.content_type,
        "sizeBytes": f.size_bytes,
        "createdAt": iso(f.created_at),
    }


def serialize_report(report: ReportDB, include_reporter: bool = True) -> Dict[str, Any]:
    data = {
        "id": report.id,
        "publicId": report.public_id,
        "category": report.category.value,
        "title": report.title,
        "description": report.description,
        "location": report.location,
        "provinceId": report.province_id,
        "cityId": report.city_id,
        "districtId": report.district_id,
        "incidentDate": iso(report.incident_date),
        "submittedAt": iso(report.submitted_at),
        "relation": report.relation.value,
        "relationDetail": report.relation_detail,
        "isAnonymous": report.is_anonymous,
        "status": report.status.value,
        "version": report.version,
        "adminNotes": report.admin_notes,
        "verifiedBy": report.verified_by,
        "verifiedAt": iso(report.verified_at),
        "totalScore": report.total_score,
        "credibilityLevel": report.credibility_level.value,
        "scoreProvisional": report.score_provisional,
        "isPotentialDuplicate": report.is_potential_duplicate,
        "duplicateOfId": report.duplicate_of_id,
        "files": [serialize_file(f) for f in report.files],
        "createdAt": iso(report.created_at),
        "updatedAt": iso(report.updated_at),
    }
    if include_reporter:
        data["reporterId"] = None if report.is_anonymous else report.reporter_id
    return data


def serialize_scoring(report: ReportDB) -> Dict[str, Any]:
    notes = report.scoring_notes or {}
    return {
        "reportId": report.id,
        "factors": factor_breakdown(report),
        "totalScore": report.total_score,
        "maxScore": sum(m for m, _ in FACTOR_META.values()),
        "credibilityLevel": report.credibility_level.value,
        "provisional": report.score_provisional,
        "degradedReason": notes.get("degradedReason"),
        "corroboratingIds": notes.get("corroboratingIds", []),
        "isPotentialDuplicate": report.is_potential_duplicate,
        "duplicateOfId": report.duplicate_of_id,
        "scoredAt": iso(report.scored_at),
    }


def serialize_history_entry(entry: ReportStatusHistoryDB) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "reportId": entry.report_id,
        "sequence": entry.sequence,
        "fromStatus": entry.from_status.value if entry.from_status else None,
        "toStatus": entry.to_status.value,
        "notes": entry.notes,
        "actor": entry.actor.value,
        "changedBy": entry.changed_by,
        "trigger": entry.trigger,
        "createdAt": iso(entry.created_at),
    }


def paginate(data: List[Any], page: int, limit: int, total: int) -> Dict[str, Any]:
    return {
        "data": data,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": (total + limit - 1) // limit if limit else 0,
        },
    }
