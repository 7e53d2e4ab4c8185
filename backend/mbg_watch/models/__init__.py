"""MBG Watch - Data Models"""
from .db_models import (
    # Enums
    UserRole, ReportCategory, ReportStatus, CredibilityLevel, ReporterRelation, ActorType,
    # Tables
    UserDB, ReporterProfileDB, ProvinceDB, CityDB, DistrictDB,
    ReportDB, ReportFileDB, ReportStatusHistoryDB, ScoringConfigDB,
)
from .scoring import (
    EvidenceFile, ReporterHistory, ReportSnapshot,
    FactorScore, CredibilityThresholds, ScoringResult, Actor,
)

__all__ = [
    "UserRole", "ReportCategory", "ReportStatus", "CredibilityLevel", "ReporterRelation", "ActorType",
    "UserDB", "ReporterProfileDB", "ProvinceDB", "CityDB", "DistrictDB",
    "ReportDB", "ReportFileDB", "ReportStatusHistoryDB", "ScoringConfigDB",
    "EvidenceFile", "ReporterHistory", "ReportSnapshot",
    "FactorScore", "CredibilityThresholds", "ScoringResult", "Actor",
]
