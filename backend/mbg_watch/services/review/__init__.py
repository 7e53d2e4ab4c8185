"""
MBG Watch - Review Workflow

Submission, verification state machine and administrator operations.
"""
from .config_service import ScoringConfigService
from .locations import LocationDirectory, ResolvedLocation
from .rate_limiter import SubmissionRateLimiter
from .reporter_profiles import ReporterProfileService
from .review_service import EvidenceUpload, ReportDraft, ReportFilters, ReviewService
from .state_machine import STATE_CONFIG, TERMINAL_STATUSES, ReportStateMachine, replay_status

__all__ = [
    "ScoringConfigService",
    "LocationDirectory", "ResolvedLocation",
    "SubmissionRateLimiter",
    "ReporterProfileService",
    "EvidenceUpload", "ReportDraft", "ReportFilters", "ReviewService",
    "STATE_CONFIG", "TERMINAL_STATUSES", "ReportStateMachine", "replay_status",
]
