"""
Verification State Machine

Deterministic state machine for the report review workflow.
Terminal states admit no further transitions.
Every transition is written to the append-only status history in the same
transaction as the status change.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from ...errors import AuthenticationError, AuthorizationError, ConflictError
from ...models.db_models import (
    ActorType, ReportDB, ReportStatus, ReportStatusHistoryDB, utcnow,
)
from ...models.scoring import Actor
from .reporter_profiles import ReporterProfileService

logger = logging.getLogger(__name__)


# =============================================================================
# STATE CONFIGURATION
# =============================================================================
#
# AUTHORITY MODEL:
# Each edge lists the actors allowed to take it:
# - ADMIN: an administrator reviewing the report
# - SYSTEM: an automatic transition (evidence resubmitted by the reporter)
#
# Reporters never move a report themselves; their only influence on status
# is attaching evidence while it sits in needs_evidence.
#
# =============================================================================

STATE_CONFIG: Dict[ReportStatus, Dict[str, Any]] = {
    ReportStatus.PENDING: {
        "description": "Submitted, waiting for an administrator",
        "allowed_transitions": {
            ReportStatus.ANALYZING: (ActorType.ADMIN,),
        },
    },
    ReportStatus.ANALYZING: {
        "description": "Under review",
        "allowed_transitions": {
            ReportStatus.NEEDS_EVIDENCE: (ActorType.ADMIN,),
            ReportStatus.INVALID: (ActorType.ADMIN,),
            ReportStatus.IN_PROGRESS: (ActorType.ADMIN,),
        },
    },
    ReportStatus.NEEDS_EVIDENCE: {
        "description": "Waiting for the reporter to add evidence",
        "allowed_transitions": {
            ReportStatus.ANALYZING: (ActorType.ADMIN, ActorType.SYSTEM),
        },
    },
    ReportStatus.IN_PROGRESS: {
        "description": "Confirmed, follow-up in progress",
        "allowed_transitions": {
            ReportStatus.RESOLVED: (ActorType.ADMIN,),
        },
    },
    ReportStatus.INVALID: {
        "description": "Rejected",
        "allowed_transitions": {},  # Terminal state
    },
    ReportStatus.RESOLVED: {
        "description": "Verified and closed",
        "allowed_transitions": {},  # Terminal state
    },
}

TERMINAL_STATUSES = frozenset(s for s, c in STATE_CONFIG.items() if not c["allowed_transitions"])


def replay_status(history: Iterable[ReportStatusHistoryDB]) -> Optional[ReportStatus]:
    """
    Reconstruct a report's status from its audit trail.

    Each entry's from_status must equal the status produced by the previous
    entry; a broken chain raises ValueError.
    """
    current: Optional[ReportStatus] = None
    for entry in sorted(history, key=lambda e: e.sequence):
        if entry.from_status != current:
            raise ValueError(
                f"History entry {entry.sequence} starts from "
                f"{entry.from_status.value if entry.from_status else None}, "
                f"expected {current.value if current else None}"
            )
        current = entry.to_status
    return current


# =============================================================================
# STATE MACHINE
# =============================================================================

class ReportStateMachine:
    """
    Core Principles:
    - Only edges in STATE_CONFIG are legal
    - Status changes are compare-and-set against the status the caller saw
    - Exactly one history entry per successful transition
    - Reaching a terminal status updates the reporter's verdict counters
    """

    def __init__(self, db_session: Session):
        self.db = db_session
        self.profiles = ReporterProfileService(db_session)

    def get_state_config(self, status: ReportStatus) -> Dict[str, Any]:
        return STATE_CONFIG.get(status, {})

    def get_next_states(self, status: ReportStatus) -> List[ReportStatus]:
        return list(self.get_state_config(status).get("allowed_transitions", {}))

    def is_terminal_state(self, status: ReportStatus) -> bool:
        return status in TERMINAL_STATUSES

    def can_transition(
        self,
        from_status: ReportStatus,
        to_status: ReportStatus,
        actor_type: ActorType = ActorType.ADMIN,
    ) -> Tuple[bool, str]:
        """
        Check if a transition is allowed for an actor type.

        Returns (allowed, reason)
        """
        edges = self.get_state_config(from_status).get("allowed_transitions", {})
        if to_status not in edges:
            return False, f"Cannot transition from {from_status.value} to {to_status.value}"
        if actor_type not in edges[to_status]:
            return False, f"{actor_type.value} may not move a report to {to_status.value}"
        return True, "Transition allowed"

    def transition(
        self,
        report: ReportDB,
        to_status: ReportStatus,
        actor: Actor,
        notes: Optional[str] = None,
        trigger: str = "admin_review",
    ) -> ReportStatusHistoryDB:
        """
        Administrator-driven transition.

        Raises AuthenticationError / AuthorizationError before looking at the
        graph, then ConflictError for an illegal edge or a lost race.
        """
        if actor is None or not actor.is_authenticated:
            raise AuthenticationError()
        if not actor.is_admin:
            raise AuthorizationError("Only administrators can change report status")

        return self._apply(report, to_status, ActorType.ADMIN, actor.user_id, notes, trigger)

    def system_transition(
        self,
        report: ReportDB,
        to_status: ReportStatus,
        trigger: str,
        notes: Optional[str] = None,
    ) -> ReportStatusHistoryDB:
        """
        System-authoritative transition. No user authorization required; the
        edge must still list SYSTEM as an allowed actor.
        """
        return self._apply(report, to_status, ActorType.SYSTEM, None, notes, trigger)

    def record_submission(self, report: ReportDB) -> ReportStatusHistoryDB:
        """Initial history entry for a freshly inserted report."""
        entry = ReportStatusHistoryDB(
            id=str(uuid4()),
            report_id=report.id,
            sequence=1,
            from_status=None,
            to_status=ReportStatus.PENDING,
            notes=None,
            actor=ActorType.REPORTER,
            changed_by=report.reporter_id,
            trigger="submitted",
        )
        self.db.add(entry)
        return entry

    def _apply(
        self,
        report: ReportDB,
        to_status: ReportStatus,
        actor_type: ActorType,
        changed_by: Optional[str],
        notes: Optional[str],
        trigger: str,
    ) -> ReportStatusHistoryDB:
        report_id = report.id
        from_status = report.status

        allowed, reason = self.can_transition(from_status, to_status, actor_type)
        if not allowed:
            logger.warning(f"Rejected transition on report {report_id}: {reason}")
            raise ConflictError(reason, current_status=from_status.value)

        now = utcnow()
        values = {
            "status": to_status,
            "version": ReportDB.version + 1,
            "updated_at": now,
        }
        if notes is not None:
            values["admin_notes"] = notes
        if to_status in TERMINAL_STATUSES:
            values["verified_by"] = changed_by
            values["verified_at"] = now

        # Compare-and-set: only succeeds if nobody moved the report since it was read
        result = self.db.execute(
            update(ReportDB)
            .where(ReportDB.id == report_id, ReportDB.status == from_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = self.db.query(ReportDB.status).filter(ReportDB.id == report_id).scalar()
            current_value = current.value if current is not None else None
            logger.warning(
                f"Lost status race on report {report_id}: expected {from_status.value}, found {current_value}"
            )
            raise ConflictError(
                f"Report status changed concurrently (now {current_value})",
                current_status=current_value,
            )

        last_sequence = self.db.query(func.max(ReportStatusHistoryDB.sequence)).filter(
            ReportStatusHistoryDB.report_id == report_id
        ).scalar() or 0

        entry = ReportStatusHistoryDB(
            id=str(uuid4()),
            report_id=report_id,
            sequence=last_sequence + 1,
            from_status=from_status,
            to_status=to_status,
            notes=notes,
            actor=actor_type,
            changed_by=changed_by,
            trigger=trigger,
        )
        self.db.add(entry)

        if to_status in TERMINAL_STATUSES:
            self.profiles.record_verdict(report.reporter_id, to_status)

        self.db.flush()
        self.db.expire(report)

        logger.info(
            f"Report {report_id}: {from_status.value} -> {to_status.value} "
            f"({actor_type.value}, {trigger})"
        )
        return entry
