"""
Tests for narrative similarity and the duplicate / corroboration detector.
The candidate store is a MagicMock unless a test needs the real SQL store.
"""
import time
from datetime import datetime, timedelta
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from mbg_watch.models.db_models import ReportCategory, ReporterRelation, ReportStatus
from mbg_watch.models.scoring import ReportSnapshot
from mbg_watch.services.credibility.duplicate_detector import (
    CandidateReport, CandidateStoreUnavailable, DetectorConfig, DuplicateDetector, SqlCandidateStore,
)
from mbg_watch.services.credibility.similarity import narrative_similarity

from conftest import LONG_NARRATIVE, NOW

INCIDENT = datetime(2025, 3, 11, 0, 30)

OTHER_NARRATIVE = (
    "Dapur penyedia di Kemayoran tidak memiliki sertifikat laik higiene dan "
    "pekerjanya tidak memakai sarung tangan saat memasak."
)


def snapshot(**overrides) -> ReportSnapshot:
    fields = dict(
        category=ReportCategory.POISONING,
        relation=ReporterRelation.PARENT,
        description=LONG_NARRATIVE,
        incident_date=INCIDENT,
        submitted_at=NOW,
        province_id="31",
        city_id="31.71",
        district_id="31.71.01",
        reporter_id="reporter-a",
        report_id="report-new",
    )
    fields.update(overrides)
    return ReportSnapshot(**fields)


def candidate(**overrides) -> CandidateReport:
    fields = dict(
        id="report-old",
        reporter_id="reporter-b",
        description=LONG_NARRATIVE,
        city_id="31.71",
        district_id="31.71.01",
        status=ReportStatus.PENDING,
        incident_date=INCIDENT - timedelta(days=1),
        submitted_at=NOW - timedelta(hours=5),
    )
    fields.update(overrides)
    return CandidateReport(**fields)


def detector_with(*candidates, config=None):
    store = MagicMock()
    store.find_candidates.return_value = list(candidates)
    return DuplicateDetector(store, config), store


class TestNarrativeSimilarity:

    def test_identical_text(self):
        assert narrative_similarity(LONG_NARRATIVE, LONG_NARRATIVE) == 1.0

    def test_unrelated_text(self):
        assert narrative_similarity(LONG_NARRATIVE, OTHER_NARRATIVE) < 0.3

    def test_symmetric(self):
        a = LONG_NARRATIVE
        b = LONG_NARRATIVE.replace("dua puluh", "tiga puluh") + " Orang tua sudah diberi tahu."
        assert narrative_similarity(a, b) == narrative_similarity(b, a)

    def test_bounded(self):
        assert narrative_similarity("", LONG_NARRATIVE) == 0.0
        assert 0.0 <= narrative_similarity(LONG_NARRATIVE, OTHER_NARRATIVE) <= 1.0


class TestDetection:

    def test_no_candidates(self):
        detector, _ = detector_with()
        result = detector.detect(snapshot())
        assert result.corroborator_count == 0
        assert result.location_has_history is False
        assert result.degraded is False

    def test_query_uses_category_city_and_window(self):
        detector, store = detector_with()
        detector.detect(snapshot())
        query = store.find_candidates.call_args[0][0]
        assert query.category == ReportCategory.POISONING
        assert query.city_id == "31.71"
        assert query.incident_from == INCIDENT - timedelta(days=3)
        assert query.incident_to == INCIDENT + timedelta(days=3)
        assert query.exclude_id == "report-new"

    def test_different_reporter_similar_narrative_corroborates(self):
        detector, _ = detector_with(candidate())
        result = detector.detect(snapshot())
        assert result.corroborator_count == 1
        assert result.corroborating_ids == ["report-old"]
        assert result.duplicate_of_id is None

    def test_same_reporter_near_identical_is_duplicate_not_corroboration(self):
        detector, _ = detector_with(candidate(reporter_id="reporter-a"))
        result = detector.detect(snapshot())
        assert result.duplicate_of_id == "report-old"
        assert result.corroborator_count == 0
        assert result.location_has_history is False

    def test_duplicate_gets_no_corroboration_from_others(self):
        detector, _ = detector_with(
            candidate(id="original", reporter_id="reporter-a"),
            candidate(id="other", reporter_id="reporter-b"),
        )
        result = detector.detect(snapshot())
        assert result.duplicate_of_id == "original"
        assert result.corroborator_count == 0
        assert result.corroborating_ids == []
        assert result.location_has_history is True

    def test_later_same_reporter_report_is_not_the_original(self):
        later = candidate(reporter_id="reporter-a", submitted_at=NOW + timedelta(hours=1))
        detector, _ = detector_with(later)
        assert detector.detect(snapshot()).duplicate_of_id is None

    def test_unrelated_narrative_counts_as_location_history(self):
        detector, _ = detector_with(candidate(description=OTHER_NARRATIVE))
        result = detector.detect(snapshot())
        assert result.corroborator_count == 0
        assert result.location_has_history is True

    def test_reporters_counted_once(self):
        detector, _ = detector_with(
            candidate(id="r1", reporter_id="reporter-b"),
            candidate(id="r2", reporter_id="reporter-b"),
            candidate(id="r3", reporter_id="reporter-c"),
        )
        result = detector.detect(snapshot())
        assert result.corroborator_count == 2

    def test_invalid_reports_are_ignored(self):
        detector, _ = detector_with(candidate(status=ReportStatus.INVALID))
        result = detector.detect(snapshot())
        assert result.corroborator_count == 0
        assert result.location_has_history is False

    def test_different_district_is_ignored(self):
        detector, _ = detector_with(candidate(district_id="31.71.03"))
        assert detector.detect(snapshot()).corroborator_count == 0

    def test_missing_district_matches_on_city(self):
        detector, _ = detector_with(candidate(district_id=None))
        assert detector.detect(snapshot()).corroborator_count == 1

    def test_outside_date_window_is_ignored(self):
        detector, _ = detector_with(candidate(incident_date=INCIDENT - timedelta(days=10)))
        assert detector.detect(snapshot()).location_has_history is False

    def test_corroboration_is_symmetric(self):
        a = snapshot(report_id="a", reporter_id="reporter-a", submitted_at=NOW - timedelta(hours=2))
        b = snapshot(report_id="b", reporter_id="reporter-b", submitted_at=NOW)

        def as_candidate(s):
            return candidate(
                id=s.report_id, reporter_id=s.reporter_id, description=s.description,
                incident_date=s.incident_date, submitted_at=s.submitted_at,
            )

        detector_a, _ = detector_with(as_candidate(b))
        detector_b, _ = detector_with(as_candidate(a))
        assert detector_a.detect(a).corroborating_ids == ["b"]
        assert detector_b.detect(b).corroborating_ids == ["a"]


class TestDegradation:

    def test_store_error_degrades(self):
        store = MagicMock()
        store.find_candidates.side_effect = CandidateStoreUnavailable("connection refused")
        result = DuplicateDetector(store).detect(snapshot())
        assert result.degraded is True
        assert "connection refused" in result.degraded_reason

    def test_timeout_degrades(self):
        store = MagicMock()
        store.find_candidates.side_effect = lambda query: time.sleep(0.5) or []
        detector = DuplicateDetector(store, DetectorConfig(timeout_seconds=0.05))
        result = detector.detect(snapshot())
        assert result.degraded is True
        assert "exceeded" in result.degraded_reason

    def test_sql_store_wraps_database_errors(self):
        session = MagicMock()
        session.query.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))
        store = SqlCandidateStore(lambda: session)
        result = DuplicateDetector(store).detect(snapshot())
        assert result.degraded is True
        session.close.assert_called_once()
