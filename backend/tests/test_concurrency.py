"""
Two administrators acting on the same report at once: exactly one
transition wins and the loser sees the status it lost to.
"""
import threading

import pytest

from mbg_watch.errors import ConflictError
from mbg_watch.models.db_models import ReportDB, ReportStatus, ReportStatusHistoryDB
from mbg_watch.services.review import ReportStateMachine

from conftest import make_draft


@pytest.fixture
def analyzing_report_id(service, admin, reporter):
    report_id = service.submit(make_draft(), reporter)["id"]
    service.update_status(report_id, "analyzing", None, admin)
    return report_id


def history_count(session, report_id):
    return session.query(ReportStatusHistoryDB).filter(
        ReportStatusHistoryDB.report_id == report_id
    ).count()


class TestConcurrentTransitions:

    def test_stale_session_loses_the_race(self, session_factory, analyzing_report_id, admin):
        first = session_factory()
        second = session_factory()
        try:
            report_a = first.get(ReportDB, analyzing_report_id)
            report_b = second.get(ReportDB, analyzing_report_id)
            assert report_a.status == report_b.status == ReportStatus.ANALYZING

            ReportStateMachine(first).transition(report_a, ReportStatus.IN_PROGRESS, admin)
            first.commit()

            # The second session still believes the report is analyzing
            with pytest.raises(ConflictError) as exc_info:
                ReportStateMachine(second).transition(report_b, ReportStatus.INVALID, admin)
            second.rollback()

            assert exc_info.value.current_status == "in_progress"
        finally:
            first.close()
            second.close()

        check = session_factory()
        try:
            report = check.get(ReportDB, analyzing_report_id)
            assert report.status == ReportStatus.IN_PROGRESS
            assert report.version == 3
            assert history_count(check, analyzing_report_id) == 3
        finally:
            check.close()

    def test_same_target_twice_appends_one_entry(self, session_factory, analyzing_report_id, admin):
        first = session_factory()
        second = session_factory()
        try:
            report_a = first.get(ReportDB, analyzing_report_id)
            report_b = second.get(ReportDB, analyzing_report_id)

            ReportStateMachine(first).transition(report_a, ReportStatus.NEEDS_EVIDENCE, admin)
            first.commit()

            with pytest.raises(ConflictError) as exc_info:
                ReportStateMachine(second).transition(report_b, ReportStatus.NEEDS_EVIDENCE, admin)
            second.rollback()
            assert exc_info.value.current_status == "needs_evidence"

            assert history_count(first, analyzing_report_id) == 3
        finally:
            first.close()
            second.close()

    def test_two_threads_racing_one_wins(self, session_factory, analyzing_report_id, admin):
        barrier = threading.Barrier(2)
        outcomes = []

        def worker():
            session = session_factory()
            try:
                report = session.get(ReportDB, analyzing_report_id)
                barrier.wait(timeout=5)
                try:
                    ReportStateMachine(session).transition(report, ReportStatus.IN_PROGRESS, admin)
                    session.commit()
                    outcomes.append("ok")
                except ConflictError as e:
                    session.rollback()
                    outcomes.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=15)

        assert len(outcomes) == 2
        winners = [o for o in outcomes if o == "ok"]
        losers = [o for o in outcomes if isinstance(o, ConflictError)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert losers[0].current_status == "in_progress"

        check = session_factory()
        try:
            report = check.get(ReportDB, analyzing_report_id)
            assert report.status == ReportStatus.IN_PROGRESS
            assert report.version == 3
            assert history_count(check, analyzing_report_id) == 3
        finally:
            check.close()
