"""
Tests for the hiring store: schema bootstrap, the read-only reader and the
compare-and-set writer.
"""

import os
import sqlite3
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from db.hiring_reader import (
    fetch_active_offer,
    fetch_application,
    fetch_candidate_by_email,
    fetch_offers_for_application,
    get_connection,
)
from db.hiring_writer import HiringWriter, to_db_value
from db.schema import init_db, resolve_db_path
from models.errors import ErrorCode, ToolError
from models.records import StageHistoryEntry
from models.status import OfferStatus, Stage
from utils import ledger

NOW = datetime(2026, 2, 4, 9, 0, tzinfo=timezone.utc)


def _seed_application(db_path):
    with HiringWriter(db_path) as writer:
        candidate_id = writer.upsert_candidate("Asha Rao", "asha@example.com", NOW, phone="98450 12345")
        job_id = writer.insert_job("Backend Engineer", NOW, skills="python")
        application_id = writer.insert_application(
            {
                "candidate_id": candidate_id,
                "job_id": job_id,
                "stage": Stage.SHORTLISTING,
                "reference_number": "HF-20260204-TEST",
                "applied_at": NOW,
            },
            NOW,
        )
        writer.insert_history_entry(application_id, ledger.open_entry(Stage.SHORTLISTING, NOW, "system"))
        writer.commit()
    return application_id


class TestSchema:
    def test_init_db_creates_file_and_parents(self, tmp_path):
        path = init_db(str(tmp_path / "nested" / "dir" / "hireflow.db"))
        assert path.exists()

        conn = sqlite3.connect(str(path))
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        conn.close()
        assert {"applications", "stage_history", "offers", "negotiation_history", "activity_log"} <= tables

    def test_init_db_is_idempotent(self, db_path):
        init_db(db_path)
        init_db(db_path)

    def test_resolve_db_path_prefers_argument(self, tmp_path):
        with patch.dict(os.environ, {"HIREFLOW_DB": "/elsewhere/x.db"}):
            assert resolve_db_path(str(tmp_path / "a.db")) == tmp_path / "a.db"

    def test_resolve_db_path_from_env(self):
        with patch.dict(os.environ, {"HIREFLOW_DB": "/tmp/hireflow-env.db"}, clear=True):
            assert str(resolve_db_path()) == "/tmp/hireflow-env.db"

    def test_resolve_db_path_from_root(self):
        with patch.dict(os.environ, {"HIREFLOW_ROOT": "/srv/hireflow"}, clear=True):
            assert str(resolve_db_path()) == "/srv/hireflow/data/hireflow.db"


class TestReader:
    def test_missing_database(self, tmp_path):
        with pytest.raises(ToolError) as exc_info:
            with get_connection(str(tmp_path / "missing.db")):
                pass
        assert exc_info.value.code == ErrorCode.DB_NOT_FOUND
        assert str(tmp_path) not in exc_info.value.message

    def test_reader_is_read_only(self, db_path):
        with pytest.raises(ToolError) as exc_info:
            with get_connection(db_path) as conn:
                conn.execute("DELETE FROM applications")
        assert exc_info.value.code == ErrorCode.DB_ERROR

    def test_fetch_application_maps_ledger(self, db_path):
        application_id = _seed_application(db_path)
        with get_connection(db_path) as conn:
            application = fetch_application(conn, application_id)

        assert application.stage == Stage.SHORTLISTING
        assert application.version == 1
        assert len(application.stage_history) == 1
        assert application.stage_history[0].is_open
        assert application.applied_at == NOW

    def test_fetch_unknown_application(self, db_path):
        with get_connection(db_path) as conn:
            assert fetch_application(conn, 999) is None

    def test_candidate_lookup_is_case_insensitive(self, db_path):
        _seed_application(db_path)
        with get_connection(db_path) as conn:
            assert fetch_candidate_by_email(conn, "ASHA@example.com").name == "Asha Rao"


class TestCompareAndSet:
    def test_successful_update_bumps_version(self, db_path):
        application_id = _seed_application(db_path)
        with HiringWriter(db_path) as writer:
            new_version = writer.compare_and_set_application(
                application_id, 1, {"stage": Stage.SCREENING}, NOW, expected_stage=Stage.SHORTLISTING
            )
            writer.commit()

        assert new_version == 2
        with get_connection(db_path) as conn:
            application = fetch_application(conn, application_id)
        assert application.version == 2
        assert application.stage == Stage.SCREENING

    def test_stale_version_conflicts(self, db_path):
        application_id = _seed_application(db_path)
        with pytest.raises(ToolError) as exc_info:
            with HiringWriter(db_path) as writer:
                writer.compare_and_set_application(application_id, 5, {"stage": Stage.SCREENING}, NOW)
        assert exc_info.value.code == ErrorCode.CONFLICT
        assert exc_info.value.retryable is True

    def test_stage_mismatch_conflicts(self, db_path):
        application_id = _seed_application(db_path)
        with pytest.raises(ToolError) as exc_info:
            with HiringWriter(db_path) as writer:
                writer.compare_and_set_application(
                    application_id, 1, {"stage": Stage.SCREENING}, NOW, expected_stage=Stage.INTERVIEW
                )
        assert exc_info.value.code == ErrorCode.CONFLICT

    def test_uncommitted_changes_roll_back(self, db_path):
        application_id = _seed_application(db_path)
        with HiringWriter(db_path) as writer:
            writer.compare_and_set_application(application_id, 1, {"stage": Stage.SCREENING}, NOW)

        with get_connection(db_path) as conn:
            application = fetch_application(conn, application_id)
        assert application.stage == Stage.SHORTLISTING
        assert application.version == 1


class TestStorageInvariants:
    def test_second_open_ledger_entry_is_rejected(self, db_path):
        application_id = _seed_application(db_path)
        with pytest.raises(ToolError) as exc_info:
            with HiringWriter(db_path) as writer:
                writer.insert_history_entry(
                    application_id, ledger.open_entry(Stage.SCREENING, NOW, "system")
                )
        assert exc_info.value.code == ErrorCode.CONFLICT

    def test_close_then_open_is_accepted(self, db_path):
        application_id = _seed_application(db_path)
        with HiringWriter(db_path) as writer:
            entry = writer.load_application(application_id).stage_history[0]
            writer.close_history_entry(ledger.close_entry(entry, NOW))
            writer.insert_history_entry(application_id, ledger.open_entry(Stage.SCREENING, NOW, "system"))
            writer.commit()

        with get_connection(db_path) as conn:
            history = fetch_application(conn, application_id).stage_history
        assert [entry.is_open for entry in history] == [False, True]
        assert history[0].duration_days == 0

    def test_second_active_offer_is_rejected(self, db_path):
        application_id = _seed_application(db_path)
        with HiringWriter(db_path) as writer:
            writer.insert_offer(application_id, {"status": OfferStatus.DRAFT}, NOW)
            writer.commit()

        with pytest.raises(ToolError) as exc_info:
            with HiringWriter(db_path) as writer:
                writer.insert_offer(application_id, {"status": OfferStatus.SENT}, NOW)
        assert exc_info.value.code == ErrorCode.CONFLICT

    def test_terminal_offers_do_not_block_a_new_one(self, db_path):
        application_id = _seed_application(db_path)
        with HiringWriter(db_path) as writer:
            writer.insert_offer(application_id, {"status": OfferStatus.DECLINED}, NOW)
            writer.insert_offer(application_id, {"status": OfferStatus.DRAFT}, NOW)
            writer.commit()

        with get_connection(db_path) as conn:
            offers = fetch_offers_for_application(conn, application_id)
            active = fetch_active_offer(conn, application_id)
        assert [offer.status for offer in offers] == [OfferStatus.DRAFT, OfferStatus.DECLINED]
        assert active.status == OfferStatus.DRAFT

    def test_duplicate_application_is_rejected(self, db_path):
        _seed_application(db_path)
        with pytest.raises(ToolError) as exc_info:
            with HiringWriter(db_path) as writer:
                writer.insert_application(
                    {"candidate_id": 1, "job_id": 1, "applied_at": NOW, "reference_number": "HF-X"}, NOW
                )
        assert exc_info.value.code == ErrorCode.CONFLICT


class TestWriterHelpers:
    def test_to_db_value(self):
        assert to_db_value(NOW) == "2026-02-04T09:00:00.000Z"
        assert to_db_value(Stage.HIRED) == "hired"
        assert to_db_value(True) == 1
        assert to_db_value({"b": 1, "a": 2}) == '{"a": 2, "b": 1}'
        assert to_db_value("plain") == "plain"

    def test_upsert_candidate_keeps_existing_values(self, db_path):
        with HiringWriter(db_path) as writer:
            first = writer.upsert_candidate("Asha", "asha@example.com", NOW, phone="12345 67890")
            second = writer.upsert_candidate("Asha Rao", "Asha@Example.com", NOW)
            writer.commit()

        assert first == second
        with get_connection(db_path) as conn:
            candidate = fetch_candidate_by_email(conn, "asha@example.com")
        assert candidate.name == "Asha Rao"
        assert candidate.phone == "12345 67890"

    def test_upsert_without_refresh_leaves_existing_row(self, db_path):
        with HiringWriter(db_path) as writer:
            first = writer.upsert_candidate("Asha", "asha@example.com", NOW, phone="12345 67890")
            second = writer.upsert_candidate(
                "Someone", "asha@example.com", NOW, phone="99999 99999", refresh_existing=False
            )
            writer.commit()

        assert first == second
        with get_connection(db_path) as conn:
            candidate = fetch_candidate_by_email(conn, "asha@example.com")
        assert candidate.name == "Asha"
        assert candidate.phone == "12345 67890"

    def test_stage_age_update_needs_matching_version_and_stage(self, db_path):
        application_id = _seed_application(db_path)
        with HiringWriter(db_path) as writer:
            assert not writer.update_stage_age(application_id, 2, Stage.SHORTLISTING, 9, True)
            assert not writer.update_stage_age(application_id, 1, Stage.SCREENING, 9, True)
            assert writer.update_stage_age(application_id, 1, Stage.SHORTLISTING, 9, True)
            writer.commit()

        with get_connection(db_path) as conn:
            application = fetch_application(conn, application_id)
        assert application.days_in_stage == 9
        assert application.needs_attention is True
        assert application.version == 1

    def test_scoring_update_does_not_bump_version(self, db_path):
        application_id = _seed_application(db_path)
        with HiringWriter(db_path) as writer:
            writer.update_application_scoring(application_id, 81.0, "Strong", {"score": 81}, NOW)
            writer.commit()

        with get_connection(db_path) as conn:
            application = fetch_application(conn, application_id)
        assert application.version == 1
        assert application.ai_score == 81.0
        assert application.ai_analysis == {"score": 81}

    def test_history_entry_round_trip(self, db_path):
        application_id = _seed_application(db_path)
        with get_connection(db_path) as conn:
            entry = fetch_application(conn, application_id).stage_history[0]
        assert isinstance(entry, StageHistoryEntry)
        assert entry.moved_by == "system"
        assert entry.action == "stage_change"
