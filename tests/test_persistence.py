from __future__ import annotations

import pytest

from tableside.persistence import STATUS_FAILED, STATUS_SENDING, STATUS_SENT, SubmissionJournal

PAYLOAD = {"tableId": "table-7", "items": [{"menuItemId": "menu-soup", "quantity": 2}]}


def _journal(tmp_path) -> SubmissionJournal:
    journal = SubmissionJournal(tmp_path / "nested" / "journal.db")
    journal.bootstrap_schema()
    return journal


def test_record_and_read_back(tmp_path) -> None:
    journal = _journal(tmp_path)

    record = journal.record_submission("table-7", None, PAYLOAD)
    stored = journal.get(record.submission_id)

    assert stored == record
    assert stored.status == STATUS_SENDING
    assert stored.payload == PAYLOAD


def test_status_updates(tmp_path) -> None:
    journal = _journal(tmp_path)
    record = journal.record_submission("table-7", "order-1", PAYLOAD)

    journal.mark_failed(record.submission_id, "Request timed out. Please try again.")
    failed = journal.get(record.submission_id)
    assert failed.status == STATUS_FAILED
    assert failed.error == "Request timed out. Please try again."

    journal.mark_retry(record.submission_id)
    journal.mark_sent(record.submission_id, "order-1")
    sent = journal.get(record.submission_id)
    assert sent.status == STATUS_SENT
    assert sent.error is None
    assert sent.attempts == 2
    assert sent.server_order_id == "order-1"


def test_list_for_table_filters(tmp_path) -> None:
    journal = _journal(tmp_path)
    journal.record_submission("table-7", None, PAYLOAD)
    journal.record_submission("table-8", None, PAYLOAD)
    journal.record_submission("table-7", None, PAYLOAD)

    assert len(journal.list_for_table("table-7")) == 2
    assert journal.get("missing") is None


def test_empty_submission_is_refused(tmp_path) -> None:
    journal = _journal(tmp_path)
    with pytest.raises(ValueError):
        journal.record_submission("table-7", None, {"items": []})
