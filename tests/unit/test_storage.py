"""Unit tests for the JSONL audit store."""

import json
import threading

import pytest

from models.data_models import AuditEvent, AuditEventType, AuditStatus
from models.errors import IngestionFailure, QueryFailure
from services.storage import AuditStore


def event(event_type=AuditEventType.DATA_ACCESS, user_id="u1", **kwargs) -> AuditEvent:
    return AuditEvent(event_type=event_type, status=AuditStatus.SUCCESS, user_id=user_id, **kwargs)


@pytest.mark.unit
class TestAppend:

    def test_append_stamps_timestamp_and_writes_one_line(self, store, clock, audit_path):
        stamped = store.append(event(user_email="a@example.com", details={"k": "v"}))

        assert stamped.timestamp == clock.current
        with open(audit_path, encoding="utf-8") as f:
            lines = f.read().splitlines()
        assert len(lines) == 1
        raw = json.loads(lines[0])
        assert raw["event_type"] == "DATA_ACCESS"
        assert raw["status"] == "SUCCESS"
        assert raw["user_email"] == "a@example.com"
        assert raw["details"] == {"k": "v"}
        assert raw["timestamp"].endswith("Z")

    def test_append_does_not_mutate_input(self, store):
        original = event()
        store.append(original)
        assert original.timestamp is None

    def test_unwritable_location_raises_ingestion_failure(self, tmp_path, clock):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        store = AuditStore(str(blocker / "audit.jsonl"), clock=clock)

        with pytest.raises(IngestionFailure):
            store.append(event())


@pytest.mark.unit
class TestQueries:

    def test_query_all_is_newest_first(self, store, clock):
        for name in ("t1", "t2", "t3"):
            store.append(event(action=name))
            clock.advance(seconds=1)

        assert [e.action for e in store.query_all(10)] == ["t3", "t2", "t1"]

    def test_equal_timestamps_return_latest_append_first(self, store):
        for name in ("a", "b", "c"):
            store.append(event(action=name))

        assert [e.action for e in store.query_all(10)] == ["c", "b", "a"]

    def test_limit_truncates(self, store, clock):
        for i in range(5):
            store.append(event(action=str(i)))
            clock.advance(minutes=1)

        assert [e.action for e in store.query_all(2)] == ["4", "3"]

    def test_query_by_user(self, store, clock):
        store.append(event(user_id="alice", action="1"))
        clock.advance(seconds=1)
        store.append(event(user_id="bob", action="2"))
        clock.advance(seconds=1)
        store.append(event(user_id="alice", action="3"))

        assert [e.action for e in store.query_by_user("alice")] == ["3", "1"]
        assert store.query_by_user("nobody") == []

    def test_query_by_type_accepts_enum_or_string(self, store):
        store.append(event(AuditEventType.USER_LOGIN_SUCCESS))
        store.append(event(AuditEventType.USER_LOGOUT))

        assert len(store.query_by_type(AuditEventType.USER_LOGIN_SUCCESS)) == 1
        assert len(store.query_by_type("USER_LOGOUT")) == 1
        assert store.query_by_type(AuditEventType.BACKUP_RESTORED) == []

    def test_missing_file_yields_empty_results(self, store):
        assert store.query_all() == []
        assert store.count() == 0

    def test_corrupt_and_partial_lines_are_skipped(self, store, audit_path):
        store.append(event(action="good"))
        with open(audit_path, "a", encoding="utf-8") as f:
            f.write("{not json\n")
            f.write(json.dumps({"event_type": "USER_LOGOUT"}) + "\n")
            f.write("[1, 2]\n")

        assert [e.action for e in store.query_all()] == ["good"]

    def test_torn_multibyte_tail_is_skipped(self, store, audit_path):
        store.append(event(action="good", details={"note": "caf\u00e9"}))
        torn = json.dumps({"timestamp": "2026-03-14T15:30:00Z", "event_type": "USER_LOGOUT", "action": "caf\u00e9"}, ensure_ascii=False)
        with open(audit_path, "ab") as f:
            f.write(torn.encode("utf-8")[:-3])  # cuts the two-byte character in half

        assert [e.action for e in store.query_all()] == ["good"]
        assert store.count() == 1

    def test_append_after_torn_tail_starts_new_line(self, store, audit_path, clock):
        store.append(event(action="first"))
        with open(audit_path, "ab") as f:
            f.write(b'{"timestamp": "2026-03-14T15:30:00Z", "action": "caf\xc3')
        clock.advance(seconds=1)
        store.append(event(action="second"))

        assert [e.action for e in store.query_all()] == ["second", "first"]

    def test_out_of_range_timestamp_is_skipped(self, store, audit_path):
        store.append(event(action="good"))
        with open(audit_path, "a", encoding="utf-8") as f:
            f.write(json.dumps({"timestamp": "0001-01-01T00:00:00+05:00", "event_type": "USER_LOGOUT"}) + "\n")

        assert [e.action for e in store.query_all()] == ["good"]

    def test_unknown_event_types_survive_reads(self, store, audit_path):
        store.append(event())
        with open(audit_path, "a", encoding="utf-8") as f:
            f.write(
                json.dumps(
                    {
                        "timestamp": "2030-01-01T00:00:00Z",
                        "event_type": "API_KEY_ROTATED",
                        "status": "SUCCESS",
                    }
                )
                + "\n"
            )

        events = store.query_all()
        assert events[0].event_type == "API_KEY_ROTATED"
        assert len(store.query_by_type("API_KEY_ROTATED")) == 1

    def test_unreadable_log_raises_query_failure(self, tmp_path):
        store = AuditStore(str(tmp_path))  # a directory, not a file

        with pytest.raises(QueryFailure):
            store.query_all()


@pytest.mark.unit
class TestConcurrentAppend:

    def test_parallel_writers_produce_whole_distinct_lines(self, store, audit_path):
        writers, per_writer = 8, 63
        start = threading.Barrier(writers)

        def write(worker: int):
            start.wait()
            for i in range(per_writer):
                store.append(event(action=f"{worker}-{i}", details={"who": "\u00e9crivain"}))

        threads = [threading.Thread(target=write, args=(w,)) for w in range(writers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        with open(audit_path, encoding="utf-8") as f:
            lines = f.read().splitlines()
        actions = [json.loads(line)["action"] for line in lines]

        assert len(lines) == writers * per_writer
        assert store.count() == writers * per_writer
        assert len(set(actions)) == len(actions)


@pytest.mark.unit
class TestPaging:

    def test_page_returns_slice_and_total(self, store, clock):
        for i in range(7):
            store.append(event(action=str(i)))
            clock.advance(seconds=1)

        first, total = store.page(1, 3)
        last, _ = store.page(3, 3)

        assert total == 7
        assert [e.action for e in first] == ["6", "5", "4"]
        assert [e.action for e in last] == ["0"]
        assert AuditStore.total_pages(total, 3) == 3

    def test_stat_reports_file(self, store):
        exists, _, size = store.stat()
        assert (exists, size) == (False, 0)

        store.append(event())

        exists, path, size = store.stat()
        assert exists is True
        assert path.endswith("audit.jsonl")
        assert size > 0
