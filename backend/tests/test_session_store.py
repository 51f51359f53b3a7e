import json

import pytest

from speaking_coach.errors import DuplicateSession
from speaking_coach.schemas import SessionUpdate, TranscriptEntry
from speaking_coach.session_store import STORAGE_KEY, SessionStore, migrate_snapshot

from conftest import make_session


def _entry(text, speaker="user", part="part1"):
	return TranscriptEntry(speaker=speaker, text=text, part=part)


class TestAddAndDelete:
	def test_add_persists_snapshot(self, store, kv):
		store.add_session(make_session("abc"))
		snapshot = json.loads(kv.load(STORAGE_KEY))
		assert list(snapshot["sessions"]) == ["abc"]
		assert snapshot["sessions"]["abc"]["cefrLevel"] == "B1"
		assert snapshot["sessions"]["abc"]["transcript"] == []

	def test_duplicate_id_rejected(self, store):
		store.add_session(make_session("abc"))
		with pytest.raises(DuplicateSession):
			store.add_session(make_session("abc"))

	def test_delete_then_operations_are_noops(self, store):
		store.add_session(make_session("abc"))
		store.delete_session("abc")
		store.update_session("abc", SessionUpdate(feedback="x"))
		store.add_transcript_entry("abc", _entry("Hello"))
		store.ensure_transcript("abc")
		store.delete_session("abc")
		assert store.get_session("abc") is None
		assert "abc" not in store

	def test_returned_sessions_are_copies(self, store):
		store.add_session(make_session("abc"))
		copy = store.get_session("abc")
		copy.transcript.append(_entry("sneaky"))
		assert store.get_session("abc").transcript == []

	def test_list_is_newest_first(self, store):
		store.add_session(make_session("old", createdAt="2024-01-01T00:00:00+00:00"))
		store.add_session(make_session("new", createdAt="2024-06-01T00:00:00+00:00"))
		assert [s.id for s in store.list_sessions()] == ["new", "old"]


class TestTranscript:
	def test_entries_keep_call_order(self, store):
		store.add_session(make_session("abc"))
		texts = ["one", "two", "three", "four"]
		for t in texts:
			store.add_transcript_entry("abc", _entry(t))
		transcript = store.get_session("abc").transcript
		assert [e.text for e in transcript] == texts
		assert len(transcript) == len(texts)

	def test_append_creates_missing_transcript(self, store):
		store.add_session(make_session("abc", transcript=None))
		store.add_transcript_entry("abc", _entry("Hello"))
		assert [e.text for e in store.get_session("abc").transcript] == ["Hello"]

	def test_ensure_transcript_is_idempotent(self, store):
		store.add_session(make_session("abc", transcript=None))
		store.ensure_transcript("abc")
		once = store.get_session("abc")
		store.ensure_transcript("abc")
		assert store.get_session("abc") == once
		assert once.transcript == []

	def test_ensure_transcript_keeps_existing_entries(self, store):
		store.add_session(make_session("abc"))
		store.add_transcript_entry("abc", _entry("Hello"))
		store.ensure_transcript("abc")
		assert len(store.get_session("abc").transcript) == 1


class TestUpdate:
	def test_partial_update_preserves_transcript(self, store):
		store.add_session(make_session("abc"))
		store.add_transcript_entry("abc", _entry("Hello"))
		before = store.get_session("abc").transcript
		store.update_session("abc", SessionUpdate(feedback="x"))
		after = store.get_session("abc")
		assert after.transcript == before
		assert after.feedback == "x"

	def test_unknown_id_is_noop(self, store, kv):
		store.update_session("missing", SessionUpdate(feedback="x"))
		assert kv.load(STORAGE_KEY) is None

	def test_feedback_is_write_once(self, store):
		store.add_session(make_session("abc"))
		store.update_session("abc", SessionUpdate(feedback="first", ielts_band="Band 6"))
		store.update_session("abc", SessionUpdate(feedback="second", ielts_band="Band 9"))
		session = store.get_session("abc")
		assert session.feedback == "first"
		assert session.ielts_band == "Band 6"

	def test_part_never_regresses_or_skips(self, store):
		store.add_session(make_session("abc"))
		store.update_session("abc", SessionUpdate(current_part="part3"))
		assert store.get_session("abc").current_part == "part1"
		store.update_session("abc", SessionUpdate(current_part="part2"))
		store.update_session("abc", SessionUpdate(current_part="part1"))
		assert store.get_session("abc").current_part == "part2"

	def test_explicit_null_does_not_clear(self, store):
		store.add_session(make_session("abc"))
		store.add_transcript_entry("abc", _entry("Hello"))
		store.update_session("abc", SessionUpdate.model_validate({"transcript": None, "part2Topic": "Cats"}))
		session = store.get_session("abc")
		assert len(session.transcript) == 1
		assert session.part2_topic == "Cats"

	def test_transcript_only_grows(self, store):
		store.add_session(make_session("abc"))
		store.add_transcript_entry("abc", _entry("Hello"))
		store.add_transcript_entry("abc", _entry("Hi there", speaker="ai"))
		store.update_session("abc", SessionUpdate(transcript=[]))
		store.update_session("abc", SessionUpdate(transcript=[_entry("Edited"), _entry("Hi there", speaker="ai")]))
		assert [e.text for e in store.get_session("abc").transcript] == ["Hello", "Hi there"]
		extended = store.get_session("abc").transcript + [_entry("More")]
		store.update_session("abc", SessionUpdate(transcript=extended))
		assert [e.text for e in store.get_session("abc").transcript] == ["Hello", "Hi there", "More"]

	def test_immutable_fields_are_not_accepted(self):
		with pytest.raises(ValueError):
			SessionUpdate.model_validate({"topic": "Other"})


class TestHydration:
	def test_round_trip(self, kv):
		first = SessionStore(kv)
		first.hydrate()
		first.add_session(make_session("abc"))
		first.add_transcript_entry("abc", _entry("Hello"))
		second = SessionStore(kv)
		second.hydrate()
		assert second.get_session("abc") == first.get_session("abc")

	def test_migration_backfills_transcript(self):
		legacy = {
			"sessions": {
				"abc": {
					"id": "abc",
					"language": "German",
					"cefrLevel": "A2",
					"name": "Old",
					"topic": "Food",
					"createdAt": "2023-11-02T08:00:00.000Z",
				}
			}
		}
		migrated = migrate_snapshot(legacy)
		record = migrated["sessions"]["abc"]
		assert record["transcript"] == []
		assert {k: v for k, v in record.items() if k != "transcript"} == legacy["sessions"]["abc"]
		assert "transcript" not in legacy["sessions"]["abc"]

	def test_persist_envelope_is_unwrapped(self, kv):
		envelope = {
			"state": {"sessions": {"abc": make_session("abc").to_record()}},
			"version": 0,
		}
		kv.save(STORAGE_KEY, json.dumps(envelope))
		store = SessionStore(kv)
		store.hydrate()
		assert store.get_session("abc").name == "Test"

	def test_legacy_record_without_transcript_loads(self, kv):
		record = make_session("abc").to_record()
		del record["transcript"]
		record["legacyFlag"] = True
		kv.save(STORAGE_KEY, json.dumps({"sessions": {"abc": record}}))
		store = SessionStore(kv)
		store.hydrate()
		session = store.get_session("abc")
		assert session.transcript == []
		assert session.to_record()["legacyFlag"] is True

	def test_corrupt_snapshot_means_empty_store(self, kv, caplog):
		kv.save(STORAGE_KEY, "{not json")
		store = SessionStore(kv)
		store.hydrate()
		assert store.list_sessions() == []
		assert "Discarding unreadable" in caplog.text

	def test_offset_less_timestamps_are_utc(self, kv):
		aware = make_session("aware", createdAt="2024-05-01T10:00:00Z").to_record()
		naive = make_session("naive").to_record()
		naive["createdAt"] = "2024-05-01T11:00:00"
		naive["part2StartedAt"] = "2024-05-01T11:30:00"
		kv.save(STORAGE_KEY, json.dumps({"sessions": {"aware": aware, "naive": naive}}))
		store = SessionStore(kv)
		store.hydrate()
		assert [s.id for s in store.list_sessions()] == ["naive", "aware"]
		session = store.get_session("naive")
		assert session.created_at.tzinfo is not None
		assert session.part2_started_at.utcoffset().total_seconds() == 0

	def test_invalid_record_is_skipped(self, kv):
		good = make_session("good").to_record()
		kv.save(STORAGE_KEY, json.dumps({"sessions": {"good": good, "bad": {"id": "bad"}}}))
		store = SessionStore(kv)
		store.hydrate()
		assert [s.id for s in store.list_sessions()] == ["good"]
