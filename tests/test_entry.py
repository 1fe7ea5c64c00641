"""Tests for Entry lifecycle and index records."""

import pytest

from nestcache.entry import Entry
from nestcache.errors import CodecError, StorageError
from nestcache.policies import ExpirationPolicy, PersistencePolicy


class RecordingLoader:
    """Loader returning a fixed value and recording its calls."""

    def __init__(self, value=None, error=None):
        self.value = value
        self.error = error
        self.calls = []

    def __call__(self, filename, codec):
        self.calls.append((filename, codec))
        if self.error is not None:
            raise self.error
        return self.value


class TestEntryConstruction:
    """Test derived timestamps at construction."""

    def test_expiration_dates(self, clock):
        """Test both timestamps derive from the policies."""
        entry = Entry(
            "k", "v", ExpirationPolicy.SHORT, PersistencePolicy.SHORT, filename="f", clock=clock
        )
        assert entry.expires_at == clock.now + 60
        assert entry.persistence_expires_at == clock.now + 86400

    def test_disabled_has_no_persistence_date(self, clock):
        """Test persistence_expires_at is absent without persistence."""
        entry = Entry("k", "v", ExpirationPolicy.SHORT, clock=clock)
        assert entry.persistence_expires_at is None
        assert entry.filename is None
        assert entry.codec is None

    def test_mirror_matches_memory_ttl(self, clock):
        """Test MIRROR persistence expires together with the payload."""
        entry = Entry(
            "k", "v", ExpirationPolicy.MEDIUM, PersistencePolicy.MIRROR, filename="f", clock=clock
        )
        assert entry.persistence_expires_at == entry.expires_at

    def test_is_expired_boundary(self, clock):
        """Test expiry is inclusive of the expiration instant."""
        entry = Entry("k", "v", ExpirationPolicy.SHORT, clock=clock)
        assert entry.is_expired(clock.now + 59.9) is False
        assert entry.is_expired(clock.now + 60) is True


class TestEntryValue:
    """Test in-memory payload, invalidation and lazy reload."""

    def test_value_in_memory(self, clock):
        """Test value() returns the in-memory payload without loading."""
        loader = RecordingLoader("disk")
        entry = Entry("k", "mem", ExpirationPolicy.SHORT, loader=loader, clock=clock)
        assert entry.is_loaded
        assert entry.value() == "mem"
        assert loader.calls == []

    def test_invalidate_without_backing_file(self, clock):
        """Test an invalidated entry without backing file has no value."""
        entry = Entry("k", "mem", ExpirationPolicy.SHORT, clock=clock)
        entry.invalidate()
        assert entry.is_loaded is False
        assert entry.value() is None

    def test_invalidate_keeps_metadata(self, clock):
        """Test invalidate only drops the payload."""
        entry = Entry(
            "k", "v", ExpirationPolicy.SHORT, PersistencePolicy.LONG, filename="f",
            codec="json", clock=clock,
        )
        entry.invalidate()
        assert entry.filename == "f"
        assert entry.codec == "json"
        assert entry.persistence_policy is PersistencePolicy.LONG

    def test_reload_from_backing_file(self, clock):
        """Test reload caches the payload and resets both timestamps."""
        loader = RecordingLoader([1, 2, 3])
        entry = Entry(
            "k", [1, 2, 3], ExpirationPolicy.SHORT, PersistencePolicy.SHORT,
            filename="abc", codec="json", loader=loader, clock=clock,
        )
        entry.invalidate()
        clock.now += 61

        assert entry.value() == [1, 2, 3]
        assert loader.calls == [("abc", "json")]
        assert entry.is_loaded
        assert entry.expires_at == clock.now + 60
        assert entry.persistence_expires_at == clock.now + 86400

        # Cached: second access does not hit the loader
        assert entry.value() == [1, 2, 3]
        assert len(loader.calls) == 1

    def test_fetch_reports_reload(self, clock):
        """Test fetch() flags only the call that read the backing file."""
        loader = RecordingLoader("v")
        entry = Entry(
            "k", "v", ExpirationPolicy.SHORT, PersistencePolicy.SHORT,
            filename="abc", loader=loader, clock=clock,
        )
        assert entry.fetch() == ("v", False)

        entry.invalidate()
        assert entry.fetch() == ("v", True)
        assert entry.fetch() == ("v", False)
        assert len(loader.calls) == 1

    def test_fetch_failure_is_not_a_reload(self, clock):
        """Test a failed read reports no value and no reload."""
        loader = RecordingLoader(error=StorageError("gone"))
        entry = Entry(
            "k", "v", ExpirationPolicy.SHORT, PersistencePolicy.SHORT,
            filename="abc", loader=loader, clock=clock,
        )
        entry.invalidate()

        assert entry.fetch() == (None, False)

    @pytest.mark.parametrize("error", [StorageError("gone"), CodecError("garbled")])
    def test_reload_failure_returns_none(self, clock, error):
        """Test storage and codec failures surface as a missing value."""
        loader = RecordingLoader(error=error)
        entry = Entry(
            "k", "v", ExpirationPolicy.SHORT, PersistencePolicy.SHORT,
            filename="abc", loader=loader, clock=clock,
        )
        entry.invalidate()
        expires_at = entry.expires_at

        assert entry.value() is None
        assert entry.is_loaded is False
        assert entry.expires_at == expires_at


class TestEntryRecords:
    """Test index record encoding and decoding."""

    def test_to_record_fields(self, clock):
        """Test the record holds metadata only."""
        entry = Entry(
            "user-1", {"secret": "payload"}, ExpirationPolicy.custom(90),
            PersistencePolicy.MEDIUM, filename="f00", codec="json", clock=clock,
        )
        record = entry.to_record()

        assert record == {
            "key": "user-1",
            "expiration_policy": "custom:90.0",
            "persistence_policy": "medium",
            "filename": "f00",
            "codec": "json",
            "persistence_expires_at": clock.now + 259200,
        }
        assert "payload" not in str(record)

    def test_to_record_omits_infinite_persistence(self, clock):
        """Test a mirrored NEVER entry has no finite disk expiry to record."""
        entry = Entry(
            "k", "v", ExpirationPolicy.NEVER, PersistencePolicy.MIRROR, filename="f", clock=clock
        )
        assert "persistence_expires_at" not in entry.to_record()

    def test_from_record_restores_metadata(self, clock):
        """Test decoding yields an unloaded entry with stored timestamps."""
        record = {
            "key": "k",
            "expiration_policy": "long",
            "persistence_policy": "short",
            "filename": "abc",
            "codec": "json",
            "persistence_expires_at": clock.now + 100,
        }
        entry = Entry.from_record(record, generation=7, clock=clock)

        assert entry.key == "k"
        assert entry.expiration_policy == ExpirationPolicy.LONG
        assert entry.persistence_policy is PersistencePolicy.SHORT
        assert entry.filename == "abc"
        assert entry.codec == "json"
        assert entry.generation == 7
        assert entry.is_loaded is False
        assert entry.expires_at is None
        assert entry.persistence_expires_at == clock.now + 100

    def test_from_record_recomputes_missing_persistence_date(self, clock):
        """Test records without a disk expiry get a fresh window."""
        record = {"key": "k", "expiration_policy": "short", "persistence_policy": "long",
                  "filename": "abc"}
        entry = Entry.from_record(record, clock=clock)
        assert entry.persistence_expires_at == clock.now + 864000
        assert entry.codec == "joblib"

    @pytest.mark.parametrize(
        "record",
        [
            {"expiration_policy": "short", "persistence_policy": "short"},
            {"key": 5, "expiration_policy": "short", "persistence_policy": "short"},
            {"key": "k", "persistence_policy": "short"},
            {"key": "k", "expiration_policy": "bogus", "persistence_policy": "short"},
            {"key": "k", "expiration_policy": "short"},
            {"key": "k", "expiration_policy": "short", "persistence_policy": "custom:5"},
            "not a record",
            None,
        ],
    )
    def test_from_record_rejects_malformed(self, record, clock):
        """Test malformed records decode to None."""
        assert Entry.from_record(record, clock=clock) is None

    def test_record_round_trip(self, clock):
        """Test metadata survives to_record/from_record."""
        entry = Entry(
            "k", "v", ExpirationPolicy.custom(12.5), PersistencePolicy.SHORT,
            filename="abc", codec="joblib", clock=clock,
        )
        restored = Entry.from_record(entry.to_record(), clock=clock)

        assert restored.to_record() == entry.to_record()
