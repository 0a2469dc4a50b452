"""Tests for current/stored listing reconciliation."""

import threading

import pytest

from crawler.csv_store import (
    LISTING_SCHEMA,
    AppendResult,
    FilePairLock,
    ThreadSafeCsvAppender,
    read_records,
    write_records,
)
from crawler.exceptions import ReconciliationError
from crawler.models import ListingRecord
from crawler.reconciler import CsvReconciler, reconcile


def rec(key: str) -> ListingRecord:
    return ListingRecord(name=key.upper(), location="Geneva", profile_url=f"https://example.test/{key}")


def keys(path):
    return {r.profile_url.rsplit("/", 1)[1] for r in read_records(path, LISTING_SCHEMA)}


@pytest.fixture
def paths(tmp_path):
    return tmp_path / "list.csv", tmp_path / "list-stored.csv"


def write(path, *names):
    write_records(path, [rec(n) for n in names], LISTING_SCHEMA)


def test_partitions_and_rewrites_both_files(paths):
    current, stored = paths
    write(current, "a", "b")
    write(stored, "b", "c")

    report = reconcile(current, stored)

    assert report.new_records == 1
    assert report.duplicates_removed == 1
    assert report.obsolete_records == 1
    assert report.total_stored == 2
    assert report.total_current == 1
    assert keys(stored) == {"a", "b"}
    assert keys(current) == {"a"}


def test_stored_order_keeps_existing_records_first(paths):
    current, stored = paths
    write(current, "d", "b", "a")
    write(stored, "a", "b", "c")

    reconcile(current, stored)

    assert [r.profile_url[-1] for r in read_records(stored, LISTING_SCHEMA)] == ["a", "b", "d"]


def test_second_run_without_new_crawl_is_a_no_op(paths):
    current, stored = paths
    write(current, "a", "b")
    write(stored, "b", "c")
    reconcile(current, stored)
    before = (current.read_bytes(), stored.read_bytes())

    report = reconcile(current, stored)

    assert report.new_records == 0
    assert report.obsolete_records == 0
    assert report.duplicates_removed == 0
    assert report.total_stored == 2
    assert report.total_current == 1
    assert (current.read_bytes(), stored.read_bytes()) == before


def test_force_reruns_the_full_reconciliation(paths):
    current, stored = paths
    write(current, "a", "b")
    write(stored, "b", "c")
    reconcile(current, stored)

    report = CsvReconciler().reconcile(current, stored, force=True)

    # Current now only holds the delta, so the full algorithm prunes "b"
    assert report.duplicates_removed == 1
    assert report.obsolete_records == 1
    assert keys(stored) == {"a"}


def test_first_crawl_then_shrinking_second_crawl(paths):
    current, stored = paths
    appender = ThreadSafeCsvAppender(current, LISTING_SCHEMA)

    appender.clear()
    appender.append_many([rec("u1"), rec("u2"), rec("u3")])
    first = reconcile(current, stored)

    assert (first.new_records, first.duplicates_removed, first.obsolete_records) == (3, 0, 0)
    assert len(read_records(stored, LISTING_SCHEMA)) == 3
    assert len(read_records(current, LISTING_SCHEMA)) == 3

    appender.clear()
    appender.append_many([rec("u1"), rec("u2")])
    second = reconcile(current, stored)

    assert (second.new_records, second.duplicates_removed, second.obsolete_records) == (0, 2, 1)
    assert keys(stored) == {"u1", "u2"}
    assert read_records(current, LISTING_SCHEMA) == []


def test_append_after_reconcile_is_picked_up(paths):
    current, stored = paths
    write(current, "a")
    reconcile(current, stored)

    ThreadSafeCsvAppender(current, LISTING_SCHEMA).append(rec("d"))
    report = reconcile(current, stored)

    assert report.new_records == 1
    assert "d" in keys(stored)


def test_missing_stored_file_is_created(paths):
    current, stored = paths
    write(current, "a")

    reconcile(current, stored)

    assert stored.exists()
    assert keys(stored) == {"a"}


def test_missing_current_file_is_fatal_and_leaves_stored_alone(paths):
    current, stored = paths
    write(stored, "a", "b")
    before = stored.read_bytes()

    with pytest.raises(ReconciliationError):
        reconcile(current, stored)

    assert stored.read_bytes() == before


def test_repeated_keys_in_current_count_once(paths):
    current, stored = paths
    current.write_text(
        'Name,Location,Profile URL\n'
        '"A","Geneva","https://example.test/a"\n'
        '"A2","Bern","https://example.test/a"\n',
        encoding="utf-8"
    )

    report = reconcile(current, stored)

    assert report.new_records == 1
    assert [r.name for r in read_records(stored, LISTING_SCHEMA)] == ["A2"]


def test_undecodable_current_file_is_a_reconciliation_error(paths):
    current, stored = paths
    current.write_bytes(b'Name,Location,Profile URL\n"Z\xfcri","Bern","https://example.test/a"\n')
    write(stored, "b")
    before = stored.read_bytes()

    with pytest.raises(ReconciliationError):
        reconcile(current, stored)

    assert stored.read_bytes() == before


class TestConcurrency:

    def test_append_waits_while_pair_is_locked(self, paths):
        current, stored = paths
        appender = ThreadSafeCsvAppender(current, LISTING_SCHEMA)
        held, release, appended = threading.Event(), threading.Event(), threading.Event()
        results = []

        def hold_pair():
            with FilePairLock(current, stored):
                held.set()
                release.wait(5)

        def append():
            results.append(appender.append(rec("a")))
            appended.set()

        holder = threading.Thread(target=hold_pair)
        holder.start()
        assert held.wait(5)

        writer = threading.Thread(target=append)
        writer.start()
        assert not appended.wait(0.2)
        assert not current.exists()

        release.set()
        assert appended.wait(5)
        holder.join()
        writer.join()
        assert results == [AppendResult.WRITTEN]

    def test_appends_racing_reconciliation_stay_consistent(self, paths):
        current, stored = paths
        appender = ThreadSafeCsvAppender(current, LISTING_SCHEMA)
        appender.clear()
        names = [f"u{n}" for n in range(60)]
        results = []
        done = threading.Event()

        def append_all():
            for name in names:
                results.append(appender.append(rec(name)))
            done.set()

        def reconcile_until_done():
            while not done.is_set():
                reconcile(current, stored)

        threads = [threading.Thread(target=append_all), threading.Thread(target=reconcile_until_done)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        reconcile(current, stored)

        assert results == [AppendResult.WRITTEN] * len(names)
        for path in (current, stored):
            rows = read_records(path, LISTING_SCHEMA)
            assert len(rows) == len({r.profile_url for r in rows})
        assert keys(current) <= keys(stored)
        assert f"u{len(names) - 1}" in keys(stored)
