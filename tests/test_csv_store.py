"""Tests for CSV storage and the thread-safe appender."""

import threading

import pytest

from crawler.csv_store import (
    DETAIL_SCHEMA,
    LISTING_SCHEMA,
    AppendResult,
    ThreadSafeCsvAppender,
    count_rows,
    is_reconciled,
    mark_reconciled,
    read_records,
    write_records,
)
from crawler.models import ListingRecord

from conftest import make_profile


def listing(n: int, name: str = None) -> ListingRecord:
    return ListingRecord(
        name=name or f"Girl {n}",
        location="Geneva",
        profile_url=f"https://example.test/filles/{n}/"
    )


@pytest.fixture
def list_csv(tmp_path):
    return tmp_path / "list.csv"


@pytest.fixture
def appender(list_csv):
    return ThreadSafeCsvAppender(list_csv, LISTING_SCHEMA)


class TestFormat:

    def test_header_plain_rows_fully_quoted(self, appender, list_csv):
        appender.append(listing(1))

        assert list_csv.read_text(encoding="utf-8") == (
            'Name,Location,Profile URL\n'
            '"Girl 1","Geneva","https://example.test/filles/1/"\n'
        )

    def test_embedded_quotes_are_doubled(self, appender, list_csv):
        appender.append(listing(1, name='Anna "la belle"'))

        assert '"Anna ""la belle"""' in list_csv.read_text(encoding="utf-8")
        assert read_records(list_csv, LISTING_SCHEMA)[0].name == 'Anna "la belle"'

    def test_detail_header_is_exact(self, tmp_path):
        path = tmp_path / "detail.csv"
        ThreadSafeCsvAppender(path, DETAIL_SCHEMA).clear()

        assert path.read_text(encoding="utf-8") == (
            "URL,Canton,City,Nickname,Category,Phone number,Status (active or inactive),"
            "Certified or not,About,Number of visits,Services provided,Location,Description,"
            "Link (if any in the ad),Number of likes,Number of followers,Number of reviews\n"
        )

    def test_detail_rows_are_keyed_by_url(self, tmp_path):
        path = tmp_path / "detail.csv"
        record = make_profile("https://example.test/filles/anna/", about="a, b | c")
        write_records(path, [record], DETAIL_SCHEMA)

        assert read_records(path, DETAIL_SCHEMA) == [record]

    def test_rows_without_key_are_skipped(self, list_csv):
        list_csv.write_text(
            'Name,Location,Profile URL\n"A","Geneva",""\n"B","Bern","https://x/b"\n',
            encoding="utf-8"
        )

        records = read_records(list_csv, LISTING_SCHEMA)

        assert [r.name for r in records] == ["B"]


class TestAppend:

    def test_same_key_twice_writes_one_row(self, appender):
        first = appender.append(listing(1))
        second = appender.append(listing(1, name="Renamed"))

        assert first is AppendResult.WRITTEN
        assert first.written
        assert second is AppendResult.DUPLICATE
        assert not second.written
        assert appender.count() == 1

    def test_io_failure_is_an_error_not_a_duplicate(self, tmp_path):
        path = tmp_path / "list.csv"
        path.mkdir()

        result = ThreadSafeCsvAppender(path, LISTING_SCHEMA).append(listing(1))

        assert result is AppendResult.ERROR
        assert not result.written

    def test_append_many_skips_known_and_repeated_keys(self, appender):
        appender.append(listing(1))

        written, duplicates = appender.append_many([listing(1), listing(2), listing(2), listing(3)])

        assert (written, duplicates) == (2, 2)
        assert appender.count() == 3

    def test_clear_leaves_only_the_header(self, appender, list_csv):
        appender.append(listing(1))
        appender.clear()

        assert appender.count() == 0
        assert list_csv.read_text(encoding="utf-8") == "Name,Location,Profile URL\n"

    def test_concurrent_appends_never_duplicate(self, appender):
        records = [listing(n) for n in range(40)]
        results = []

        def work():
            for record in records:
                results.append(appender.append(record))

        threads = [threading.Thread(target=work) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert appender.count() == 40
        assert results.count(AppendResult.WRITTEN) == 40
        assert results.count(AppendResult.DUPLICATE) == 200
        assert len(appender.existing_keys()) == 40

    def test_append_invalidates_reconciled_marker(self, appender, list_csv):
        appender.append(listing(1))
        mark_reconciled(list_csv)
        assert is_reconciled(list_csv)

        appender.append(listing(2))

        assert not is_reconciled(list_csv)

    def test_duplicate_keeps_reconciled_marker(self, appender, list_csv):
        appender.append(listing(1))
        mark_reconciled(list_csv)

        appender.append(listing(1))

        assert is_reconciled(list_csv)


def test_write_records_replaces_atomically(list_csv):
    write_records(list_csv, [listing(1), listing(2)], LISTING_SCHEMA)
    write_records(list_csv, [listing(3)], LISTING_SCHEMA)

    assert [r.profile_url for r in read_records(list_csv, LISTING_SCHEMA)] == [
        "https://example.test/filles/3/"
    ]
    assert sorted(p.name for p in list_csv.parent.iterdir()) == ["list.csv"]


class TestUndecodableFile:

    CP1252_DETAIL = b'URL,Canton\n"https://example.test/a","Z\xfcrich"\n'

    def test_append_reports_error(self, tmp_path):
        path = tmp_path / "detail.csv"
        path.write_bytes(self.CP1252_DETAIL)

        result = ThreadSafeCsvAppender(path, DETAIL_SCHEMA).append(make_profile("https://example.test/b"))

        assert result is AppendResult.ERROR
        assert path.read_bytes() == self.CP1252_DETAIL

    def test_append_many_writes_nothing(self, tmp_path):
        path = tmp_path / "list.csv"
        path.write_bytes(b'Name,Location,Profile URL\n"Z\xfcri","Bern","https://example.test/a"\n')

        assert ThreadSafeCsvAppender(path, LISTING_SCHEMA).append_many([listing(1)]) == (0, 0)

    def test_count_is_zero(self, tmp_path):
        path = tmp_path / "detail.csv"
        path.write_bytes(self.CP1252_DETAIL)

        assert count_rows(path) == 0
