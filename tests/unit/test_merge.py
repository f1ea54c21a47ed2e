from collections.abc import Callable

from shelfrank.covers.openlibrary import placeholder_cover_url
from shelfrank.merge import merge_catalog, merge_rankings, row_key
from shelfrank.models import BookRecord

BookFactory = Callable[..., BookRecord]


def _row(**fields: str) -> dict[str, str]:
    row = {"title": "", "author": "", "isbn": ""}
    row.update(fields)
    return row


def test_row_key_applies_default_title_and_author() -> None:
    assert row_key(_row()) == "unknown title|unknown author"
    assert row_key(_row(isbn="123X")) == "123X"


class TestMergeCatalog:
    def test_first_import_creates_records(self) -> None:
        rows = [
            _row(title="Dune", author="Frank Herbert", isbn="9780441013593", num_pages="412"),
            _row(title="Hyperion", author="Dan Simmons"),
        ]

        merged = merge_catalog(rows, [])

        dune, hyperion = merged
        assert dune.rating == 1500
        assert dune.comparison_count == 0
        assert dune.active is True
        assert dune.num_pages == 412
        assert dune.cover_url == placeholder_cover_url("9780441013593")
        assert hyperion.cover_url is None
        assert dune.id != hyperion.id

    def test_match_keeps_id_rating_and_count(self, make_book: BookFactory) -> None:
        existing = make_book(
            title="Dune",
            author="Frank Herbert",
            isbn="9780441013593",
            rating=1642.5,
            comparison_count=9,
            cover_url="https://example.com/dune.jpg",
            publisher="Chilton",
        )

        (merged,) = merge_catalog(
            [_row(title="Dune (Deluxe)", author="Frank Herbert", isbn="9780441013593",
                  publisher="Ace")],
            [existing],
        )

        assert merged.id == existing.id
        assert merged.rating == 1642.5
        assert merged.comparison_count == 9
        assert merged.cover_url == "https://example.com/dune.jpg"
        assert merged.title == "Dune (Deluxe)"
        assert merged.publisher == "Ace"

    def test_title_author_match_is_case_insensitive(self, make_book: BookFactory) -> None:
        existing = make_book(title="Hyperion", author="Dan Simmons", rating=1401)

        (merged,) = merge_catalog([_row(title="HYPERION", author="dan simmons")], [existing])

        assert merged.id == existing.id
        assert merged.rating == 1401

    def test_absent_records_become_inactive_and_follow(self, make_book: BookFactory) -> None:
        kept = make_book(title="Dune", author="Frank Herbert")
        dropped = make_book(title="Hyperion", author="Dan Simmons", rating=1700)

        merged = merge_catalog([_row(title="Dune", author="Frank Herbert")], [dropped, kept])

        assert [record.id for record in merged] == [kept.id, dropped.id]
        assert merged[0].active is True
        assert merged[1].active is False
        assert merged[1].rating == 1700

    def test_returning_book_is_reactivated(self, make_book: BookFactory) -> None:
        existing = make_book(title="Dune", author="Frank Herbert", active=False, rating=1555)

        (merged,) = merge_catalog([_row(title="Dune", author="Frank Herbert")], [existing])

        assert merged.active is True
        assert merged.rating == 1555

    def test_excluded_rows_are_dropped(self, make_book: BookFactory) -> None:
        existing = make_book(title="Dune", author="Frank Herbert", isbn="9780441013593")
        rows = [
            _row(title="Dune", author="Frank Herbert", isbn="9780441013593"),
            _row(title="Hyperion", author="Dan Simmons"),
        ]

        merged = merge_catalog(rows, [existing], exclusion_keys={"dune|frank herbert"})

        active = [record for record in merged if record.active]
        assert [record.title for record in active] == ["Hyperion"]
        assert merged[-1].id == existing.id
        assert merged[-1].active is False

    def test_duplicate_rows_keep_the_first(self) -> None:
        rows = [
            _row(title="Dune", author="Frank Herbert", publisher="Ace"),
            _row(title="dune", author="FRANK HERBERT", publisher="Chilton"),
        ]

        merged = merge_catalog(rows, [])

        assert len(merged) == 1
        assert merged[0].publisher == "Ace"

    def test_blank_fields_keep_existing_values(self, make_book: BookFactory) -> None:
        existing = make_book(
            title="Dune", author="Frank Herbert", isbn="9780441013593", publisher="Ace"
        )

        (merged,) = merge_catalog([_row(isbn="9780441013593")], [existing])

        assert merged.title == "Dune"
        assert merged.author == "Frank Herbert"
        assert merged.publisher == "Ace"

    def test_blank_title_row_matches_defaulted_record(self) -> None:
        (first,) = merge_catalog([_row(author="Anonymous")], [])
        (second,) = merge_catalog([_row(author="Anonymous")], [first])

        assert first.title == "Unknown Title"
        assert second.id == first.id

    def test_matched_record_without_cover_gets_placeholder(
        self, make_book: BookFactory
    ) -> None:
        plain = make_book(title="Dune", author="F", isbn="111")
        failed = make_book(title="Hyperion", author="D", isbn="222", cover_fetch_failed=True)

        merged = merge_catalog(
            [_row(title="Dune", author="F", isbn="111"),
             _row(title="Hyperion", author="D", isbn="222")],
            [plain, failed],
        )

        assert merged[0].cover_url == placeholder_cover_url("111")
        assert merged[1].cover_url is None
        assert merged[1].cover_fetch_failed is True

    def test_existing_records_are_not_mutated(self, make_book: BookFactory) -> None:
        existing = make_book(title="Dune", author="Frank Herbert")

        merge_catalog([], [existing])

        assert existing.active is True


class TestMergeRankings:
    def test_restores_ratings_counts_and_flags(self, make_book: BookFactory) -> None:
        existing = make_book(title="Dune", author="Frank Herbert", rating=1500)

        (merged,) = merge_rankings(
            [_row(title="Dune", author="Frank Herbert", rating="1612",
                  comparison_count="14", active="0")],
            [existing],
        )

        assert merged.id == existing.id
        assert merged.rating == 1612
        assert merged.comparison_count == 14
        assert merged.active is False

    def test_rounded_rating_keeps_stored_precision(self, make_book: BookFactory) -> None:
        existing = make_book(title="Dune", author="Frank Herbert", rating=1523.6)

        (merged,) = merge_rankings(
            [_row(title="Dune", author="Frank Herbert", rating="1524")], [existing]
        )

        assert merged.rating == 1523.6

    def test_blank_fields_fall_back_to_matched_record(self, make_book: BookFactory) -> None:
        existing = make_book(
            title="Dune", author="Frank Herbert", rating=1623.2, comparison_count=6
        )

        (merged,) = merge_rankings(
            [_row(title="Dune", author="Frank Herbert", rating="", comparison_count="x")],
            [existing],
        )

        assert merged.rating == 1623.2
        assert merged.comparison_count == 6
        assert merged.active is True

    def test_new_rows_use_defaults_and_floor(self) -> None:
        merged = merge_rankings(
            [
                _row(title="Dune", author="Frank Herbert"),
                _row(title="Hyperion", author="Dan Simmons", rating="42"),
            ],
            [],
        )

        assert merged[0].rating == 1500
        assert merged[0].comparison_count == 0
        assert merged[0].active is True
        assert merged[1].rating == 100

    def test_new_row_reuses_free_id_only(self, make_book: BookFactory) -> None:
        existing = make_book(id="taken", title="Dune", author="Frank Herbert")

        merged = merge_rankings(
            [
                _row(title="Dune", author="Frank Herbert", id="other"),
                _row(title="Hyperion", author="Dan Simmons", id="hyperion-id"),
                _row(title="Solaris", author="Stanislaw Lem", id="taken"),
            ],
            [existing],
        )

        dune, hyperion, solaris = merged
        assert dune.id == "taken"
        assert hyperion.id == "hyperion-id"
        assert solaris.id not in {"taken", "hyperion-id"}

    def test_cover_from_file_replaces_and_clears_failure(
        self, make_book: BookFactory
    ) -> None:
        existing = make_book(title="Dune", author="Frank Herbert", cover_fetch_failed=True)

        (merged,) = merge_rankings(
            [_row(title="Dune", author="Frank Herbert", cover_url="https://x/dune.jpg")],
            [existing],
        )

        assert merged.cover_url == "https://x/dune.jpg"
        assert merged.cover_fetch_failed is False

    def test_missing_records_become_inactive(self, make_book: BookFactory) -> None:
        existing = make_book(title="Dune", author="Frank Herbert", comparison_count=3)

        merged = merge_rankings([_row(title="Hyperion", author="Dan Simmons")], [existing])

        assert merged[-1].id == existing.id
        assert merged[-1].active is False
        assert merged[-1].comparison_count == 3
