import pytest

from shelfrank.csv_io import (
    EXPORT_COLUMNS,
    ImportFormatError,
    export_row,
    read_table,
    write_catalog,
)
from shelfrank.models import BookRecord


class TestReadTable:
    def test_reads_header_and_rows(self) -> None:
        table = read_table("Title,Author\nDune,Frank Herbert\nHyperion,Dan Simmons\n")

        assert table.header == ["Title", "Author"]
        assert [row["Title"] for row in table.rows] == ["Dune", "Hyperion"]

    def test_strips_byte_order_mark(self) -> None:
        table = read_table("\ufeffTitle,Author\nDune,Frank Herbert\n")
        assert table.header == ["Title", "Author"]

    def test_quoted_fields_with_commas_and_newlines(self) -> None:
        text = 'Title,Author\n"Dune, Deluxe","Frank\nHerbert"\n'
        table = read_table(text)
        assert table.rows[0] == {"Title": "Dune, Deluxe", "Author": "Frank\nHerbert"}

    def test_skips_blank_rows(self) -> None:
        table = read_table("Title,Author\n\n,\nDune,Frank Herbert\n")
        assert len(table.rows) == 1

    @pytest.mark.parametrize("text", ["", "   \n", "\ufeff"])
    def test_empty_input_is_rejected(self, text: str) -> None:
        with pytest.raises(ImportFormatError, match="empty"):
            read_table(text)

    def test_malformed_quoting_is_rejected(self) -> None:
        with pytest.raises(ImportFormatError, match="Malformed CSV"):
            read_table('Title,Author\n"Dune"x,Frank Herbert\n')


class TestExport:
    def test_header_is_fixed(self) -> None:
        text = write_catalog([])
        assert text == ",".join(EXPORT_COLUMNS) + "\n"

    def test_row_rounds_rating_and_writes_active_flag(self) -> None:
        record = BookRecord(
            id="abc",
            title="Dune",
            author="Frank Herbert",
            rating=1523.6,
            comparison_count=7,
            active=False,
            num_pages=412,
        )

        row = export_row(record)

        assert row[:8] == ["", "Dune", "Frank Herbert", "1524", "7", "0", "abc", ""]
        assert row[8] == "412"

    def test_values_needing_quotes_are_quoted(self) -> None:
        record = BookRecord(id="abc", title='Dune, "Deluxe"', author="Frank Herbert")

        text = write_catalog([record])

        assert '"Dune, ""Deluxe"""' in text.splitlines()[1]

    def test_export_can_be_read_back(self) -> None:
        record = BookRecord(id="abc", title="Dune, Deluxe", author="Frank Herbert")

        table = read_table(write_catalog([record]))

        assert table.header == list(EXPORT_COLUMNS)
        assert table.rows[0]["Title"] == "Dune, Deluxe"
        assert table.rows[0]["ELO"] == "1500"
