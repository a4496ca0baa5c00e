"""Tests for shipping address splitting."""

from __future__ import annotations

from orderharvest.core.address import (
    MAX_ADDRESS_LINES,
    address_lines_to_columns,
    clean_text,
    split_address_lines,
)


class TestSplitAddressLines:
    """Tests for split_address_lines."""

    def test_uk_postcode_moves_to_own_line(self) -> None:
        # input
        raw = "Name<br>12 High Street<br>LONDON SW1A 1AA"

        # act
        result = split_address_lines(raw)

        # assert
        assert result == ["Name", "12 High Street", "LONDON", "SW1A 1AA"]

    def test_entities_and_tags(self) -> None:
        # input
        raw = "<span>Jane &amp; John</span><br/><b>1 Main St</b>\nSeattle, WA 98109"

        # act
        result = split_address_lines(raw)

        # assert
        assert result == ["Jane & John", "1 Main St", "Seattle, WA 98109"]

    def test_consecutive_duplicates_dropped(self) -> None:
        # input
        raw = "Jane Doe<br>Jane Doe<br>1 Main St"

        # act
        result = split_address_lines(raw)

        # assert
        assert result == ["Jane Doe", "1 Main St"]

    def test_capped_at_seven_lines(self) -> None:
        # input
        raw = "<br>".join(f"Line {index}" for index in range(10))

        # act
        result = split_address_lines(raw)

        # assert
        assert len(result) == MAX_ADDRESS_LINES
        assert result[-1] == "Line 6"

    def test_empty(self) -> None:
        # assert
        assert split_address_lines(None) == []
        assert split_address_lines("<br><br>") == []


class TestAddressColumns:
    """Tests for address_lines_to_columns."""

    def test_pads_to_seven(self) -> None:
        # act
        result = address_lines_to_columns(["a", "b"])

        # assert
        assert result["line1"] == "a"
        assert result["line2"] == "b"
        assert result["line7"] == ""
        assert len(result) == 7


class TestCleanText:
    """Tests for clean_text."""

    def test_collapses_whitespace(self) -> None:
        # assert
        assert clean_text("  a \n\t b  ") == "a b"
