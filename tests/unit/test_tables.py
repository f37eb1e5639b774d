"""Unit tests for line item detection."""

from decimal import Decimal

from invoice_reader.extraction.tables import detect_line_items, parse_line_item

TABLE_TEXT = """Faktura nr FV/2025/001

Lp. Nazwa Ilość J.m. Cena netto Wartość netto VAT Kwota VAT Wartość brutto
1 Usługa programistyczna 10 h 150,00 1 500,00 23% 345,00 1 845,00
2. Licencja roczna 1 szt 1 000,00 1 000,00 23% 230,00 1 230,00
Rabat 5,00
Razem 2 500,00 575,00 3 075,00
3 Pozycja po podsumowaniu 1 szt 10,00 10,00 23% 2,30 12,30
"""


class TestTableDetection:
    """Tests for header-based table parsing."""

    def test_rows_between_header_and_summary(self) -> None:
        positions = detect_line_items(TABLE_TEXT, "PLN")

        assert [p.name for p in positions] == ["Usługa programistyczna", "Licencja roczna"]

    def test_row_amounts_assigned_by_position(self) -> None:
        first = detect_line_items(TABLE_TEXT, "PLN")[0]

        assert first.quantity == Decimal("10")
        assert first.unit == "h"
        assert first.unit_price is not None and first.unit_price.value == Decimal("150.00")
        assert first.net is not None and first.net.value == Decimal("1500.00")
        assert first.vat is not None and first.vat.value == Decimal("345.00")
        assert first.gross is not None and first.gross.value == Decimal("1845.00")
        assert first.vat_rate == "23%"
        assert first.gross.currency == "PLN"

    def test_dotted_row_number_is_stripped(self) -> None:
        second = detect_line_items(TABLE_TEXT, "PLN")[1]

        assert second.name == "Licencja roczna"
        assert second.quantity == Decimal("1")
        assert second.unit == "szt"
        assert second.gross is not None and second.gross.value == Decimal("1230.00")

    def test_english_header(self) -> None:
        text = "No. Description Qty Unit price Net VAT Gross\n1. Consulting 2 pcs 50.00 100.00 23% 23.00 123.00\nTotal 100.00"

        positions = detect_line_items(text, "EUR")

        assert len(positions) == 1
        assert positions[0].name == "Consulting"
        assert positions[0].unit == "pcs"
        assert positions[0].net is not None and positions[0].net.value == Decimal("100.00")
        assert positions[0].net.currency == "EUR"


class TestParseLineItem:
    """Tests for single row parsing."""

    def test_fewer_than_two_numbers(self) -> None:
        assert parse_line_item("Rabat 5,00", "PLN") is None
        assert parse_line_item("Tylko tekst", "PLN") is None

    def test_vat_rate_not_counted_as_amount(self) -> None:
        position = parse_line_item("Papier 23% 5,00", "PLN")

        assert position is None

    def test_two_numbers_have_no_totals(self) -> None:
        position = parse_line_item("Konsultacje 2 szt 250,00", "PLN")

        assert position is not None
        assert position.quantity == Decimal("2")
        assert position.unit_price is not None and position.unit_price.value == Decimal("250.00")
        assert position.net is None
        assert position.vat is None
        assert position.gross is None

    def test_vat_amount_needs_five_numbers(self) -> None:
        position = parse_line_item("Towar 1 10,00 10,00 23% 2,30 12,30", "PLN")

        assert position is not None
        assert position.vat is not None and position.vat.value == Decimal("2.30")

        shorter = parse_line_item("Towar 1 10,00 10,00 12,30", "PLN")

        assert shorter is not None
        assert shorter.vat is None
        assert shorter.net is not None and shorter.net.value == Decimal("10.00")
        assert shorter.gross is not None and shorter.gross.value == Decimal("12.30")

    def test_line_starting_with_digit_uses_whole_line_as_name(self) -> None:
        position = parse_line_item("5 10,00", "PLN")

        assert position is not None
        assert position.name == "5 10,00"

    def test_quantity_one_before_price_is_split(self) -> None:
        position = parse_line_item("Wsparcie techniczne 1 200,00 200,00 246,00", "PLN")

        assert position is not None
        assert position.quantity == Decimal("1")
        assert position.unit_price is not None and position.unit_price.value == Decimal("200.00")
        assert position.gross is not None and position.gross.value == Decimal("246.00")

    def test_split_used_only_when_it_reconciles(self) -> None:
        position = parse_line_item("Usługa 2 150,00 300,00 369,00", "PLN")

        assert position is not None
        assert position.quantity == Decimal("2")
        assert position.unit_price is not None and position.unit_price.value == Decimal("150.00")

    def test_grouped_price_kept_as_thousands(self) -> None:
        position = parse_line_item("Serwer 1 szt 2 000,00 2 000,00 23% 460,00 2 460,00", "PLN")

        assert position is not None
        assert position.quantity == Decimal("1")
        assert position.unit == "szt"
        assert position.unit_price is not None and position.unit_price.value == Decimal("2000.00")
        assert position.gross is not None and position.gross.value == Decimal("2460.00")

    def test_unreconciled_group_stays_merged(self) -> None:
        position = parse_line_item("Projekt 1 500,00 700,00 800,00", "PLN")

        assert position is not None
        assert position.quantity == Decimal("1500.00")


class TestHeuristicDetection:
    """Tests for the fallback used when no table header exists."""

    def test_item_lines_kept(self) -> None:
        text = "Konsultacje 2 szt 250,00\nStrona 1 z 2"

        positions = detect_line_items(text, "PLN")

        assert len(positions) == 1
        assert positions[0].name == "Konsultacje"
        assert positions[0].unit == "szt"

    def test_noise_lines_rejected(self) -> None:
        text = "\n".join(
            [
                "Data: 15.10.2025 100,00",
                "Razem 100,00 200,00",
                "ABC 10,00 20,00",
                "12,50 13,50",
            ]
        )

        assert detect_line_items(text, "PLN") == []

    def test_polish_letters_count_as_word(self) -> None:
        positions = detect_line_items("Łóżko 1 szt 999,00", "PLN")

        assert len(positions) == 1
        assert positions[0].name == "Łóżko"

    def test_dated_item_row_kept(self) -> None:
        text = (
            "Abonament hosting 01.10.2025 2 50,00 100,00 123,00\n"
            "Wsparcie techniczne 1 200,00 200,00 246,00"
        )

        positions = detect_line_items(text, "PLN")

        assert [p.name for p in positions] == ["Abonament hosting", "Wsparcie techniczne"]
        assert positions[0].quantity == Decimal("2")

    def test_summary_words_inside_names_kept(self) -> None:
        text = "Szafa razem z montażem 1 szt 500,00 500,00 615,00\nTotalizator licencja 1 50,00 50,00 61,50"

        positions = detect_line_items(text, "PLN")

        assert [p.name for p in positions] == ["Szafa razem z montażem", "Totalizator licencja"]

    def test_date_only_lines_rejected(self) -> None:
        text = "Data wystawienia: 15.10.2025\nTermin płatności: 2025-10-29"

        assert detect_line_items(text, "PLN") == []
