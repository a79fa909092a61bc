"""Tests for PHIUnmasker: ledger lookup, warnings, round trips."""

import pytest

from observability.phi_metrics import PHIMetrics
from scribeguard.common.exceptions import InvalidInputError
from scribeguard.phi.masker import PHIMasker
from scribeguard.phi.unmasker import PHIUnmasker, build_ledger_lookup
from tests.conftest import SAMPLE_NOTE, SAMPLE_SPANS


class TestUnmask:
    def test_round_trip_restores_original(self):
        masked = PHIMasker().mask_spans(SAMPLE_NOTE, SAMPLE_SPANS)

        result = PHIUnmasker().unmask(masked.masked_text, masked.phi_entities)

        assert result.unmasked_text == SAMPLE_NOTE
        assert result.fully_restored

    def test_round_trip_through_serialized_ledger(self):
        masked = PHIMasker().mask_spans(SAMPLE_NOTE, SAMPLE_SPANS)
        ledger = masked.to_dict()["phi_entities"]

        assert PHIUnmasker().unmask(masked.masked_text, ledger).unmasked_text == SAMPLE_NOTE

    def test_accepts_detector_wire_names(self):
        ledger = [{"Type": "NAME", "Id": 3, "Text": "Ada"}]

        result = PHIUnmasker().unmask("Hello {{NAME_3}}", ledger)

        assert result.unmasked_text == "Hello Ada"

    def test_token_repeated_in_generated_text_is_restored_everywhere(self):
        ledger = [{"type": "NAME", "id": 1, "text": "Ada"}]

        result = PHIUnmasker().unmask("{{NAME_1}} said {{NAME_1}} would return", ledger)

        assert result.unmasked_text == "Ada said Ada would return"

    def test_unknown_token_is_left_in_place_and_reported(self, metrics):
        result = PHIUnmasker().unmask("Hi {{NAME_9}}", [{"type": "NAME", "id": 1, "text": "Ada"}])

        assert result.unmasked_text == "Hi {{NAME_9}}"
        assert result.warnings.no_match_tokens == ["{{NAME_9}}"]
        assert not result.fully_restored
        assert metrics.counter(PHIMetrics.UNMASK_WARNINGS, {"kind": "no_match"}) == 1

    @pytest.mark.parametrize("token", ["{{NAME}}", "{{NAME_x}}", "{{NA ME_1}}", "{{DATE_TIME_1}}"])
    def test_malformed_token_is_left_in_place_and_reported(self, token):
        result = PHIUnmasker().unmask(f"see {token}", [{"type": "NAME", "id": 1, "text": "Ada"}])

        assert result.unmasked_text == f"see {token}"
        assert result.warnings.invalid_tokens == [token]
        assert result.warnings.no_match_tokens == []

    @pytest.mark.parametrize(
        "masked, ledger, expected, invalid, no_match",
        [
            (
                "Patient {{NAME_1}} born {{DATE_2}}",
                [{"type": "NAME", "id": 1, "text": "John Doe"}, {"type": "DATE", "id": 2, "text": "1990-01-01"}],
                "Patient John Doe born 1990-01-01",
                [],
                [],
            ),
            ("See {{weird}} note", [], "See {{weird}} note", ["{{weird}}"], []),
            (
                "See {{weird}} note",
                [{"type": "NAME", "id": 1, "text": "John Doe"}],
                "See {{weird}} note",
                ["{{weird}}"],
                [],
            ),
            ("{{NAME_9}}", [{"type": "NAME", "id": 1, "text": "John Doe"}], "{{NAME_9}}", [], ["{{NAME_9}}"]),
        ],
    )
    def test_reference_cases(self, masked, ledger, expected, invalid, no_match):
        result = PHIUnmasker().unmask(masked, ledger)

        assert result.unmasked_text == expected
        assert result.warnings.invalid_tokens == invalid
        assert result.warnings.no_match_tokens == no_match

    def test_text_without_tokens_is_unchanged(self):
        result = PHIUnmasker().unmask("no tokens {here}", [])

        assert result.unmasked_text == "no tokens {here}"
        assert result.fully_restored

    def test_replacement_text_is_inserted_literally(self):
        ledger = [{"type": "NAME", "id": 1, "text": r"\1 {{NAME_2}}"}]

        result = PHIUnmasker().unmask("{{NAME_1}}", ledger)

        assert result.unmasked_text == r"\1 {{NAME_2}}"

    def test_empty_masked_text_is_rejected(self):
        with pytest.raises(InvalidInputError):
            PHIUnmasker().unmask("", [])


class TestBuildLedgerLookup:
    def test_incomplete_entries_are_ignored(self):
        lookup = build_ledger_lookup(
            [
                {"type": "NAME", "id": 1, "text": "Ada"},
                {"type": "NAME", "text": "no id"},
                {"id": 2, "text": "no type"},
                {"type": "DATE", "id": 3},
            ]
        )

        assert lookup == {"NAME_1": "Ada"}

    def test_id_zero_is_kept(self):
        assert build_ledger_lookup([{"Type": "ID", "Id": 0, "Text": "42"}]) == {"ID_0": "42"}
