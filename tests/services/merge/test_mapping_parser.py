from __future__ import annotations

import pytest

from docmerge.core.errors import MappingParseError
from docmerge.services.merge import mapping_parser
from docmerge.services.merge.mapping_parser import normalize_quotes, parse_mapping


def test_strict_json_is_parsed_without_fallback():
    def _fail(text):
        raise AssertionError("fallback must not run for strict JSON")

    strategies = (mapping_parser.strict_json, _fail)
    mapping = parse_mapping('{"2": "<<NAME>>", "5": "<<DATE>>"}', strategies)

    assert mapping == {2: "<<NAME>>", 5: "<<DATE>>"}


def test_single_quotes_match_double_quotes():
    double = parse_mapping('{"1": "{{CODE}}", "3": "<<CITY>>"}')
    single = parse_mapping("{'1': '{{CODE}}', '3': '<<CITY>>'}")

    assert single == double


def test_curly_quotes_are_normalized():
    raw = "  {“2”: “<<NAME>>”, ‘4’: ‘<<YEAR>>’}  "

    assert parse_mapping(raw) == {2: "<<NAME>>", 4: "<<YEAR>>"}


def test_normalize_quotes_trims_and_straightens():
    assert normalize_quotes(" “a” ‘b’ ") == "\"a\" 'b'"


@pytest.mark.parametrize(
    "raw",
    [
        '{"2": "<<NAME>>",}',
        '{"2": "<<NAME>>"',
        "2 -> <<NAME>>",
    ],
)
def test_malformed_input_echoes_raw_text(raw):
    with pytest.raises(MappingParseError) as excinfo:
        parse_mapping(raw)

    assert raw in str(excinfo.value)
    assert excinfo.value.raw == raw


def test_apostrophe_in_value_is_corrupted_by_fallback():
    # Known limitation: every single quote becomes a double quote.
    with pytest.raises(MappingParseError):
        parse_mapping("{'2': 'O'Neil'}")


@pytest.mark.parametrize("raw", ['{"abc": "<<X>>"}', '{"0": "<<X>>"}', '{"-1": "<<X>>"}', '{"1.5": "<<X>>"}'])
def test_non_positive_integer_keys_are_rejected(raw):
    with pytest.raises(MappingParseError) as excinfo:
        parse_mapping(raw)

    assert raw in str(excinfo.value)


def test_keys_are_trimmed_and_values_stringified():
    assert parse_mapping('{" 3 ": 42}') == {3: "42"}


@pytest.mark.parametrize("raw", ["", "   ", '["<<NAME>>"]', "null"])
def test_empty_or_non_object_input_fails(raw):
    with pytest.raises(MappingParseError):
        parse_mapping(raw)
