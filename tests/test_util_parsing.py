from nba_picks.util.parsing import (
    first_mapping,
    first_present,
    safe_float,
    safe_int,
    safe_str,
    to_price,
)


def test_safe_float_parses_numeric_inputs() -> None:
    assert safe_float(1) == 1.0
    assert safe_float("-4.5") == -4.5
    assert safe_float(True) is None
    assert safe_float("  ") is None
    assert safe_float("nan") is None
    assert safe_float("abc") is None


def test_safe_int_parses_integer_like_inputs() -> None:
    assert safe_int(3) == 3
    assert safe_int(1.9) == 1
    assert safe_int("+120") == 120
    assert safe_int(False) is None
    assert safe_int("") is None


def test_to_price_rounds_american_odds() -> None:
    assert to_price("+125") == 125
    assert to_price(-109.6) == -110
    assert to_price(None) is None


def test_safe_str_stringifies_ids() -> None:
    assert safe_str(1610612738) == "1610612738"
    assert safe_str(401705001.0) == "401705001"
    assert safe_str("  BOS ") == "BOS"
    assert safe_str("") is None
    assert safe_str(True) is None
    assert safe_str({"id": 1}) is None


def test_first_present_follows_rule_order() -> None:
    record = {"id": "", "teamId": 1610612738, "triCode": "BOS"}
    assert first_present(record, ("id", "teamId", "triCode")) == "1610612738"
    assert first_present(record, ("missing",)) is None
    assert first_present(None, ("id",)) is None


def test_first_mapping_skips_non_mappings() -> None:
    record = {"homeTeam": "BOS", "home": {"abbreviation": "BOS"}}
    assert first_mapping(record, ("homeTeam", "home")) == {"abbreviation": "BOS"}
    assert first_mapping(record, ("away",)) == {}
