import pytest

from clinic.shared.validators import normalize_phone


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("0771234567", "+94771234567"),
        ("077 123 4567", "+94771234567"),
        ("+94 77-123-4567", "+94771234567"),
        ("+1 (415) 555-0100", "+14155550100"),
        ("", None),
        (None, None),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_normalize_phone_custom_country_code():
    assert normalize_phone("020 7946 0958", country_code="44") == "+442079460958"


@pytest.mark.parametrize("raw", ["123", "+1234567890123456"])
def test_normalize_phone_rejects_bad_lengths(raw):
    with pytest.raises(ValueError):
        normalize_phone(raw)
