from datetime import timedelta

from fluent_config import get_optional, get_or_default, get_required, validate_key

CONFIG = {"Api:Timeout": "30", "Api:BaseUrl": "https://x", "Api:Enabled": "maybe"}


def test_get_required():
    assert get_required(CONFIG, "Api:Timeout", int).unwrap() == 30
    assert get_required(CONFIG, "api:baseurl").unwrap() == "https://x"
    assert get_required(CONFIG, "Api:Missing").errors == ("Required configuration key 'Api:Missing' not found",)


def test_get_required_conversion_failure():
    result = get_required(CONFIG, "Api:Enabled", bool)
    assert result.errors[0].startswith("Failed to convert value 'maybe' at 'Api:Enabled' to bool")


def test_get_optional():
    assert get_optional(CONFIG, "Api:Timeout", int).unwrap() == 30
    assert get_optional(CONFIG, "Api:Missing").is_none
    assert get_optional(CONFIG, "Api:Enabled", bool).is_none


def test_get_or_default_infers_type_from_default():
    assert get_or_default(CONFIG, "Api:Timeout", 10) == 30
    assert get_or_default(CONFIG, "Api:Missing", 10) == 10
    assert get_or_default(CONFIG, "Api:Enabled", False) is False
    assert get_or_default({"Wait": "00:01:00"}, "Wait", timedelta(0)) == timedelta(minutes=1)


def test_validate_key():
    assert validate_key(CONFIG, "Api:BaseUrl", lambda v: v.startswith("https"), "must be https").unwrap() == "https://x"
    assert validate_key(CONFIG, "Api:BaseUrl", lambda v: v.startswith("ftp"), "must be ftp").errors == ("must be ftp",)
    assert validate_key(CONFIG, "Nope", bool, "x").errors == ("Configuration key 'Nope' not found",)
