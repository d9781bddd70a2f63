import pytest

from momentum.command_center.domain import (
    CompanyRef,
    email_source_key,
    extract_company_from_title,
    source_hash,
    transcript_source_key,
)


@pytest.mark.parametrize("key, expected", [
    ("", "0000000000000000"),
    ("a", "0000000000000061"),
    ("ab", "0000000000000c21"),
])
def test_source_hash_known_values(key, expected):
    assert source_hash(key) == expected


def test_source_hash_is_stable_and_padded():
    key = email_source_key("3f0c9a52-email", "pricing_request")
    assert source_hash(key) == source_hash(key)
    assert len(source_hash(key)) == 16
    int(source_hash(key), 16)
    assert source_hash(key) != source_hash(email_source_key("3f0c9a52-email", "demo_request"))


def test_source_keys():
    assert email_source_key("e-1", None) == "email|e-1|unknown"
    assert transcript_source_key("t-1") == "transcript|t-1|meeting"


COMPANIES = [
    CompanyRef("c-1", "Acme"),
    CompanyRef("c-2", "Acme Pest Control"),
    CompanyRef("c-3", "Globex Corporation"),
    CompanyRef("c-4", "Pest Control"),
]


def test_longest_company_name_wins():
    match = extract_company_from_title("Quarterly review - Acme Pest Control", COMPANIES)
    assert match.id == "c-2"


def test_shorter_name_still_matches():
    assert extract_company_from_title("ACME sync", COMPANIES).id == "c-1"


def test_first_significant_word_fallback():
    assert extract_company_from_title("Globex onboarding kickoff", COMPANIES).id == "c-3"


def test_generic_names_are_not_matched_by_word():
    assert extract_company_from_title("pest talk", COMPANIES) is None


def test_no_title():
    assert extract_company_from_title(None, COMPANIES) is None
    assert extract_company_from_title("Weekly standup", []) is None
