"""Tests for monetary amount and phrase extraction used by escalation rules."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
os.environ.setdefault("ANTHROPIC_API_KEY", "test")

import pytest

from app.engines.escalation.extraction import (
    extract_amounts,
    find_phrase,
    format_amount,
    mentions_contract,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Pay the $15,000 invoice", [15000.0]),
        ("Total is $15,000.50 after tax", [15000.5]),
        ("Budget $ 2500 for snacks", [2500.0]),
        ("Raise $15k for the pilot", [15000.0]),
        ("A $2.5M expansion", [2500000.0]),
        ("Valued at $3 million", [3000000.0]),
        ("Quote came in at 12,500 USD", [12500.0]),
        ("About 3000 dollars", [3000.0]),
        ("No money here, just 42 widgets", []),
        ("", []),
    ],
)
def test_extract_amounts_formats(text, expected):
    assert extract_amounts(text) == expected


def test_extract_amounts_keeps_order_of_appearance():
    text = "Options: $4,000 now or $12,000 later, or 900 dollars per month"
    assert extract_amounts(text) == [4000.0, 12000.0, 900.0]
    print("  PASS: extract_amounts_keeps_order_of_appearance")


def test_suffix_needs_word_boundary():
    assert extract_amounts("Spend $15 more each month") == [15.0]
    assert extract_amounts("$20 meeting fee") == [20.0]
    assert extract_amounts("Engage $5 M&A advisors") == [5.0]
    assert extract_amounts("Budget $5 k for travel") == [5.0]
    print("  PASS: suffix_needs_word_boundary")


def test_mentions_contract():
    assert mentions_contract("Sign the Contract with Acme")
    assert mentions_contract("three contracts pending")
    assert not mentions_contract("contractor onboarding")
    assert not mentions_contract("")
    print("  PASS: mentions_contract")


def test_find_phrase_case_insensitive_first_in_list_order():
    phrases = ["lawsuit", "data breach"]
    assert find_phrase("Possible DATA BREACH and a lawsuit", phrases) == "lawsuit"
    assert find_phrase("nothing to see", phrases) is None
    assert find_phrase("anything", ["", "thing"]) == "thing"
    print("  PASS: find_phrase_case_insensitive_first_in_list_order")


def test_format_amount():
    assert format_amount(15000) == "$15,000"
    assert format_amount(5000.0) == "$5,000"
    assert format_amount(1234.5) == "$1,234.50"
    print("  PASS: format_amount")
