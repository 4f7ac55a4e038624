"""Tests for fixed user-facing messages."""
import pytest

from industry_rag.prompts import off_topic_message


@pytest.mark.parametrize(
    "industries,expected",
    [
        (["Finance"], "Finance"),
        (["Finance", "Education"], "Finance and Education"),
        (["Finance", "Education", "Healthcare"], "Finance, Education, and Healthcare"),
    ],
)
def test_off_topic_message_lists_industries(industries, expected):
    assert off_topic_message(industries) == (
        f"I'm here to help with {expected} questions. What would you like to know about these topics?"
    )
