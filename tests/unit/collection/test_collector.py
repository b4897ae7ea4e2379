"""Prompt/validate loop behaviour for fresh and pre-seeded fields."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from nextcloud_installer.collection.collector import FieldCollector, ValidationRejected
from nextcloud_installer.collection.fields import DEFAULT_FIELDS, REDACTED_PLACEHOLDER
from nextcloud_installer.ui.terminal import AbortedByOperator

from conftest import ScriptedTerminal

pytestmark = pytest.mark.unit

_FIELDS = {item.name: item for item in DEFAULT_FIELDS}


def test_empty_line_substitutes_the_default() -> None:
    terminal = ScriptedTerminal(answers=[""])
    value = FieldCollector(terminal).collect(_FIELDS["db_name"])

    assert value == "nextcloud_db"
    assert terminal.prompts == [
        "Enter the database name for Nextcloud (default: nextcloud_db):"
    ]
    assert terminal.output == []


def test_each_rejection_prints_one_notice_then_reprompts() -> None:
    terminal = ScriptedTerminal(answers=["bad name", "also-bad", "good_name"])
    value = FieldCollector(terminal).collect(_FIELDS["db_user"])

    assert value == "good_name"
    assert len(terminal.prompts) == 3
    assert len(terminal.output) == 2
    assert terminal.output[0].startswith("Invalid value 'bad name' for db_user.")
    assert "alphanumeric" in terminal.output[0]


def test_surrounding_whitespace_is_stripped() -> None:
    terminal = ScriptedTerminal(answers=["  example.org  "])
    assert FieldCollector(terminal).collect(_FIELDS["domain"]) == "example.org"


def test_end_of_input_aborts_the_session() -> None:
    terminal = ScriptedTerminal(answers=["not valid!"])
    with pytest.raises(AbortedByOperator):
        FieldCollector(terminal).collect(_FIELDS["admin_user"])


def test_sensitive_default_is_hidden_in_prompt() -> None:
    terminal = ScriptedTerminal(answers=["hunter2"])
    assert FieldCollector(terminal).collect(_FIELDS["db_pass"]) == "hunter2"
    assert REDACTED_PLACEHOLDER in terminal.prompts[0]
    assert "secure_password" not in terminal.prompts[0]


def test_preseeded_value_is_kept_on_empty_line() -> None:
    terminal = ScriptedTerminal(answers=[""])
    value = FieldCollector(terminal).collect(_FIELDS["db_name"], "existing_db")

    assert value == "existing_db"
    assert terminal.prompts == [
        "db_name is already set to 'existing_db'. Press Enter to keep it or type a new value:"
    ]


def test_empty_preseeded_value_is_collected_fresh() -> None:
    terminal = ScriptedTerminal(answers=[""])
    value = FieldCollector(terminal).collect(_FIELDS["db_name"], "")

    assert value == "nextcloud_db"
    assert terminal.prompts == [
        "Enter the database name for Nextcloud (default: nextcloud_db):"
    ]


def test_preseeded_value_is_trusted_without_revalidation() -> None:
    terminal = ScriptedTerminal(answers=[""])
    assert FieldCollector(terminal).collect(_FIELDS["db_name"], "not-an-identifier") == (
        "not-an-identifier"
    )


def test_preseeded_replacement_is_validated() -> None:
    terminal = ScriptedTerminal(answers=["bad name", "other_db"])
    value = FieldCollector(terminal).collect(_FIELDS["db_name"], "existing_db")

    assert value == "other_db"
    assert len(terminal.said("Invalid value 'bad name' for db_name.")) == 1


def test_empty_line_after_rejected_replacement_keeps_preseeded() -> None:
    terminal = ScriptedTerminal(answers=["bad name", ""])
    assert FieldCollector(terminal).collect(_FIELDS["db_name"], "existing_db") == "existing_db"


def test_preseeded_sensitive_value_is_never_echoed() -> None:
    terminal = ScriptedTerminal(answers=[""])
    assert FieldCollector(terminal).collect(_FIELDS["admin_pass"], "topsecret") == "topsecret"
    assert "topsecret" not in terminal.prompts[0]
    assert f"'{REDACTED_PLACEHOLDER}'" in terminal.prompts[0]


def test_rejection_notice_for_sensitive_field_hides_the_candidate() -> None:
    error = ValidationRejected(_FIELDS["db_pass"], "")
    assert REDACTED_PLACEHOLDER in str(error)
    assert error.field_name == "db_pass"


@given(
    rejected=st.lists(st.sampled_from(["bad name", "semi;colon", "dash-ed", "quote'"]), max_size=6)
)
@settings(max_examples=50, deadline=None)
def test_notice_count_matches_rejection_count(rejected: list[str]) -> None:
    terminal = ScriptedTerminal(answers=[*rejected, "final_value"])
    assert FieldCollector(terminal).collect(_FIELDS["admin_user"]) == "final_value"
    assert len(terminal.output) == len(rejected)
    assert len(terminal.prompts) == len(rejected) + 1
