# pylint: disable=missing-module-docstring,missing-function-docstring

from datetime import datetime, timedelta

import pytest

from intents.commands import (
    AddListItem,
    CompleteTask,
    CreateTask,
    DeleteTask,
    Priority,
    SetTimer,
    Unknown,
)
from intents.due_dates import extract_due_date
from intents.parser import (
    extract_list_item,
    extract_task_title,
    extract_timer,
    match_rule,
    parse_command,
)


NOW = datetime(2026, 1, 31, 10, 30)


def test_remind_me_to_call_mom_tomorrow():
    assert parse_command("remind me to call mom tomorrow", NOW) == CreateTask(
        title="call mom",
        due_date=NOW + timedelta(days=1),
        priority=Priority.MEDIUM,
    )


@pytest.mark.parametrize(
    ("text", "title"),
    [
        ("add task buy milk", "buy milk"),
        ("create task to file taxes", "file taxes"),
        ("remind me pay rent tonight", "pay rent"),
        ("add a task to call the dentist next week", "call the dentist"),
    ],
)
def test_task_title_drops_lead_phrase_and_time_words(text: str, title: str):
    assert extract_task_title(text) == title


@pytest.mark.parametrize(
    ("text", "priority"),
    [
        ("remind me to send the report asap", Priority.HIGH),
        ("add an urgent task to call the bank", Priority.HIGH),
        ("remind me to clean the garage whenever", Priority.LOW),
        ("remind me to buy stamps", Priority.MEDIUM),
    ],
)
def test_priority_keywords(text: str, priority: Priority):
    command = parse_command(text, NOW)
    assert isinstance(command, CreateTask)
    assert command.priority is priority


def test_priority_words_are_not_part_of_title():
    command = parse_command("remind me to send the report asap", NOW)
    assert isinstance(command, CreateTask)
    assert command.title == "send the report"


def test_complete_task_reference():
    assert parse_command("mark the laundry task as done", NOW) == CompleteTask(
        title_or_id="laundry"
    )


def test_delete_task_reference():
    assert parse_command("delete the dentist task", NOW) == DeleteTask(title_or_id="dentist")


@pytest.mark.parametrize(
    ("text", "duration_s", "label"),
    [
        ("set a timer for 10 minutes", 600, None),
        ("set a timer for five minutes for the pasta", 300, "pasta"),
        ("timer 30 seconds", 30, None),
        ("set an alarm for 2 hours", 7200, None),
        ("start a 15 timer for tea", 900, "tea"),
    ],
)
def test_timer_duration_and_label(text: str, duration_s: int, label: str | None):
    assert parse_command(text, NOW) == SetTimer(duration_s=duration_s, label=label)


def test_timer_without_number_is_unknown():
    assert extract_timer("set a timer please") == (None, None)
    assert parse_command("set a timer please", NOW) == Unknown()


def test_shopping_list_item():
    assert parse_command("add milk to my shopping list", NOW) == AddListItem(
        item="milk", list_name="Shopping"
    )


def test_grocery_list_item_strips_list_words():
    assert extract_list_item("put eggs on the grocery list") == "eggs"


def test_empty_payloads_are_unknown():
    assert parse_command("remind me", NOW) == Unknown()
    assert parse_command("add to my shopping list", NOW) == Unknown()
    assert parse_command("mark the task as done", NOW) == Unknown()


def test_conversation_text_is_unknown():
    assert match_rule("what's the weather like") is None
    assert parse_command("what's the weather like", NOW) == Unknown()


def test_rule_order_prefers_specific_rules():
    assert match_rule("remind me to set a timer").tag == "remind"
    assert match_rule("add milk to the shopping list").tag == "list_item"
    assert match_rule("add buy flowers to my todo list").tag == "create"


# ---------------------------------------------------------------------
# Due dates
# ---------------------------------------------------------------------

@pytest.mark.parametrize(
    ("phrase", "expected"),
    [
        ("today", NOW),
        ("tomorrow", NOW + timedelta(days=1)),
        ("tonight", NOW.replace(hour=20, minute=0)),
        ("in the morning", NOW.replace(hour=9, minute=0)),
        ("this afternoon", NOW.replace(hour=14, minute=0)),
        ("this evening", NOW.replace(hour=18, minute=0)),
        ("next week", NOW + timedelta(days=7)),
    ],
)
def test_due_date_phrases(phrase: str, expected: datetime):
    assert extract_due_date(f"call the plumber {phrase}", NOW) == expected


def test_next_month_clamps_to_month_end():
    assert extract_due_date("renew passport next month", NOW) == datetime(2026, 2, 28, 10, 30)


def test_next_month_rolls_over_year():
    december = datetime(2026, 12, 15, 8, 0)
    assert extract_due_date("next month", december) == datetime(2027, 1, 15, 8, 0)


def test_day_phrase_wins_over_part_of_day():
    assert extract_due_date("tomorrow morning", NOW) == NOW + timedelta(days=1)


def test_no_time_phrase_means_no_due_date():
    assert extract_due_date("buy milk", NOW) is None
