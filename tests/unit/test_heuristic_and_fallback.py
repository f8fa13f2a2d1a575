# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from errors import (
    ClassificationTimeout,
    ClassificationTransportError,
    MissingCredentialError,
)
from intents.classification import (
    ClassificationFailure,
    IsCommand,
    IsConversation,
)
from intents.fallback import failure_from_exception, fallback_for
from intents.heuristic import is_local_command, match_command_keyword


@pytest.mark.parametrize(
    ("text", "keyword"),
    [
        ("Remind me to call mom", "remind"),
        ("add a TASK for friday", "task"),
        ("set a timer for ten minutes", "timer"),
        ("wake me with an alarm", "alarm"),
        ("mark laundry complete", "complete"),
        ("the dishes are done", "done"),
        ("delete the dentist task", "task"),
        ("remove eggs", "remove"),
        ("add milk to my shopping list", "shopping"),
        ("grocery run", "grocery"),
    ],
)
def test_first_keyword_wins(text: str, keyword: str):
    assert match_command_keyword(text) == keyword


def test_keyword_match_is_substring():
    assert match_command_keyword("any reminders?") == "remind"
    assert match_command_keyword("that is undone") == "done"


def test_conversation_text_has_no_keyword():
    assert match_command_keyword("what's the weather like today") is None
    assert not is_local_command("tell me a joke")
    assert is_local_command("remind me")


def test_custom_keyword_table():
    assert match_command_keyword("play some jazz", keywords=("play",)) == "play"
    assert match_command_keyword("remind me", keywords=()) is None


@pytest.mark.parametrize("failure", list(ClassificationFailure))
def test_every_failure_falls_back_to_conversation(failure: ClassificationFailure):
    assert fallback_for(failure) == IsConversation()
    assert not fallback_for(failure).is_command


@pytest.mark.parametrize(
    ("exc", "failure"),
    [
        (ClassificationTimeout("late"), ClassificationFailure.TIMEOUT),
        (TimeoutError(), ClassificationFailure.TIMEOUT),
        (MissingCredentialError("no key"), ClassificationFailure.MISSING_CREDENTIAL),
        (ClassificationTransportError("500"), ClassificationFailure.TRANSPORT),
        (ValueError("bad json"), ClassificationFailure.TRANSPORT),
    ],
)
def test_failure_from_exception(exc: BaseException, failure: ClassificationFailure):
    assert failure_from_exception(exc) is failure


def test_is_command_property():
    assert IsCommand().is_command
    assert not IsConversation().is_command
