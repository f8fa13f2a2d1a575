"""
Command parser.

Pure, synchronous, deterministic mapping from transcript text to a Command.
Rules are tagged and evaluated in table order; first match wins. Anything
that matches no rule, or matches a rule but yields an empty payload, is
Unknown.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from intents.commands import (
    AddListItem,
    Command,
    CompleteTask,
    CreateTask,
    DeleteTask,
    Priority,
    SetTimer,
    Unknown,
)
from intents.due_dates import TRAILING_TIME_PHRASES, extract_due_date
from spec import DEFAULT_LIST_NAME


# =============================================================================
# Vocabulary
# =============================================================================

# Longest phrases first so "remind me to" wins over "remind me".
TASK_LEAD_PHRASES: tuple[str, ...] = (
    "remind me to",
    "remind me",
    "add a task to",
    "add task to",
    "create a task to",
    "create task to",
    "add a task",
    "add task",
    "create a task",
    "create task",
    "task to",
    "add",
    "create",
)

PRIORITY_PHRASES: tuple[tuple[str, Priority], ...] = (
    ("urgent", Priority.HIGH),
    ("important", Priority.HIGH),
    ("high priority", Priority.HIGH),
    ("asap", Priority.HIGH),
    ("low priority", Priority.LOW),
    ("whenever", Priority.LOW),
)

TITLE_TRAILING_NOISE: tuple[str, ...] = (
    *TRAILING_TIME_PHRASES,
    *(phrase for phrase, _ in PRIORITY_PHRASES),
    "to my todo list",
    "to my to-do list",
    "to the todo list",
    "to my list",
    "to the list",
    "to my tasks",
    "on my list",
    "this",
    "by",
)

COMPLETE_VERBS: tuple[str, ...] = ("complete", "done", "finish", "finished", "mark")
DELETE_VERBS: tuple[str, ...] = ("delete", "remove", "cancel")
TIMER_NOUNS: tuple[str, ...] = ("timer", "alarm")
LIST_NOUNS: tuple[str, ...] = ("shopping", "grocery", "groceries")

REFERENCE_NOISE: tuple[str, ...] = (
    "complete", "completed", "finish", "finished", "mark", "marked",
    "done", "delete", "remove", "cancel", "task", "as", "the", "my",
    "please",
)

LIST_NOISE: tuple[str, ...] = (
    "add", "put", "to", "on", "shopping", "grocery", "groceries", "list",
    "the", "my", "our", "please",
)

NUMBER_WORDS: dict[str, int] = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11,
    "twelve": 12, "thirteen": 13, "fourteen": 14, "fifteen": 15,
    "sixteen": 16, "seventeen": 17, "eighteen": 18, "nineteen": 19,
    "twenty": 20, "thirty": 30, "forty": 40, "fifty": 50, "sixty": 60,
}

UNIT_SECONDS: tuple[tuple[str, int], ...] = (
    ("second", 1),
    ("sec", 1),
    ("minute", 60),
    ("min", 60),
    ("hour", 3600),
)

_DURATION_TOKEN = r"(\d+|" + "|".join(NUMBER_WORDS) + r")"
_DURATION_RE = re.compile(
    rf"\b{_DURATION_TOKEN}\s*(seconds?|secs?|minutes?|mins?|hours?)?\b",
    re.IGNORECASE,
)
_TRAILING_PUNCT = ".,!?;: "


# =============================================================================
# Text helpers
# =============================================================================

def _has_word(lowered: str, words: tuple[str, ...]) -> bool:
    return any(re.search(rf"\b{re.escape(w)}\b", lowered) for w in words)


def _strip_words(text: str, words: tuple[str, ...]) -> str:
    pattern = r"\b(" + "|".join(re.escape(w) for w in words) + r")\b"
    stripped = re.sub(pattern, " ", text, flags=re.IGNORECASE)
    return _squash(stripped)


def _squash(text: str) -> str:
    return " ".join(text.split()).strip(_TRAILING_PUNCT)


def _strip_trailing(text: str, phrases: tuple[str, ...]) -> str:
    """Repeatedly drop any of phrases from the end of text."""
    result = _squash(text)
    changed = True
    while changed and result:
        changed = False
        lowered = result.lower()
        for phrase in phrases:
            if lowered == phrase or lowered.endswith(" " + phrase):
                result = _squash(result[: len(result) - len(phrase)])
                changed = True
                break
    return result


# =============================================================================
# Field extraction
# =============================================================================

def extract_task_title(text: str) -> str:
    """
    Drop the leading command phrase and trailing time / priority words.

    "remind me to call mom tomorrow" -> "call mom"
    """
    title = text
    for phrase in TASK_LEAD_PHRASES:
        match = re.search(rf"\b{re.escape(phrase)}\b", text, re.IGNORECASE)
        if match:
            title = text[match.end():]
            break

    title = _squash(title)
    if title.lower().startswith("to "):
        title = title[3:]

    return _strip_trailing(title, TITLE_TRAILING_NOISE)


def extract_priority(text: str) -> Priority:
    lowered = text.lower()
    for phrase, priority in PRIORITY_PHRASES:
        if phrase in lowered:
            return priority
    return Priority.MEDIUM


def extract_task_reference(text: str) -> str:
    """'mark the laundry task as done' -> 'laundry'"""
    return _strip_words(text, REFERENCE_NOISE)


def extract_list_item(text: str) -> str:
    """'add milk to my shopping list' -> 'milk'"""
    return _strip_words(text, LIST_NOISE)


def _to_int(token: str) -> int:
    if token.isdigit():
        return int(token)
    return NUMBER_WORDS[token.lower()]


def extract_timer(text: str) -> tuple[int | None, str | None]:
    """
    Return (duration_s, label).

    Unit is read from the word following the number, else from anywhere in
    the text, else minutes. Label is the text after the first "for" that
    does not introduce the duration itself.
    """
    lowered = text.lower()
    duration_s: int | None = None

    match = _DURATION_RE.search(text)
    if match:
        amount = _to_int(match.group(1))
        unit_word = (match.group(2) or "").lower()
        multiplier = 60
        source = unit_word or lowered
        for unit, seconds in UNIT_SECONDS:
            if unit_word and unit_word.startswith(unit):
                multiplier = seconds
                break
            if not unit_word and re.search(rf"\b{unit}s?\b", source):
                multiplier = seconds
                break
        duration_s = amount * multiplier

    label: str | None = None
    for for_match in re.finditer(r"\bfor\s+", text, re.IGNORECASE):
        candidate = text[for_match.end():]
        if re.match(rf"{_DURATION_TOKEN}\b", candidate, re.IGNORECASE):
            continue
        candidate = re.sub(r"^(the|my|a|an)\s+", "", candidate, flags=re.IGNORECASE)
        candidate = _squash(candidate)
        if candidate:
            label = candidate
            break

    return duration_s, label


# =============================================================================
# Rule table
# =============================================================================

Builder = Callable[[str, datetime], Command]


@dataclass(frozen=True)
class ParseRule:
    """Tagged parse rule: predicate over lowered text + command builder."""
    tag: str
    matches: Callable[[str], bool]
    build: Builder


def _build_create(text: str, now: datetime) -> Command:
    title = extract_task_title(text)
    if not title:
        return Unknown()
    return CreateTask(
        title=title,
        due_date=extract_due_date(text, now),
        priority=extract_priority(text),
    )


def _build_complete(text: str, _: datetime) -> Command:
    ref = extract_task_reference(text)
    return CompleteTask(title_or_id=ref) if ref else Unknown()


def _build_delete(text: str, _: datetime) -> Command:
    ref = extract_task_reference(text)
    return DeleteTask(title_or_id=ref) if ref else Unknown()


def _build_timer(text: str, _: datetime) -> Command:
    duration_s, label = extract_timer(text)
    if not duration_s:
        return Unknown()
    return SetTimer(duration_s=duration_s, label=label)


def _build_list_item(text: str, _: datetime) -> Command:
    item = extract_list_item(text)
    if not item:
        return Unknown()
    return AddListItem(item=item, list_name=DEFAULT_LIST_NAME)


PARSE_RULES: tuple[ParseRule, ...] = (
    ParseRule("remind", lambda s: "remind" in s, _build_create),
    ParseRule("timer", lambda s: _has_word(s, TIMER_NOUNS), _build_timer),
    ParseRule("complete", lambda s: _has_word(s, COMPLETE_VERBS), _build_complete),
    ParseRule("delete", lambda s: _has_word(s, DELETE_VERBS), _build_delete),
    ParseRule("list_item", lambda s: _has_word(s, LIST_NOUNS), _build_list_item),
    ParseRule(
        "create",
        lambda s: _has_word(s, ("task", "todo", "to-do"))
        or (_has_word(s, ("add",)) and _has_word(s, ("list",))),
        _build_create,
    ),
)


def match_rule(text: str) -> ParseRule | None:
    lowered = text.lower()
    for rule in PARSE_RULES:
        if rule.matches(lowered):
            return rule
    return None


def parse_command(text: str, now: datetime) -> Command:
    """
    Map a transcript to a Command.

    Never raises; unparseable input yields Unknown, which the executor
    reports as "not recognized".
    """
    rule = match_rule(text)
    if rule is None:
        return Unknown()
    return rule.build(text, now)
