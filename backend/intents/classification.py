"""
Classification result types.

ClassificationResult is a tagged variant:
    IsCommand(command) | IsConversation()

Provenance (source, failure) is carried alongside for logging only;
routing depends exclusively on the variant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from intents.commands import Command, Unknown


class ClassificationSource(str, Enum):
    """Which stage of the pipeline produced the decision."""

    LOCAL = "LOCAL"
    REMOTE = "REMOTE"
    FALLBACK = "FALLBACK"


class ClassificationFailure(str, Enum):
    """Why the remote stage could not produce a verdict."""

    TIMEOUT = "TIMEOUT"
    TRANSPORT = "TRANSPORT"
    MISSING_CREDENTIAL = "MISSING_CREDENTIAL"


class ClassificationResult:
    """Base classification result."""

    @property
    def is_command(self) -> bool:
        return isinstance(self, IsCommand)


@dataclass(frozen=True)
class IsCommand(ClassificationResult):
    """Utterance is a discrete command to execute locally."""
    command: Command = field(default_factory=Unknown)


@dataclass(frozen=True)
class IsConversation(ClassificationResult):
    """Utterance is a conversational turn for the remote agent."""
