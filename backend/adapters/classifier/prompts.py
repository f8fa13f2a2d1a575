"""Classifier prompts (versioned)."""

from __future__ import annotations

CLASSIFIER_PROMPT_VERSION: str = "v1"

CLASSIFIER_PROMPT_V1: str = """
Classify if the user input is a COMMAND (task, reminder, timer, list item)
or a QUESTION that needs a conversation.

COMMAND examples:
- "Remind me to call mom"
- "Add milk to my shopping list"
- "Create a task for the meeting tomorrow"
- "Set a timer for ten minutes"

QUESTION examples:
- "What's the weather?"
- "How many cups in an ounce?"
- "What time is it?"

Return JSON only: {"intent": "command"} or {"intent": "question"}
""".strip()
