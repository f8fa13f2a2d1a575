import asyncio
import os
import sys
import time

from openai import AsyncOpenAI

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from adapters.classifier.openai_classifier import OpenAIIntentClassifier  # noqa: E402
from intents.heuristic import match_command_keyword  # noqa: E402
from spec import CLASSIFICATION_TIMEOUT_MS, ms_to_seconds  # noqa: E402

openai_api_key = os.getenv("OPENAI_API_KEY")
client = AsyncOpenAI(api_key=openai_api_key)

UTTERANCES = [
    "remind me to call mom tomorrow",
    "what's the weather like",
    "how many cups in an ounce",
    "add eggs to the list",
]


async def main():
    classifier = OpenAIIntentClassifier(client=client, model="gpt-4o-mini")
    timeout_s = ms_to_seconds(CLASSIFICATION_TIMEOUT_MS)

    for text in sys.argv[1:] or UTTERANCES:
        keyword = match_command_keyword(text)
        start = time.perf_counter()
        try:
            verdict = await classifier.classify(text, timeout_s)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            verdict = f"{type(exc).__name__}: {exc}"
        elapsed_ms = (time.perf_counter() - start) * 1000
        print(f"{elapsed_ms:7.1f} ms  keyword={keyword!s:<9} remote={verdict}  {text!r}")

asyncio.run(main())
