"""Pull the new answer out of the full scraped transcript."""

import logging
import re

from .stability import STREAMING_CURSOR

logger = logging.getLogger(__name__)

NO_RESPONSE_MESSAGE = (
    "No response text found. ChatGPT may still be processing or encountered an error."
)

PARTIAL_SEARCH_NOTE = "\n\nNote: The search may still be in progress. This is a partial result."

_CHROME_RE = re.compile(r"Regenerate( response)?|Continue generating|" + re.escape(STREAMING_CURSOR))

# Endings that make a short answer look finished.
_FINAL_PUNCTUATION = (".", "!", "?", ":", ")", "}", "]")

SHORT_ANSWER_LENGTH = 50


def prompt_anchor(prompt: str) -> str:
    """The prompt as it appears in the transcript: newlines flattened to spaces."""
    return prompt.replace("\r\n", " ").replace("\n", " ")


def answer_after_prompt(transcript: str, prompt: str) -> str:
    """Text after the first occurrence of the prompt, or the whole transcript.

    The prompt is not always echoed verbatim (long prompts get truncated in
    the UI), so a missing anchor falls back to everything scraped.
    """
    anchor = prompt_anchor(prompt)
    if anchor:
        pos = transcript.find(anchor)
        if pos >= 0:
            answer = transcript[pos + len(anchor):]
            if answer:
                return answer
    return transcript


def looks_truncated(text: str) -> bool:
    if not text or len(text) >= SHORT_ANSWER_LENGTH:
        return False
    if text.endswith(_FINAL_PUNCTUATION):
        return False
    return "\n\n" not in text


def clean_response_text(text: str) -> str:
    """Strip scraped UI chrome and surrounding whitespace."""
    cleaned = _CHROME_RE.sub("", text).strip()
    if looks_truncated(cleaned):
        logger.warning("ChatGPT response may be incomplete: %r", cleaned)
    return cleaned


def extract_response(
    transcript: str,
    prompt: str,
    is_search_like: bool = False,
    still_processing: bool = False,
) -> str:
    """Return the answer to ``prompt`` contained in ``transcript``.

    When a search-like request timed out while ChatGPT still looked busy, a
    note is appended so the caller knows the answer may be partial.
    """
    if not transcript:
        return NO_RESPONSE_MESSAGE

    answer = answer_after_prompt(transcript, prompt)
    if is_search_like and still_processing:
        answer += PARTIAL_SEARCH_NOTE
    return clean_response_text(answer)
