"""
Completion detection.

ChatGPT gives no reliable "done" signal. Streaming cursors disappear while a
"Searching the web" banner shows up, a "Thinking" label can sit unchanged for
several polls, and so on. Completion is therefore inferred from the transcript
staying identical for several consecutive polls, with marker scans that hold
the count at zero while the app still looks busy.

The rules live in StabilityPolicy so that a different heuristic can be dropped
into the orchestrator without touching the poll loop.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from .models import UiNode

logger = logging.getLogger(__name__)

STREAMING_CURSOR = "\u258d"

# Transcript substrings that mean generation is still running.
PROGRESS_TEXT_MARKERS = (STREAMING_CURSOR, "Thinking", "Searching", "browsing")

# Transcript substrings that suggest generation has finished.
COMPLETION_TEXT_MARKERS = ("Regenerate", "Continue generating")

# Node descriptions of spinners and status banners.
PROGRESS_NODE_MARKERS = ("loading", "thinking", "searching")


class Verdict(Enum):
    CONTINUE = "continue"
    COMPLETE = "complete"
    NO_CONTENT = "no_content"


@dataclass
class PollState:
    previous_text: str = ""
    stable_count: int = 0
    total_wait_time: float = 0.0
    still_processing: bool = False


def has_progress_text(transcript: str) -> bool:
    return any(marker in transcript for marker in PROGRESS_TEXT_MARKERS)


def has_completion_text(transcript: str) -> bool:
    return any(marker in transcript for marker in COMPLETION_TEXT_MARKERS)


def find_progress_node(nodes: Iterable[UiNode]) -> Optional[UiNode]:
    """First node that looks like a spinner, progress bar or busy banner."""
    for node in nodes:
        if "progress" in (node.role or "").lower():
            return node
        text = node.text or ""
        if any(marker in text for marker in PROGRESS_NODE_MARKERS):
            return node
    return None


class StabilityPolicy:
    """Decides, one poll at a time, whether the answer has finished.

    Rules, in order, for every tick:

    1. An unchanged transcript bumps ``stable_count``; a changed one resets it
       and becomes the new reference. An empty transcript never counts as
       stable: right after sending, the window often has nothing scraped yet.
    2. A progress marker in the text forces ``still_processing`` and resets
       the count.
    3. So does a progress-looking node anywhere in the raw snapshot.
    4. With neither override, a completion marker ("Regenerate",
       "Continue generating") bumps the count once more. Together with rule 1
       this can count twice in one tick; marker ticks are meant to finish
       early.
    5. COMPLETE once the count reaches ``stable_checks``.
    """

    def __init__(self, stable_checks: int = 3):
        if stable_checks < 1:
            raise ValueError("stable_checks must be at least 1")
        self.stable_checks = stable_checks

    def observe(
        self,
        state: PollState,
        transcript: str,
        nodes: Iterable[UiNode] = (),
    ) -> Verdict:
        """Fold one tick into ``state`` and return the verdict for it."""
        if transcript and transcript == state.previous_text:
            state.stable_count += 1
        else:
            state.stable_count = 0
            state.previous_text = transcript

        state.still_processing = False

        if has_progress_text(transcript):
            state.still_processing = True
            state.stable_count = 0
            logger.debug("Still processing (text indicators): %.1fs", state.total_wait_time)

        busy_node = find_progress_node(nodes)
        if busy_node is not None:
            state.still_processing = True
            state.stable_count = 0
            logger.debug("Processing indicator found: %s %r", busy_node.role, busy_node.text[:60])

        if not state.still_processing and has_completion_text(transcript):
            state.stable_count += 1
            logger.debug("Completion indicator found, stable count: %d", state.stable_count)

        if state.stable_count >= self.stable_checks:
            return Verdict.COMPLETE
        return Verdict.CONTINUE

    def conclude(self, state: PollState, transcript: Optional[str]) -> Verdict:
        """Verdict for a poll loop that ran out of time."""
        if not transcript:
            return Verdict.NO_CONTENT
        return Verdict.CONTINUE
