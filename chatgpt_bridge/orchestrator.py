"""
Per-request lifecycle of a ChatGPT interaction.

    access check -> select conversation? -> new chat? -> paste prompt
    -> poll until stable (or timeout) -> extract answer

Only one interaction may drive the desktop at a time: the clipboard and the
foreground window are shared by the whole session. Callers that accept
overlapping requests have to queue them before they get here.
"""

import logging
import time
from contextlib import contextmanager
from typing import Callable, List, Optional, Tuple

from .config import BridgeConfig
from .errors import AccessError, ChatGPTBridgeError, InjectionError, ScrapeError
from .extraction import NO_RESPONSE_MESSAGE, extract_response
from .models import ConversationListing, InteractionRequest, InteractionResult, UiNode
from .reading_order import build_transcript, conversation_labels
from .stability import PollState, StabilityPolicy, Verdict

NEW_CHAT_LABEL = "New chat"

SEARCH_PROMPT_TEMPLATE = (
    "Please search the web for information about: {query}\n\n"
    "Use your web browsing capability to find the most up-to-date and relevant "
    "information. I need comprehensive results from searching the internet."
)

# Long search waits are reported after this many seconds.
SEARCH_PROGRESS_LOG_AFTER = 30.0


def is_search_like(prompt: str) -> bool:
    return "search the web" in prompt.lower()


def should_start_new_chat(request: InteractionRequest) -> bool:
    """Explicit choice wins; web searches without a conversation get a fresh chat."""
    if request.start_new_chat is not None:
        return request.start_new_chat
    return is_search_like(request.prompt) and not request.conversation_id


def preview(prompt: str, limit: int = 50) -> str:
    return prompt[:limit] + ("..." if len(prompt) > limit else "")


@contextmanager
def preserved_clipboard(desktop, logger: logging.Logger):
    """Save the clipboard, and put it back however the block exits."""
    try:
        saved = desktop.read_clipboard()
    except Exception as e:
        raise InjectionError(f"Could not read the clipboard: {e}") from e
    logger.debug("Saved clipboard content (%d chars)", len(saved))
    try:
        yield saved
    finally:
        try:
            desktop.write_clipboard(saved)
            logger.debug("Restored clipboard content")
        except Exception as e:
            logger.error("Could not restore clipboard content: %s", e)


class ChatGPTOrchestrator:
    """Runs ask/search/list-conversation requests against the desktop app.

    ``desktop`` is the accessibility and input collaborator (see
    ``desktop.ChatGPTDesktop``). ``sleep`` and ``clock`` default to the real
    ones; tests pass fakes so the poll loop runs instantly.
    """

    def __init__(
        self,
        desktop,
        config: Optional[BridgeConfig] = None,
        policy: Optional[StabilityPolicy] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.desktop = desktop
        self.config = config or BridgeConfig()
        self.policy = policy or StabilityPolicy(self.config.stable_checks)
        self.logger = logger or logging.getLogger(__name__)
        self.sleep = sleep
        self.clock = clock

    # ============================================
    # ACCESS
    # ============================================

    def check_access(self):
        """Make sure ChatGPT is running and return its window.

        Launches the app when it is not running. Failures are fatal and not
        retried.
        """
        self.logger.debug("Checking ChatGPT app access")
        try:
            running = self.desktop.is_running()
        except Exception as e:
            raise AccessError(
                "Cannot access ChatGPT app. Please make sure ChatGPT is installed "
                f"and properly configured. Error: {e}"
            ) from e

        if not running:
            self.logger.info("ChatGPT app is not running, attempting to launch...")
            try:
                self.desktop.launch()
            except Exception as e:
                self.logger.error("Error activating ChatGPT app: %s", e)
                raise AccessError("Could not activate ChatGPT app. Please start it manually.") from e
            self.sleep(self.config.launch_settle_delay)

        window = self.desktop.front_window(wait=0 if running else self.config.launch_settle_delay)
        if window is None:
            raise AccessError("Could not activate ChatGPT app. Please start it manually.")
        return window

    # ============================================
    # ASK / SEARCH
    # ============================================

    def ask(self, request: InteractionRequest) -> InteractionResult:
        """Send a prompt and return ChatGPT's answer.

        A poll timeout is not an error: the answer seen so far comes back
        with ``complete=False``.
        """
        window = self.check_access()

        search_like = is_search_like(request.prompt)
        timeout = self.config.search_timeout if search_like else self.config.standard_timeout
        self.logger.info('Sending prompt to ChatGPT: "%s"', preview(request.prompt))
        self.logger.info(
            "Operation type: %s, timeout: %d seconds",
            "SEARCH" if search_like else "ASK", timeout,
        )

        self.desktop.focus(window)
        self.sleep(self.config.initial_delay)

        if request.conversation_id:
            self._select_conversation(window, request.conversation_id)
        if should_start_new_chat(request):
            self.logger.info("Starting a new chat for this operation")
            self._start_new_chat(window)

        with preserved_clipboard(self.desktop, self.logger):
            self._inject_prompt(request.prompt)
            state, verdict, transcript = self._poll(window, search_like, timeout)

        if verdict is Verdict.NO_CONTENT or not transcript:
            self.logger.warning("No response text found after %.1fs", state.total_wait_time)
            return InteractionResult(text=NO_RESPONSE_MESSAGE, complete=False)

        try:
            text = extract_response(
                transcript,
                request.prompt,
                is_search_like=search_like,
                still_processing=state.still_processing,
            )
        except Exception:
            self.logger.exception("Response extraction failed, returning the raw transcript")
            text = transcript

        complete = verdict is Verdict.COMPLETE
        if complete:
            self.logger.info("ChatGPT response received successfully")
        else:
            self.logger.warning(
                "Timed out after %.1fs, returning a partial response", state.total_wait_time
            )
        return InteractionResult(text=text, complete=complete)

    def search(
        self,
        query: str,
        conversation_id: Optional[str] = None,
        start_new_chat: Optional[bool] = None,
    ) -> InteractionResult:
        """Ask ChatGPT to browse the web for ``query``."""
        self.logger.info(
            'Starting web search for: "%s". This may take several minutes, '
            "especially with thinking models...", preview(query),
        )
        if start_new_chat is None:
            start_new_chat = not conversation_id

        request = InteractionRequest(
            prompt=SEARCH_PROMPT_TEMPLATE.format(query=query),
            conversation_id=conversation_id,
            start_new_chat=start_new_chat,
        )
        try:
            result = self.ask(request)
        except ChatGPTBridgeError as e:
            self.logger.error("Search operation failed: %s", e)
            raise type(e)(
                f"Search operation failed: {e}. Note that search operations work best "
                "with the GPT-4o model and may fail with other models."
            ) from e

        if result.complete:
            self.logger.info("Web search completed successfully")
        else:
            self.logger.warning("Search may still be in progress. Returning partial results.")
        return result

    # ============================================
    # CONVERSATIONS
    # ============================================

    def list_conversations(self) -> ConversationListing:
        """Scrape the titles in the conversation sidebar (no polling)."""
        self.logger.info("Getting available conversations from ChatGPT")
        try:
            if not self.desktop.is_running():
                self.logger.warning("ChatGPT application is not running")
                return ConversationListing(reason="ChatGPT is not running")
            window = self.desktop.front_window()
        except Exception as e:
            self.logger.error("Error locating ChatGPT: %s", e)
            raise ScrapeError(f"Error retrieving conversations: {e}") from e

        if window is None:
            self.logger.warning("No ChatGPT window found")
            return ConversationListing(reason="No ChatGPT window found")

        self.desktop.focus(window)
        self.sleep(self.config.list_conversations_delay)
        try:
            nodes = self.desktop.sidebar_snapshot(window)
        except Exception as e:
            self.logger.error("Error getting ChatGPT conversations: %s", e)
            raise ScrapeError(f"Error retrieving conversations: {e}") from e

        titles = conversation_labels(nodes)
        if not titles:
            self.logger.warning("No conversations found in ChatGPT")
            return ConversationListing(reason="No conversations found")

        self.logger.info("Found %d conversations", len(titles))
        return ConversationListing(titles=titles)

    # ============================================
    # STEPS
    # ============================================

    def _select_conversation(self, window, conversation_id: str) -> None:
        try:
            if self.desktop.click_labelled(window, conversation_id):
                self.sleep(self.config.conversation_delay)
            else:
                self.logger.warning("Conversation %r not found, using the current one", conversation_id)
        except Exception as e:
            self.logger.warning("Could not select conversation %r: %s", conversation_id, e)

    def _start_new_chat(self, window) -> None:
        try:
            found = self.desktop.click_labelled(window, NEW_CHAT_LABEL, control_type="Button")
            if not found:
                found = self.desktop.click_described(window, NEW_CHAT_LABEL)
            if found:
                self.sleep(self.config.new_chat_delay)
            else:
                self.logger.warning("New chat button not found, continuing in the current chat")
        except Exception as e:
            self.logger.warning("Could not start a new chat: %s", e)

    def _inject_prompt(self, prompt: str) -> None:
        try:
            self.desktop.clear_input()
            self.sleep(self.config.clear_input_delay)
            self.desktop.write_clipboard(prompt)
            self.desktop.paste()
            self.sleep(self.config.typing_delay)
            self.desktop.submit()
        except Exception as e:
            raise InjectionError(f"Could not send the prompt to ChatGPT: {e}") from e

    def _poll(
        self, window, search_like: bool, timeout: float
    ) -> Tuple[PollState, Verdict, Optional[str]]:
        """Poll the window until the policy reports COMPLETE or time runs out."""
        state = PollState()
        transcript: Optional[str] = None
        start = self.clock()

        if search_like:
            # Early ticks of a web search are almost always still "thinking".
            self.sleep(self.config.search_grace_delay)
            state.total_wait_time = self.clock() - start

        while state.total_wait_time < timeout:
            self.sleep(self.config.check_interval)
            state.total_wait_time = self.clock() - start

            try:
                nodes: List[UiNode] = self.desktop.snapshot(window)
            except Exception as e:
                self.logger.warning("Snapshot failed at %.1fs, skipping tick: %s", state.total_wait_time, e)
                continue

            transcript = build_transcript(nodes)
            verdict = self.policy.observe(state, transcript, nodes)
            if verdict is Verdict.COMPLETE:
                self.logger.debug("Text stable after %.1fs", state.total_wait_time)
                return state, verdict, transcript

            if (
                search_like
                and state.still_processing
                and state.total_wait_time > SEARCH_PROGRESS_LOG_AFTER
            ):
                self.logger.info(
                    "Search operation in progress (%.0fs). This may take several minutes "
                    "with thinking models.", state.total_wait_time,
                )

        return state, self.policy.conclude(state, transcript), transcript
