"""
Tool dispatch: validates a `chatgpt` tool call, runs it on the orchestrator
and turns the outcome into the tool result envelope

    {"content": [{"type": "text", "text": ...}], "isError": bool}

No exception escapes handle(); failures come back as isError envelopes with a
single message line. Tracebacks go to the log only.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import InvalidToolCall
from .models import InteractionRequest
from .orchestrator import ChatGPTOrchestrator, preview

logger = logging.getLogger(__name__)

TOOL_NAME = "chatgpt"
OPERATIONS = ("ask", "get_conversations", "search")

CHATGPT_TOOL: Dict[str, Any] = {
    "name": TOOL_NAME,
    "description": "Interact with the ChatGPT desktop app",
    "inputSchema": {
        "type": "object",
        "properties": {
            "operation": {
                "type": "string",
                "description": "Operation to perform: 'ask', 'get_conversations', or 'search'",
                "enum": list(OPERATIONS),
            },
            "prompt": {
                "type": "string",
                "description": "The prompt to send to ChatGPT (required for ask and search operations)",
            },
            "conversation_id": {
                "type": "string",
                "description": "Optional conversation ID to continue a specific conversation",
            },
            "start_new_chat": {
                "type": "boolean",
                "description": "Whether to start a new chat before sending the prompt (default: false)",
            },
        },
        "required": ["operation"],
    },
}


@dataclass(frozen=True)
class ToolCall:
    operation: str
    prompt: Optional[str] = None
    conversation_id: Optional[str] = None
    start_new_chat: Optional[bool] = None


def text_result(text: str) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": text}], "isError": False}


def error_result(text: str) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": text}], "isError": True}


def parse_tool_call(args: Any) -> ToolCall:
    """Check the arguments against the tool schema and return a ToolCall."""
    if not isinstance(args, dict):
        raise InvalidToolCall("No arguments provided")

    operation = args.get("operation")
    if operation not in OPERATIONS:
        raise InvalidToolCall(
            f"Invalid arguments for ChatGPT tool: operation must be one of {', '.join(OPERATIONS)}"
        )

    prompt = args.get("prompt")
    conversation_id = args.get("conversation_id")
    start_new_chat = args.get("start_new_chat")

    if prompt is not None and not isinstance(prompt, str):
        raise InvalidToolCall("Invalid arguments for ChatGPT tool: prompt must be a string")
    if conversation_id is not None and not isinstance(conversation_id, str):
        raise InvalidToolCall("Invalid arguments for ChatGPT tool: conversation_id must be a string")
    if start_new_chat is not None and not isinstance(start_new_chat, bool):
        raise InvalidToolCall("Invalid arguments for ChatGPT tool: start_new_chat must be a boolean")
    if operation in ("ask", "search") and not prompt:
        raise InvalidToolCall(f"Prompt is required for {operation} operation")

    return ToolCall(
        operation=operation,
        prompt=prompt,
        conversation_id=conversation_id or None,
        start_new_chat=start_new_chat,
    )


class ToolDispatcher:
    """Maps `chatgpt` tool calls onto a ChatGPTOrchestrator."""

    def __init__(self, orchestrator: ChatGPTOrchestrator):
        self.orchestrator = orchestrator

    def handle(self, name: str, args: Any) -> Dict[str, Any]:
        if name != TOOL_NAME:
            return error_result(f"Unknown tool: {name}")

        try:
            call = parse_tool_call(args)
        except InvalidToolCall as e:
            logger.error("Rejected tool call: %s", e)
            return error_result(f"Error: {e}")

        try:
            return self._run(call)
        except Exception as e:
            logger.exception("Tool call failed: %s", call.operation)
            context = call.operation
            if call.prompt:
                context += f' "{preview(call.prompt)}"'
            return error_result(f"Error: {context} failed: {e}")

    def _run(self, call: ToolCall) -> Dict[str, Any]:
        if call.operation == "ask":
            result = self.orchestrator.ask(InteractionRequest(
                prompt=call.prompt,
                conversation_id=call.conversation_id,
                start_new_chat=call.start_new_chat,
            ))
            return text_result(result.text or "No response received from ChatGPT.")

        if call.operation == "search":
            result = self.orchestrator.search(
                call.prompt, call.conversation_id, call.start_new_chat
            )
            return text_result(result.text or "No search results received from ChatGPT.")

        listing = self.orchestrator.list_conversations()
        if listing.titles:
            return text_result(
                f"Found {len(listing.titles)} conversation(s):\n\n" + "\n".join(listing.titles)
            )
        text = "No conversations found in ChatGPT."
        if listing.reason and listing.reason != "No conversations found":
            text += f" ({listing.reason})"
        return text_result(text)
