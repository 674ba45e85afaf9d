"""
Transports for the `chatgpt` tool.

    --daemon   newline-delimited JSON on stdin/stdout (persistent)
    --mcp      MCP server on stdio (FastMCP)
    --tool/--args   one-shot call, envelope printed to stdout

stdout carries protocol messages only; logs go to stderr (see log.py).
"""

import argparse
import asyncio
import json
import os
import sys
import threading
from typing import Any, Dict, Optional, TextIO

from . import __version__
from .config import BridgeConfig
from .desktop import ChatGPTDesktop
from .dispatch import CHATGPT_TOOL, TOOL_NAME, ToolDispatcher
from .log import setup_logging
from .orchestrator import ChatGPTOrchestrator

# Clipboard and foreground window are shared by the whole desktop session, so
# tool calls are run one at a time.
_call_lock = threading.Lock()


def build_dispatcher(config: BridgeConfig) -> ToolDispatcher:
    desktop = ChatGPTDesktop(app_name=config.app_name, app_path=config.app_path)
    return ToolDispatcher(ChatGPTOrchestrator(desktop, config))


def call_tool(dispatcher: ToolDispatcher, name: str, args: Any) -> Dict[str, Any]:
    with _call_lock:
        return dispatcher.handle(name, args)


# ============================================
# DAEMON (newline-delimited JSON)
# ============================================

def run_daemon(
    dispatcher: ToolDispatcher,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
) -> None:
    """
    Daemon mode: read tool calls from stdin, write responses to stdout.

    Protocol (newline-delimited JSON):
    → {"id": "xxx", "tool": "chatgpt", "args": {...}}\\n
    ← {"id": "xxx", "result": {"content": [...], "isError": false}}\\n

    Special commands:
    → {"id": "xxx", "tool": "_ping"}         ← {"id": "xxx", "result": {"pong": true}}
    → {"id": "xxx", "tool": "_list_tools"}   ← {"id": "xxx", "result": {"tools": [...]}}
    → {"id": "xxx", "tool": "_quit"}         ← {"id": "xxx", "result": {"quit": true}}
    """
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout

    def send(message: Dict[str, Any]) -> None:
        stdout.write(json.dumps(message) + "\n")
        stdout.flush()

    # Signal ready
    send({"ready": True, "pid": os.getpid()})

    for line in stdin:
        line = line.strip()
        if not line:
            continue

        try:
            msg = json.loads(line)
        except json.JSONDecodeError:
            send({"error": "Invalid JSON"})
            continue
        if not isinstance(msg, dict):
            send({"error": "Invalid JSON"})
            continue

        msg_id = msg.get("id", "")
        tool_id = msg.get("tool", "")

        if tool_id == "_ping":
            send({"id": msg_id, "result": {"pong": True}})
        elif tool_id == "_list_tools":
            send({"id": msg_id, "result": {"tools": [CHATGPT_TOOL]}})
        elif tool_id == "_quit":
            send({"id": msg_id, "result": {"quit": True}})
            break
        else:
            send({"id": msg_id, "result": call_tool(dispatcher, tool_id, msg.get("args", {}))})


# ============================================
# MCP (stdio)
# ============================================

def build_mcp_server(dispatcher: ToolDispatcher):
    """FastMCP server exposing the `chatgpt` tool."""
    from mcp.server.fastmcp import FastMCP
    from mcp.server.fastmcp.exceptions import ToolError

    mcp = FastMCP("ChatGPT MCP Tool")

    @mcp.tool(name=TOOL_NAME, description=CHATGPT_TOOL["description"])
    async def chatgpt(
        operation: str,
        prompt: Optional[str] = None,
        conversation_id: Optional[str] = None,
        start_new_chat: Optional[bool] = None,
    ) -> str:
        """Operation is one of 'ask', 'get_conversations' or 'search'; prompt is required for ask and search."""
        args: Dict[str, Any] = {"operation": operation}
        if prompt is not None:
            args["prompt"] = prompt
        if conversation_id is not None:
            args["conversation_id"] = conversation_id
        if start_new_chat is not None:
            args["start_new_chat"] = start_new_chat

        # The interaction blocks for up to several minutes; keep the event loop free.
        envelope = await asyncio.to_thread(call_tool, dispatcher, TOOL_NAME, args)
        text = envelope["content"][0]["text"]
        if envelope["isError"]:
            raise ToolError(text)
        return text

    return mcp


def run_mcp(dispatcher: ToolDispatcher) -> None:
    build_mcp_server(dispatcher).run(transport="stdio")


# ============================================
# ONE-SHOT
# ============================================

def run_oneshot(dispatcher: ToolDispatcher, tool_id: str, raw_args: str) -> int:
    try:
        args = json.loads(raw_args)
    except json.JSONDecodeError as e:
        print(json.dumps({"error": f"Invalid JSON args: {e}"}))
        return 1

    result = call_tool(dispatcher, tool_id, args)
    print(json.dumps(result))
    return 1 if result.get("isError") else 0


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="chatgpt-bridge", description="Drive the ChatGPT desktop app as a tool"
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--daemon", action="store_true", help="Serve newline-delimited JSON on stdio")
    mode.add_argument("--mcp", action="store_true", help="Serve the MCP protocol on stdio")
    parser.add_argument("--tool", default=TOOL_NAME, help="Tool name for a one-shot call")
    parser.add_argument("--args", help="JSON-encoded arguments for a one-shot call")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    parsed = parse_args(argv)
    config = BridgeConfig.from_env()
    logger = setup_logging(config)
    logger.info("Starting ChatGPT bridge")
    logger.debug("Configuration: Debug mode: %s, Log level: %s", config.debug, config.log_level)

    dispatcher = build_dispatcher(config)
    try:
        if parsed.daemon:
            run_daemon(dispatcher)
            return 0
        if parsed.mcp:
            logger.info("ChatGPT MCP Server running on stdio")
            run_mcp(dispatcher)
            return 0
        if parsed.args is None:
            print(json.dumps({"error": "--args is required without --daemon or --mcp"}))
            return 2
        return run_oneshot(dispatcher, parsed.tool, parsed.args)
    except KeyboardInterrupt:
        return 0
    except Exception:
        logger.exception("Fatal error")
        return 1
