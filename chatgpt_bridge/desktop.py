"""
Windows desktop access for the ChatGPT app.

Everything that touches the real desktop lives here: finding and focusing the
ChatGPT window, walking its UI Automation tree (pywinauto, backend "uia"),
simulating keys (pyautogui) and the clipboard (PowerShell).

pywinauto and pyautogui are imported on first use. pyautogui connects to the
display at import time, and neither library is needed by the pure
transcript/stability code or its tests.
"""

import logging
import os
import subprocess
import time
from collections import deque
from typing import List, Optional, Tuple

from .models import UiNode

logger = logging.getLogger(__name__)

_pyautogui = None

# Upper bound for the UIA tree walk; the conversation view nests deeply.
MAX_TREE_DEPTH = 40

# Depth searched for the conversation container and the sidebar.
CONTAINER_SEARCH_DEPTH = 12

CONTAINER_CONTROL_TYPES = ("Group", "Document", "Pane")

# Controls the sidebar lists conversations as.
ITEM_CONTROL_TYPES = ("ListItem", "TreeItem", "Hyperlink")

# A container with more direct Text children than this holds the conversation.
CONVERSATION_MIN_TEXTS = 3


def _get_pyautogui():
    """Import pyautogui lazily and apply the agent's safety settings once."""
    global _pyautogui
    if _pyautogui is None:
        import pyautogui

        # Safety: move mouse to (0,0) to abort
        pyautogui.FAILSAFE = True
        # Don't pause between actions (we manage our own waits)
        pyautogui.PAUSE = 0.05
        _pyautogui = pyautogui
    return _pyautogui


# ============================================
# WINDOW MANAGEMENT
# ============================================

def title_matches(app_name: str, title: str) -> bool:
    """Exact phrase or all-words match of app_name against a window title."""
    app_lower = app_name.lower().strip()
    title_lower = (title or "").lower()
    if not app_lower or not title_lower.strip():
        return False
    if app_lower in title_lower:
        return True
    app_words = [w for w in app_lower.split() if len(w) > 1]
    return bool(app_words) and all(w in title_lower for w in app_words)


def find_window(app_name: str):
    """
    Find the app's top-level window.
    Returns a pywinauto WindowSpecification (supports child_window()) or None.

    Connects by handle through Application() rather than returning the
    Desktop() wrapper, which lacks child_window().
    """
    from pywinauto import Application, Desktop

    try:
        for w in Desktop(backend="uia").windows():
            try:
                if not title_matches(app_name, w.window_text()):
                    continue
                app = Application(backend="uia").connect(handle=w.handle)
                dlg = app.top_window()
                if dlg.exists(timeout=0.5):
                    return dlg
            except Exception:
                continue
    except Exception as e:
        logger.debug("Window scan failed: %s", e)
    return None


def focus_window(window) -> bool:
    """Bring a window to the foreground."""
    try:
        if window.is_minimized():
            window.restore()
        window.set_focus()
        time.sleep(0.1)  # Let window manager settle
        return True
    except Exception as e:
        logger.debug("Could not focus window: %s", e)
        return False


# ============================================
# ACCESSIBILITY SNAPSHOT
# ============================================

def _read(getter, default=None):
    try:
        return getter()
    except Exception:
        return default


def node_from_element(element) -> UiNode:
    """Convert one UIA wrapper into a UiNode.

    Any attribute that cannot be read is left empty instead of failing the
    whole snapshot; elements disappear while ChatGPT re-renders.
    """
    role = _read(lambda: element.element_info.control_type) or ""
    text = _read(element.window_text) or ""
    position: Optional[Tuple[int, int]] = None
    size: Optional[Tuple[int, int]] = None
    rect = _read(element.rectangle)
    if rect is not None:
        position = _read(lambda: (int(rect.left), int(rect.top)))
        size = _read(lambda: (int(rect.width()), int(rect.height())))
    return UiNode(role=str(role), text=str(text), position=position, size=size)


def walk_nodes(root, max_depth: int = MAX_TREE_DEPTH, exclude=None) -> List[UiNode]:
    """Walk the UIA tree below root and return every element as a UiNode.

    The ``exclude`` element and everything under it is left out.
    """
    nodes: List[UiNode] = []

    def _walk(ctrl, depth: int):
        if depth > max_depth:
            return
        for child in _children(ctrl):
            if exclude is not None and child == exclude:
                continue
            nodes.append(node_from_element(child))
            _walk(child, depth + 1)

    _walk(root, 0)
    return nodes


def _children(element) -> list:
    return _read(element.children, []) or []


def _control_type(element) -> str:
    return _read(lambda: element.element_info.control_type) or ""


def _breadth_first(root, max_depth: int = CONTAINER_SEARCH_DEPTH, exclude=None):
    """Yield the elements below root, shallowest first."""
    queue = deque([(root, 0)])
    while queue:
        ctrl, depth = queue.popleft()
        if depth >= max_depth:
            continue
        for child in _children(ctrl):
            if exclude is not None and child == exclude:
                continue
            yield child
            queue.append((child, depth + 1))


def find_conversation_root(window):
    """
    The container holding the conversation: the shallowest Group/Document
    with more than CONVERSATION_MIN_TEXTS direct Text children.
    Returns None when nothing qualifies (empty or very short chats).
    """
    for element in _breadth_first(window):
        if _control_type(element) not in CONTAINER_CONTROL_TYPES:
            continue
        texts = [c for c in _children(element) if _control_type(c) == "Text"]
        if len(texts) > CONVERSATION_MIN_TEXTS:
            return element
    return None


def find_sidebar_root(window, exclude=None):
    """The shallowest element directly holding conversation list items, or None."""
    for element in _breadth_first(window, exclude=exclude):
        if any(_control_type(c) in ITEM_CONTROL_TYPES for c in _children(element)):
            return element
    return None


# ============================================
# CLIPBOARD
# ============================================

_PS_UTF8 = "[Console]::OutputEncoding = [Text.Encoding]::UTF8; "

# Reads all of stdin as one string; $input would split it into lines.
_PS_STDIN_TO_CLIPBOARD = (
    "[Console]::InputEncoding = [Text.Encoding]::UTF8; "
    "Set-Clipboard -Value ([Console]::In.ReadToEnd())"
)


def read_clipboard() -> str:
    """Clipboard text, line endings untouched."""
    # Bytes, not text=True: universal newlines would turn \r\n into \n.
    result = subprocess.run(
        ["powershell", "-NoProfile", "-c", _PS_UTF8 + "Get-Clipboard -Raw"],
        capture_output=True, timeout=5, check=True,
    )
    out = (result.stdout or b"").decode("utf-8")
    # PowerShell terminates its output with a newline of its own.
    if out.endswith("\r\n"):
        return out[:-2]
    if out.endswith("\n"):
        return out[:-1]
    return out


def write_clipboard(text: str) -> None:
    """Set the clipboard. The text goes through stdin, so its length is not
    bound by the command line limit."""
    if not text:
        subprocess.run(
            ["powershell", "-NoProfile", "-c", "Set-Clipboard -Value $null"],
            capture_output=True, timeout=5, check=True,
        )
        return
    subprocess.run(
        ["powershell", "-NoProfile", "-c", _PS_STDIN_TO_CLIPBOARD],
        input=text.encode("utf-8"), capture_output=True, timeout=5, check=True,
    )


# ============================================
# CHATGPT DESKTOP SESSION
# ============================================

class ChatGPTDesktop:
    """Process control, input and snapshots for the ChatGPT desktop app."""

    def __init__(self, app_name: str = "ChatGPT", app_path: Optional[str] = None):
        self.app_name = app_name
        self.app_path = app_path

    # -- process ---------------------------------------------------------

    def is_running(self) -> bool:
        return find_window(self.app_name) is not None

    def launch(self) -> None:
        """Start ChatGPT from app_path, or through the Start menu search."""
        if self.app_path:
            if not os.path.isfile(self.app_path):
                raise FileNotFoundError(f"ChatGPT executable not found: {self.app_path}")
            subprocess.Popen(
                [self.app_path], cwd=os.path.dirname(self.app_path), start_new_session=True
            )
            return

        pyautogui = _get_pyautogui()
        pyautogui.press("win")
        time.sleep(0.5)
        pyautogui.write(self.app_name, interval=0.03)
        time.sleep(0.8)
        pyautogui.press("enter")

    def front_window(self, wait: float = 0.0):
        """The ChatGPT window, polling up to ``wait`` seconds for it to appear."""
        deadline = time.monotonic() + wait
        while True:
            window = find_window(self.app_name)
            if window is not None or time.monotonic() >= deadline:
                return window
            time.sleep(0.5)

    def focus(self, window) -> bool:
        return focus_window(window)

    # -- sensing ---------------------------------------------------------

    def snapshot(self, window) -> List[UiNode]:
        """
        The conversation area of the window. Falls back to the whole window
        minus the sidebar when no conversation container is found.
        """
        conversation = find_conversation_root(window)
        if conversation is not None:
            return walk_nodes(conversation)
        return walk_nodes(window, exclude=find_sidebar_root(window))

    def sidebar_snapshot(self, window) -> List[UiNode]:
        """The conversation list, or the whole window when no sidebar is found."""
        sidebar = find_sidebar_root(window, exclude=find_conversation_root(window))
        return walk_nodes(sidebar if sidebar is not None else window)

    # -- clipboard -------------------------------------------------------

    def read_clipboard(self) -> str:
        return read_clipboard()

    def write_clipboard(self, text: str) -> None:
        write_clipboard(text)

    # -- input -----------------------------------------------------------

    def clear_input(self) -> None:
        pyautogui = _get_pyautogui()
        pyautogui.hotkey("ctrl", "a")
        pyautogui.press("backspace")

    def paste(self) -> None:
        _get_pyautogui().hotkey("ctrl", "v")

    def submit(self) -> None:
        _get_pyautogui().press("enter")

    def click_labelled(self, window, label: str, control_type: Optional[str] = None) -> bool:
        """Click the element whose accessible name is exactly ``label``."""
        from pywinauto.findwindows import ElementAmbiguousError, ElementNotFoundError

        search_kwargs: dict = {}
        if control_type:
            search_kwargs["control_type"] = control_type
        try:
            found = window.child_window(title=label, **search_kwargs)
            if found.exists(timeout=0.5):
                found.click_input()
                return True
        except (ElementNotFoundError, ElementAmbiguousError):
            pass
        return False

    def click_described(self, window, label: str) -> bool:
        """Click the first element whose name or automation id mentions ``label``."""
        needle = label.lower()
        needle_id = needle.replace(" ", "-")
        for element in _read(window.descendants, []):
            name = (_read(element.window_text) or "").lower()
            auto_id = (_read(lambda: element.element_info.automation_id) or "").lower()
            if needle in name or needle_id in auto_id:
                element.click_input()
                return True
        return False


