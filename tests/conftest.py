"""
Shared fakes: a scripted ChatGPT desktop and a manual clock.

No test touches the real desktop, clipboard or ChatGPT.
"""

from types import SimpleNamespace
from typing import Callable, List, Optional, Sequence, Union

import pytest

from chatgpt_bridge.config import BridgeConfig
from chatgpt_bridge.models import UiNode
from chatgpt_bridge.orchestrator import ChatGPTOrchestrator


def text_node(text: str, x: int = 10, y: int = 10) -> UiNode:
    return UiNode(role="Text", text=text, position=(x, y), size=(200, 20))


def transcript_nodes(*lines: str) -> List[UiNode]:
    """One positioned text node per line, stacked top to bottom."""
    return [text_node(line, x=10, y=10 + 30 * i) for i, line in enumerate(lines)]


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def __call__(self) -> float:
        return self.now


class FakeRect:
    def __init__(self, left, top, right, bottom):
        self.left, self.top, self.right, self.bottom = left, top, right, bottom

    def width(self):
        return self.right - self.left

    def height(self):
        return self.bottom - self.top


class FakeElement:
    """Minimal pywinauto UIA wrapper: control type, text, rectangle, children."""

    def __init__(self, control_type, text="", rect=None, children=(), automation_id=""):
        self.element_info = SimpleNamespace(control_type=control_type, automation_id=automation_id)
        self._text = text
        self._rect = rect
        self._children = list(children)
        self.clicks = 0

    def window_text(self):
        return self._text

    def rectangle(self):
        if self._rect is None:
            raise RuntimeError("element is gone")
        return self._rect

    def children(self):
        return self._children

    def descendants(self):
        found = []
        for child in self._children:
            found.append(child)
            found.extend(child.descendants())
        return found

    def click_input(self):
        self.clicks += 1


def text_element(text, x, y):
    return FakeElement("Text", text, FakeRect(x, y, x + 200, y + 20))


def chat_window(titles, lines, chat_x=400):
    """A ChatGPT-shaped UIA tree: sidebar list on the left, chat column on the right.

    Sidebar titles sit at x=20 and interleave vertically with the chat lines,
    so a whole-window scrape would mix them into the transcript.
    """
    sidebar = FakeElement("Group", children=[
        FakeElement("ListItem", title, children=[text_element(title, 20, 100 + 40 * i)])
        for i, title in enumerate(titles)
    ])
    chat = FakeElement("Group", children=[
        text_element(line, chat_x, 90 + 40 * i) for i, line in enumerate(lines)
    ])
    return FakeElement("Window", "ChatGPT", children=[
        FakeElement("Pane", children=[sidebar, chat]),
    ])


Snapshots = Union[Sequence[List[UiNode]], Callable[[int], List[UiNode]]]


class FakeDesktop:
    """Scripted stand-in for desktop.ChatGPTDesktop.

    ``snapshots`` is either a list (the last entry repeats once exhausted) or
    a callable taking the zero-based tick number.
    """

    def __init__(
        self,
        snapshots: Optional[Snapshots] = None,
        running: bool = True,
        clipboard: str = "original clipboard",
    ):
        self.snapshots = snapshots if snapshots is not None else [[]]
        self.running = running
        self.window = object()
        self.has_window = True
        self.clipboard = clipboard
        self.clipboard_writes: List[str] = []
        self.calls: List[str] = []
        self.clicked: List[str] = []
        self.snapshot_calls = 0
        self.labelled_targets: Optional[set] = None
        self.described_targets: set = set()
        self.fail_on: dict = {}

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        error = self.fail_on.get(name)
        if error is not None:
            raise error

    def is_running(self) -> bool:
        self._maybe_fail("is_running")
        return self.running

    def launch(self) -> None:
        self._maybe_fail("launch")
        self.running = True

    def front_window(self, wait: float = 0.0):
        self._maybe_fail("front_window")
        return self.window if self.has_window else None

    def focus(self, window) -> bool:
        self.calls.append("focus")
        return True

    def snapshot(self, window) -> List[UiNode]:
        tick = self.snapshot_calls
        self.snapshot_calls += 1
        self._maybe_fail("snapshot")
        if callable(self.snapshots):
            return self.snapshots(tick)
        return list(self.snapshots[min(tick, len(self.snapshots) - 1)])

    def sidebar_snapshot(self, window) -> List[UiNode]:
        self.calls.append("sidebar_snapshot")
        return self.snapshot(window)

    def read_clipboard(self) -> str:
        self._maybe_fail("read_clipboard")
        return self.clipboard

    def write_clipboard(self, text: str) -> None:
        self._maybe_fail("write_clipboard")
        self.clipboard_writes.append(text)
        self.clipboard = text

    def clear_input(self) -> None:
        self._maybe_fail("clear_input")

    def paste(self) -> None:
        self._maybe_fail("paste")

    def submit(self) -> None:
        self._maybe_fail("submit")

    def click_labelled(self, window, label: str, control_type=None) -> bool:
        self._maybe_fail("click_labelled")
        if self.labelled_targets is None or label in self.labelled_targets:
            self.clicked.append(label)
            return True
        return False

    def click_described(self, window, label: str) -> bool:
        self._maybe_fail("click_described")
        if label in self.described_targets:
            self.clicked.append(f"described:{label}")
            return True
        return False


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return BridgeConfig(standard_timeout=10.0, search_timeout=30.0)


@pytest.fixture
def make_orchestrator(clock, config):
    def _make(desktop: FakeDesktop, **overrides) -> ChatGPTOrchestrator:
        cfg = overrides.pop("config", config)
        return ChatGPTOrchestrator(desktop, cfg, sleep=clock.sleep, clock=clock, **overrides)
    return _make
