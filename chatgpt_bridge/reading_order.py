"""
Reading-order reconstruction of a scraped conversation.

The accessibility tree hands back text elements in tree order, which for the
ChatGPT window is not the order a person reads them in. Positioned text is
re-sorted top-to-bottom, left-to-right; text without usable geometry is kept
in source order after it.
"""

from typing import Iterable, List

from .models import UiNode

# Buttons and labels that get scraped along with the conversation.
CHROME_LABELS = frozenset({
    "New chat",
    "Regenerate",
    "Regenerate response",
    "Continue generating",
})

# Static-text roles: UIA reports "Text", the macOS AX API "AXStaticText".
TEXT_ROLES = frozenset({"Text", "AXStaticText", "StaticText"})

# Sidebar entries in the conversation list.
CONVERSATION_ROLES = frozenset({"ListItem", "TreeItem", "Hyperlink", "AXButton"})


def is_chrome(text: str) -> bool:
    return text.strip() in CHROME_LABELS


def is_positioned(node: UiNode) -> bool:
    """Positioned means both coordinates are strictly positive."""
    if node.position is None:
        return False
    x, y = node.position
    return x > 0 and y > 0


def order_fragments(nodes: Iterable[UiNode]) -> List[str]:
    """Return the conversation's text fragments in reading order.

    Deterministic for a given node list: sorted() is stable, so nodes at the
    same (y, x) keep their source order.
    """
    positioned: List[UiNode] = []
    unpositioned: List[str] = []

    for node in nodes:
        if node.role not in TEXT_ROLES:
            continue
        if not node.text or not node.text.strip() or is_chrome(node.text):
            continue
        if is_positioned(node):
            positioned.append(node)
        else:
            unpositioned.append(node.text)

    positioned = sorted(positioned, key=lambda n: (n.position[1], n.position[0]))
    return [n.text for n in positioned] + unpositioned


def build_transcript(nodes: Iterable[UiNode]) -> str:
    """Join the ordered fragments into the working transcript."""
    return "\n".join(order_fragments(nodes))


def conversation_labels(nodes: Iterable[UiNode]) -> List[str]:
    """Titles of the conversations listed in the sidebar, first-seen order."""
    titles: List[str] = []
    seen = set()
    for node in nodes:
        if node.role not in CONVERSATION_ROLES:
            continue
        title = (node.text or "").strip()
        if not title or is_chrome(title) or title in seen:
            continue
        seen.add(title)
        titles.append(title)
    return titles
