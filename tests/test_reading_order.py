"""Reading-order reconstruction tests."""

import random

from chatgpt_bridge.models import UiNode
from chatgpt_bridge.reading_order import (
    CHROME_LABELS,
    build_transcript,
    conversation_labels,
    is_positioned,
    order_fragments,
)


def node(text, x=None, y=None, role="Text"):
    position = (x, y) if x is not None else None
    return UiNode(role=role, text=text, position=position)


class TestOrderFragments:

    def test_sorts_by_vertical_then_horizontal(self):
        nodes = [
            node("bottom", 10, 300),
            node("top right", 200, 20),
            node("top left", 20, 20),
            node("middle", 10, 150),
        ]
        assert order_fragments(nodes) == ["top left", "top right", "middle", "bottom"]

    def test_unpositioned_follow_in_source_order(self):
        nodes = [
            node("floating b"),
            node("second", 10, 60),
            node("floating a"),
            node("first", 10, 30),
        ]
        assert order_fragments(nodes) == ["first", "second", "floating b", "floating a"]

    def test_zero_coordinate_counts_as_unpositioned(self):
        nodes = [node("offscreen", 0, 40), node("visible", 10, 80)]
        assert not is_positioned(nodes[0])
        assert order_fragments(nodes) == ["visible", "offscreen"]

    def test_chrome_and_empty_text_dropped(self):
        nodes = [node("Answer.", 10, 10), node("", 10, 20), node("   ", 10, 30)]
        nodes += [node(label, 10, 40 + i) for i, label in enumerate(sorted(CHROME_LABELS))]
        fragments = order_fragments(nodes)
        assert fragments == ["Answer."]
        for label in ("New chat", "Regenerate", "Continue generating"):
            assert label not in fragments

    def test_only_static_text_roles(self):
        nodes = [
            node("Send", 10, 10, role="Button"),
            node("spinner", 10, 20, role="ProgressBar"),
            node("mac text", 10, 30, role="AXStaticText"),
            node("win text", 10, 40, role="Text"),
        ]
        assert order_fragments(nodes) == ["mac text", "win text"]

    def test_deterministic_and_ordered(self):
        rng = random.Random(7)
        nodes = [node(f"n{i}", rng.randint(1, 5), rng.randint(1, 5)) for i in range(40)]
        nodes += [node(f"loose{i}") for i in range(3)]

        first = order_fragments(nodes)
        assert all(order_fragments(nodes) == first for _ in range(5))

        by_text = {n.text: n for n in nodes}
        positioned = [by_text[t] for t in first if by_text[t].position]
        for a, b in zip(positioned, positioned[1:]):
            ay, by = a.position[1], b.position[1]
            assert ay < by or (ay == by and a.position[0] <= b.position[0])
        assert first[-3:] == ["loose0", "loose1", "loose2"]


def test_build_transcript_joins_with_newlines():
    nodes = [node("4.", 10, 60), node("What is 2+2?", 10, 20)]
    assert build_transcript(nodes) == "What is 2+2?\n4."


def test_build_transcript_empty():
    assert build_transcript([]) == ""


def test_conversation_labels():
    nodes = [
        node("New chat", role="ListItem"),
        node("Trip planning", role="ListItem"),
        node("Answer text", role="Text"),
        node("Recipe ideas", role="Hyperlink"),
        node("Trip planning", role="ListItem"),
        node("", role="ListItem"),
    ]
    assert conversation_labels(nodes) == ["Trip planning", "Recipe ideas"]
