from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class UiNode:
    """One accessibility element as seen on a single poll.

    Nodes carry no identity across polls; the UIA tree gives no stable id
    for the conversation text, so matching is by text and position only.
    """
    role: str
    text: str
    position: Optional[Tuple[int, int]] = None
    size: Optional[Tuple[int, int]] = None


@dataclass(frozen=True)
class InteractionRequest:
    prompt: str
    conversation_id: Optional[str] = None
    start_new_chat: Optional[bool] = None


@dataclass(frozen=True)
class InteractionResult:
    text: str
    # False when the poll loop hit its timeout; text is then a partial answer.
    complete: bool


@dataclass
class ConversationListing:
    titles: List[str] = field(default_factory=list)
    reason: Optional[str] = None
