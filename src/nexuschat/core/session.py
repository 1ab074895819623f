"""Per-session context passed to every orchestration step."""

import logging
import uuid
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Dict,
    List,
    Optional,
    Sequence,
)

from nexuschat.core.schema import ToolSchema
from nexuschat.core.transcript import Transcript

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Session-Id"


@dataclass
class ChatSession:
    """Everything one chat conversation needs: selected model, tool set, identity and transcript."""

    model: Optional[str] = None
    streaming: bool = True
    tools_offered: List[ToolSchema] = field(default_factory=list)
    tool_discovery: bool = False
    headers: Dict[str, str] = field(default_factory=dict)
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    transcript: Transcript = field(default_factory=Transcript)

    def identity_headers(self) -> Dict[str, str]:
        """Configured headers plus the session id, passed through to the completion service."""
        return {**self.headers, SESSION_HEADER: self.session_id}


def select_model(available: Sequence[str], saved: Optional[str] = None) -> Optional[str]:
    """
    Pick the model to use.

    Fallback order:
    1. *saved* if the gateway still offers it
    2. the first offered model
    3. ``None`` when nothing is offered
    """
    if saved and saved in available:
        return saved
    if available:
        if saved:
            logger.info("Saved model '%s' is no longer offered, using '%s'", saved, available[0])
        return available[0]
    return None
