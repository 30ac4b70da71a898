from dataclasses import dataclass, field
from typing import Literal

LessonDetail = Literal["brief", "detailed"]

# Prior turns sent back to the model. Older turns are dropped so long lessons
# don't grow the prompt without bound.
MAX_HISTORY_TURNS = 20


@dataclass
class ConversationTurn:
    role: Literal["user", "assistant"]
    content: str
    timestamp: float = 0.0


@dataclass
class BoardSession:
    session_id: str
    language: str = "English"
    lesson_detail: LessonDetail = "brief"
    muted: bool = False
    conversation_history: list[ConversationTurn] = field(default_factory=list)
    is_active: bool = False

    def apply_settings(self, data: dict) -> None:
        """Update language / lesson detail / mute from a client message."""
        language = data.get("language")
        if isinstance(language, str) and language.strip():
            self.language = language.strip()
        detail = data.get("lesson_detail")
        if detail in ("brief", "detailed"):
            self.lesson_detail = detail
        muted = data.get("muted")
        if isinstance(muted, bool):
            self.muted = muted

    def add_user_turn(self, text: str, timestamp: float = 0.0) -> None:
        self.conversation_history.append(
            ConversationTurn(role="user", content=text, timestamp=timestamp)
        )
        self._trim()

    def add_assistant_turn(self, text: str, timestamp: float = 0.0) -> None:
        self.conversation_history.append(
            ConversationTurn(role="assistant", content=text, timestamp=timestamp)
        )
        self._trim()

    def to_anthropic_messages(self) -> list[dict]:
        """Convert conversation history to Anthropic API message format."""
        messages = []
        for turn in self.conversation_history:
            messages.append({"role": turn.role, "content": turn.content})
        return messages

    def _trim(self) -> None:
        if len(self.conversation_history) > MAX_HISTORY_TURNS:
            self.conversation_history = self.conversation_history[-MAX_HISTORY_TURNS:]
            # The Messages API wants the first turn to come from the user.
            while self.conversation_history and self.conversation_history[0].role != "user":
                self.conversation_history.pop(0)
