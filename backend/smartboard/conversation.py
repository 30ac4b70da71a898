import time
from collections.abc import Callable

from smartboard.board.synthesizer import GraphSynthesizer
from smartboard.commands import Command, extract_commands
from smartboard.llm_client import VISUALIZE_PROMPT, LLMClient
from smartboard.messages import localized
from smartboard.scheduler import RequestScheduler, is_rate_limit_error
from smartboard.session import BoardSession


class ConversationOrchestrator:
    """
    One user utterance in, one reply string out.

    The model call goes through the shared RequestScheduler; the response is
    parsed into commands and, when it parses, applied to the board. Transport
    failures come back as localized text, never as exceptions.
    """

    def __init__(
        self,
        session: BoardSession,
        llm: LLMClient,
        scheduler: RequestScheduler,
        synthesizer: GraphSynthesizer,
        extractor: Callable[[str], tuple[list[Command], bool]] = extract_commands,
    ):
        self.session = session
        self.llm = llm
        self.scheduler = scheduler
        self.synthesizer = synthesizer
        self.extractor = extractor

    async def send(self, user_text: str) -> str:
        language = self.session.language
        messages = self.session.to_anthropic_messages() + [
            {"role": "user", "content": user_text}
        ]

        try:
            raw = await self.scheduler.submit(
                lambda: self.llm.complete(
                    messages,
                    language=language,
                    lesson_detail=self.session.lesson_detail,
                )
            )
        except Exception as exc:
            if is_rate_limit_error(exc):
                return localized("rate_limited", language)
            return localized("error", language, detail=str(exc) or type(exc).__name__)

        commands, matched = self.extractor(raw)
        if matched:
            self.synthesizer.language = language
            reply = await self.synthesizer.apply(commands)
        else:
            print(f"[LLM] No commands in response, replying with text: {raw[:200]!r}")
            reply = raw if raw.strip() else localized("not_understood", language)

        now = time.time()
        self.session.add_user_turn(user_text, now)
        # The model sees its own JSON so it keeps producing commands next turn.
        self.session.add_assistant_turn(raw if raw.strip() else reply, now)
        return reply

    async def visualize(self, text: str) -> str:
        return await self.send(VISUALIZE_PROMPT.format(text=text))
