"""One interactive session: the state, backend, dispatcher and scrollback of a run."""

import asyncio
import logging
from datetime import datetime
from pathlib import Path

from commands import CommandDispatcher
from config import PetConfig
from llm import Backend, BackendError
from personality import fallback_response
from pet import EXCHANGE_BOOST, StateStore
from scrollback import ASSISTANT, SYSTEM, USER, Message, ScrollbackBuffer
from shell_history import load_shell_history

logger = logging.getLogger("petcli.session")


class TurnInProgress(RuntimeError):
    """A line was submitted while the previous turn was still waiting on the backend."""


class Session:
    def __init__(
        self,
        cfg: PetConfig,
        store: StateStore,
        backend: Backend,
        scrollback: ScrollbackBuffer | None = None,
        shell_commands: list[str] | None = None,
    ):
        self.cfg = cfg
        self.store = store
        self.backend = backend
        self.scrollback = scrollback or ScrollbackBuffer()
        self.shell_commands = list(shell_commands or [])
        self.dispatcher = CommandDispatcher(store, self.scrollback)
        self.running = True
        self._turn: asyncio.Task | None = None
        self._active = False

    @classmethod
    def start(cls, cfg: PetConfig, backend: Backend, state_file: Path, home: Path | None = None):
        store = StateStore(state_file, name=cfg.pet_name)
        state = store.load()
        scrollback = ScrollbackBuffer.from_history(state.chat_history, state.name)
        shell_commands = load_shell_history(cfg.command_history_limit, home=home)
        logger.info(
            "Session started: mood=%.2f, %d past exchanges, %d shell commands",
            state.mood, len(state.chat_history), len(shell_commands),
        )
        return cls(cfg, store, backend, scrollback=scrollback, shell_commands=shell_commands)

    @property
    def name(self) -> str:
        return self.store.state.name

    @property
    def mood(self) -> float:
        return self.store.state.mood

    @property
    def busy(self) -> bool:
        """True from the moment a turn is scheduled until it has been recorded."""
        if self._active:
            return True
        return self._turn is not None and not self._turn.done()

    def recent_commands(self) -> list[str]:
        return self.shell_commands + list(self.dispatcher.captured_commands)

    def tick(self, now: datetime | None = None) -> float:
        return self.store.decay(now)

    def flush(self):
        error = self.store.save()
        if error:
            logger.error("State not flushed on exit: %s", error)

    def submit(self, line: str) -> asyncio.Task | None:
        """Schedule a turn for ``line``. Returns None while another turn is pending."""
        if self.busy:
            logger.debug("Turn pending, ignoring input %r", line)
            return None
        self._turn = asyncio.ensure_future(self.handle_line(line))
        return self._turn

    async def finish(self):
        """Let a pending turn run to completion, then flush state to disk."""
        if self._turn is not None and not self._turn.done():
            logger.info("Waiting for pending reply before exit")
            await asyncio.wait([self._turn])
        self.flush()

    async def handle_line(self, line: str) -> bool:
        """Process one input line. Returns False once the session should end."""
        if not line.strip():
            return self.running
        if self._active:
            raise TurnInProgress("previous turn still waiting for a reply")

        self._active = True
        try:
            return await self._run_turn(line)
        finally:
            self._active = False

    async def _run_turn(self, line: str) -> bool:
        if line.strip() == "/exit":
            self.dispatcher.exit()
            self.running = False
            return False

        self.scrollback.append(Message(USER, f"You: {line}"))
        self.dispatcher.capture_shell_command(line)

        result = self.dispatcher.dispatch(line)
        if result.exit:
            self.running = False
            return False
        if result.handled:
            return True

        reply, boost = await self._reply(line)
        error = self.store.record_exchange(line, reply, mood_boost=boost)
        self.scrollback.append(Message(ASSISTANT, f"{self.name}: {reply}"))
        if error:
            self.scrollback.append(Message(SYSTEM, f"Could not save state: {error}"))
        return True

    async def _reply(self, line: str) -> tuple[str, float]:
        prompt = self.backend.format_prompt(line, self.recent_commands())
        try:
            response = await asyncio.to_thread(self.backend.generate, prompt)
        except BackendError as e:
            logger.warning("Backend %s failed, using fallback reply: %s", self.backend.name, e)
            return fallback_response(line, self.mood)

        self.backend.add_to_history(line, response)
        return response, EXCHANGE_BOOST
