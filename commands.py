import logging
from collections import deque
from dataclasses import dataclass
from datetime import timezone

from pet import StateStore
from scrollback import ASSISTANT, SYSTEM, Message, ScrollbackBuffer

logger = logging.getLogger("petcli.commands")

COMMANDS = [
    {"name": "/stats", "description": "Display current pet statistics"},
    {"name": "/clear", "description": "Clear chat window"},
    {"name": "/purge", "description": "Remove all chat history"},
    {"name": "/help", "description": "Show this help message"},
    {"name": "/exit", "description": "Exit the application"},
]

COMMAND_NAMES = frozenset(c["name"] for c in COMMANDS)

MAX_CAPTURED_COMMANDS = 5


def help_text() -> str:
    width = max(len(c["name"]) for c in COMMANDS)
    lines = ["Available Commands:"]
    for c in COMMANDS:
        lines.append(f"{c['name']:<{width}} - {c['description']}")
    return "\n".join(lines)


@dataclass
class CommandResult:
    handled: bool = False
    exit: bool = False


class CommandDispatcher:
    """Runs control commands; anything it does not recognize goes to chat."""

    def __init__(self, store: StateStore, scrollback: ScrollbackBuffer):
        self.store = store
        self.scrollback = scrollback
        self.captured_commands: deque[str] = deque(maxlen=MAX_CAPTURED_COMMANDS)

    @property
    def name(self) -> str:
        return self.store.state.name

    def _say(self, text: str):
        self.scrollback.append(Message(ASSISTANT, f"{self.name}: {text}"))

    def _notice(self, text: str):
        self.scrollback.append(Message(SYSTEM, text))

    def _save(self):
        error = self.store.save()
        if error:
            self._notice(f"Could not save state: {error}")

    def capture_shell_command(self, line: str) -> str | None:
        if not line.startswith("$"):
            return None
        cmd = line[1:].strip()
        self.captured_commands.append(cmd)
        return cmd

    def dispatch(self, line: str) -> CommandResult:
        stripped = line.strip()

        if stripped == "/exit":
            return self.exit()

        if not line.startswith("/") or stripped not in COMMAND_NAMES:
            return CommandResult()

        logger.debug("Running command %s", stripped)
        if stripped == "/stats":
            self.stats()
        elif stripped == "/clear":
            self.scrollback.clear()
            self._notice("Chat window cleared.")
        elif stripped == "/purge":
            self.purge()
        elif stripped == "/help":
            self._say(help_text())
        return CommandResult(handled=True)

    def stats(self):
        state = self.store.state
        last = state.last_interaction.astimezone(timezone.utc)
        self._say(
            "Current Stats:\n"
            f"Mood: {state.mood * 100:.0f}%\n"
            f"Last Interaction: {last.strftime('%Y-%m-%d %H:%M:%S UTC')}\n"
            f"Chat History: {len(state.chat_history)} messages"
        )

    def purge(self):
        error = self.store.purge()
        self.scrollback.clear()
        self._notice("Chat history has been purged from disk.")
        if error:
            self._notice(f"Could not save state: {error}")

    def exit(self) -> CommandResult:
        self._say("Goodbye! Take care! 👋")
        self._save()
        return CommandResult(handled=True, exit=True)
