"""Bounded display log of the conversation and its scroll cursor."""

from dataclasses import dataclass

MAX_MESSAGES = 100
PAGE_SIZE = 5

USER = "user"
ASSISTANT = "assistant"
SYSTEM = "system"


@dataclass
class Message:
    role: str
    text: str

    def line_count(self) -> int:
        # Non-user entries are followed by a blank spacer line when rendered.
        lines = len(self.text.split("\n"))
        return lines if self.role == USER else lines + 1


class ScrollbackBuffer:
    def __init__(self, capacity: int = MAX_MESSAGES):
        self.capacity = capacity
        self.messages: list[Message] = []
        self.offset = 0

    @classmethod
    def from_history(cls, history: list[tuple[str, str]], name: str, capacity: int = MAX_MESSAGES):
        buf = cls(capacity)
        for user, response in history:
            buf.append(Message(USER, f"You: {user}"))
            buf.append(Message(ASSISTANT, f"{name}: {response}"))
        return buf

    def __len__(self):
        return len(self.messages)

    def __iter__(self):
        return iter(self.messages)

    def append(self, message: Message):
        if len(self.messages) >= self.capacity:
            del self.messages[0]
        self.messages.append(message)
        self.scroll_to_bottom()

    def clear(self):
        self.messages.clear()
        self.offset = 0

    def total_line_count(self) -> int:
        return sum(m.line_count() for m in self.messages)

    def scroll_to_bottom(self):
        self.offset = self.total_line_count()

    def scroll_up(self, lines: int = 1):
        self.offset = max(0, min(self.offset, self.total_line_count()) - lines)

    def scroll_down(self, lines: int = 1):
        self.offset = min(self.total_line_count(), self.offset + lines)

    def page_up(self):
        self.scroll_up(PAGE_SIZE)

    def page_down(self):
        self.scroll_down(PAGE_SIZE)
