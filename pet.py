"""Persistent pet state: mood, name and chat history."""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger("petcli.pet")

MOOD_FLOOR = 0.1
MOOD_CEILING = 1.0
DEFAULT_MOOD = 0.8
DECAY_PER_HOUR = 0.1
EXCHANGE_BOOST = 0.1


class PersistenceError(Exception):
    """State could not be written to or read from disk."""


def clamp_mood(value: float) -> float:
    return max(MOOD_FLOOR, min(MOOD_CEILING, value))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PetState:
    name: str = "Whiskers"
    mood: float = DEFAULT_MOOD
    last_interaction: datetime = field(default_factory=utcnow)
    chat_history: list[tuple[str, str]] = field(default_factory=list)
    # Instant up to which time decay has already been applied.
    last_decay: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "mood": self.mood,
            "last_interaction": self.last_interaction.isoformat(),
            "last_decay": self.last_decay.isoformat() if self.last_decay else None,
            "chat_history": [[user, response] for user, response in self.chat_history],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PetState":
        if not isinstance(data, dict):
            raise ValueError("state document must be an object")
        last = _parse_time(data["last_interaction"])
        last_decay = _parse_time(data["last_decay"]) if data.get("last_decay") else None
        history = []
        for pair in data.get("chat_history", []):
            if not isinstance(pair, list) or len(pair) != 2:
                raise ValueError(f"malformed chat_history entry: {pair!r}")
            user, response = pair
            history.append((str(user), str(response)))
        return cls(
            name=str(data.get("name", "Whiskers")),
            mood=clamp_mood(float(data["mood"])),
            last_interaction=last,
            chat_history=history,
            last_decay=last_decay,
        )


def _parse_time(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class StateStore:
    """Sole owner and writer of the PetState; persists it as a JSON document."""

    def __init__(self, path: Path, name: str = "Whiskers"):
        self.path = Path(path)
        self.name = name
        self.state = PetState(name=name)

    def load(self) -> PetState:
        state = None
        if self.path.exists():
            try:
                with open(self.path) as f:
                    state = PetState.from_dict(json.load(f))
            except (OSError, json.JSONDecodeError, ValueError, KeyError, TypeError) as e:
                logger.error("Corrupt state file %s (%s), using defaults", self.path, e)
        if state is None:
            state = PetState(name=self.name)
        state.name = self.name
        self.state = state
        return state

    def save(self) -> PersistenceError | None:
        """Write state atomically. Returns the failure instead of raising it."""
        tmp = self.path.with_suffix(".json.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w") as f:
                json.dump(self.state.to_dict(), f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as e:
            logger.error("Failed to save state to %s: %s", self.path, e)
            return PersistenceError(f"could not save state: {e}")
        logger.debug("Saved state to %s", self.path)
        return None

    def decay(self, now: datetime | None = None) -> float:
        now = now or utcnow()
        state = self.state
        since = state.last_interaction
        if state.last_decay and state.last_decay > since:
            since = state.last_decay
        hours = (now - since).total_seconds() / 3600
        if hours <= 0:
            return state.mood
        state.mood = clamp_mood(state.mood - hours * DECAY_PER_HOUR)
        state.last_decay = now
        return state.mood

    def record_exchange(
        self,
        user: str,
        response: str,
        mood_boost: float = EXCHANGE_BOOST,
        now: datetime | None = None,
    ) -> PersistenceError | None:
        now = now or utcnow()
        state = self.state
        state.last_interaction = now
        state.last_decay = now
        state.mood = clamp_mood(state.mood + mood_boost)
        state.chat_history.append((user, response))
        return self.save()

    def purge(self) -> PersistenceError | None:
        self.state.chat_history.clear()
        return self.save()
