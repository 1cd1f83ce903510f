import logging
from pathlib import Path

logger = logging.getLogger("petcli.shell_history")

HISTORY_FILES = (".zsh_history", ".bash_history", ".history")


def clean_history_line(line: str) -> str:
    """Strip zsh extended-history prefixes (``: 1700000000:0;cmd``), else keep the last token."""
    if line.startswith(":") and ";" in line:
        return line.rsplit(";", 1)[1].strip()
    tokens = line.split()
    if tokens:
        return tokens[-1].strip()
    return line.strip()


def load_shell_history(limit: int = 50, home: Path | None = None) -> list[str]:
    """Return up to ``limit`` most recent commands from the first readable history file."""
    home = home or Path.home()
    if limit <= 0:
        return []
    for name in HISTORY_FILES:
        path = home / name
        try:
            with open(path, errors="replace") as f:
                lines = f.readlines()
        except OSError:
            continue
        commands = [cmd for cmd in (clean_history_line(l.rstrip("\n")) for l in lines) if cmd]
        logger.debug("Loaded %d commands from %s", len(commands), path)
        return commands[-limit:]
    return []
