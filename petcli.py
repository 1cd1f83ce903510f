"""petcli: a terminal pet that chats about your shell habits."""

import asyncio
import logging
import sys

from prompt_toolkit import Application
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import HSplit, Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.layout.dimension import Dimension
from prompt_toolkit.styles import Style
from prompt_toolkit.widgets import TextArea

from config import FatalInitError, ensure_config_dir, load_config, log_path, settings, state_path
from llm import create_backend
from scrollback import SYSTEM, USER
from session import Session

logger = logging.getLogger("petcli")

TICK_SECONDS = 0.1

ui_style = Style.from_dict({
    "separator": "#444444",
    "prompt": "ansiblue bold",
    "you": "ansicyan bold",
    "status": "#666666",
    "status-thinking": "ansiyellow",
    "system": "#888888 italic",
    "mood-high": "ansibrightgreen",
    "mood-mid": "ansiyellow",
    "mood-low": "ansibrightred",
})


def mood_class(mood: float) -> str:
    if mood > 0.8:
        return "class:mood-high"
    if mood > 0.4:
        return "class:mood-mid"
    return "class:mood-low"


def render_lines(session: Session) -> list[list[tuple[str, str]]]:
    """Flatten the scrollback into styled display lines, one list of fragments per line."""
    pet_style = mood_class(session.mood)
    lines = []
    for message in session.scrollback:
        if message.role == USER:
            prefix, text = "You: ", message.text.removeprefix("You: ")
            prefix_style, text_style = "class:you", ""
        elif message.role == SYSTEM:
            prefix, text = "", message.text
            prefix_style, text_style = "", "class:system"
        else:
            name, sep, text = message.text.partition(": ")
            prefix = name + sep if sep else ""
            text = text if sep else message.text
            prefix_style, text_style = pet_style + " bold", "#aaaaaa"
        indent = " " * len(prefix)
        for i, line in enumerate(text.split("\n")):
            lines.append([(prefix_style, prefix if i == 0 else indent), (text_style, line)])
        if message.role != USER:
            lines.append([("", "")])
    return lines


class PetApp:
    """Full-screen driver: ticks decay, routes input lines and redraws."""

    def __init__(self, session: Session):
        self.session = session
        self.input_area = TextArea(
            height=1,
            prompt=[("class:prompt", "> ")],
            multiline=False,
            focus_on_click=True,
        )
        self.chat_window = Window(
            content=FormattedTextControl(self._chat_fragments),
            wrap_lines=True,
        )
        self.app = Application(
            layout=Layout(self._build_root(), focused_element=self.input_area),
            key_bindings=self._build_key_bindings(),
            style=ui_style,
            full_screen=True,
        )

    def _build_root(self):
        ascii_art = self.session.cfg.pet_ascii.strip("\n")
        header = Window(
            content=FormattedTextControl(lambda: self._header_fragments(ascii_art)),
            height=Dimension.exact(ascii_art.count("\n") + 2),
        )
        status_bar = Window(height=1, content=FormattedTextControl(self._status_fragments))
        return HSplit([
            header,
            Window(height=1, char="─", style="class:separator"),
            self.chat_window,
            Window(height=1, char="─", style="class:separator"),
            self.input_area,
            status_bar,
        ])

    def _header_fragments(self, ascii_art: str):
        style = mood_class(self.session.mood)
        title = f" {self.session.name} (Mood: {self.session.mood * 100:.0f}%) "
        return [(style + " bold", title + "\n"), (style, ascii_art)]

    def _chat_fragments(self):
        lines = render_lines(self.session)
        # The scroll offset marks the last visible line.
        end = min(self.session.scrollback.offset, len(lines))
        info = self.chat_window.render_info
        height = info.window_height if info else 20
        fragments = []
        for line in lines[max(0, end - height):end]:
            fragments.extend(line)
            fragments.append(("", "\n"))
        return fragments

    def _status_fragments(self):
        if self.session.busy:
            return [("class:status-thinking", f"  {self.session.name} is thinking... ")]
        return [("class:status", "  /help for commands | ↑↓ PgUp PgDn scroll | Esc quit ")]

    def _build_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()
        scrollback = self.session.scrollback

        @kb.add("enter")
        def handle_enter(event):
            text = self.input_area.text
            if not text.strip():
                return
            turn = self.session.submit(text)
            if turn is not None:
                self.input_area.text = ""
                turn.add_done_callback(self._turn_done)

        @kb.add("up")
        def scroll_up(event):
            scrollback.scroll_up()

        @kb.add("down")
        def scroll_down(event):
            scrollback.scroll_down()

        @kb.add("pageup")
        def page_up(event):
            scrollback.page_up()

        @kb.add("pagedown")
        def page_down(event):
            scrollback.page_down()

        @kb.add("escape", eager=True)
        @kb.add("c-c")
        def handle_quit(event):
            if not event.app.is_done:
                event.app.exit()

        return kb

    def _turn_done(self, turn):
        if turn.cancelled():
            return
        error = turn.exception()
        if error is not None:
            logger.error("Turn failed: %r", error)
        self.app.invalidate()
        if not self.session.running and self.app.is_running and not self.app.is_done:
            self.app.exit()

    async def _tick_loop(self):
        while self.session.running:
            await asyncio.sleep(TICK_SECONDS)
            self.session.tick()
            self.app.invalidate()

    async def run(self):
        ticker = asyncio.ensure_future(self._tick_loop())
        try:
            await self.app.run_async()
        finally:
            ticker.cancel()
            # A reply that is already on its way is still recorded.
            await self.session.finish()


def main():
    ensure_config_dir()
    logging.basicConfig(
        filename=log_path(),
        level=getattr(logging, settings.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = load_config()
    try:
        backend = create_backend(cfg)
    except FatalInitError as e:
        logger.error("Startup aborted: %s", e)
        print(f"Error: {e}")
        sys.exit(1)

    session = Session.start(cfg, backend, state_path())
    asyncio.run(PetApp(session).run())


if __name__ == "__main__":
    main()
