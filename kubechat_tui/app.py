"""Full-screen terminal front end for the chat model."""

from __future__ import annotations

import asyncio
import os
import queue
import threading
from contextlib import suppress

from prompt_toolkit.application import Application
from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.mouse_events import MouseEventType

from .history import DEFAULT_JSON_PATH, HistoryStore
from .model import (
    SPINNER_INTERVAL,
    Action,
    ChatModel,
    Key,
    KeyEvent,
    MouseEvent,
    WindowSize,
)

_KEY_NAMES = {
    "enter": Key.ENTER,
    "c-c": Key.CTRL_C,
    "escape": Key.ESCAPE,
    "up": Key.UP,
    "down": Key.DOWN,
    "left": Key.LEFT,
    "right": Key.RIGHT,
    "home": Key.HOME,
    "end": Key.END,
    "backspace": Key.BACKSPACE,
    "delete": Key.DELETE,
    "pageup": Key.PAGE_UP,
    "pagedown": Key.PAGE_DOWN,
}


def _drain(model: ChatModel) -> None:
    while (output := model.read_output()) is not None:
        model.update(output)


class _ChatControl(FormattedTextControl):
    def __init__(self, model: ChatModel) -> None:
        super().__init__(
            lambda: ANSI(model.view().replace("\x1b[?25l", "")),
            focusable=True,
            show_cursor=False,
        )
        self._model = model

    def mouse_handler(self, mouse_event):
        if mouse_event.event_type == MouseEventType.SCROLL_UP:
            self._model.update(MouseEvent(-1))
            return None
        if mouse_event.event_type == MouseEventType.SCROLL_DOWN:
            self._model.update(MouseEvent(1))
            return None
        return NotImplemented


class TUI:
    """Runs the chat screen until the user quits."""

    def __init__(self, cluster_ctx: str, cluster_lister=None, config=None, *,
                 history_store: HistoryStore | None = None,
                 legacy_history: str | os.PathLike = DEFAULT_JSON_PATH,
                 terminal_input=None, terminal_output=None) -> None:
        self.cluster_ctx = cluster_ctx
        self.cluster_lister = cluster_lister
        self.config = config
        self.history_store = history_store if history_store is not None else HistoryStore()
        self.legacy_history = legacy_history
        self.terminal_input = terminal_input
        self.terminal_output = terminal_output
        self.done = threading.Event()

    def _application(self, model: ChatModel) -> Application:
        bindings = KeyBindings()

        def dispatch(app, event: KeyEvent) -> None:
            action = model.update(event)
            _drain(model)
            if action is Action.QUIT:
                app.exit()

        for name, key in _KEY_NAMES.items():
            def handler(event, key=key):
                dispatch(event.app, KeyEvent(key))
            bindings.add(name, eager=True)(handler)

        @bindings.add("<any>")
        def _typed(event):
            if event.data and event.data.isprintable():
                dispatch(event.app, KeyEvent(Key.RUNES, event.data))

        last_size: list[tuple[int, int]] = []

        def on_render(app) -> None:
            size = app.output.get_size()
            current = (size.columns, size.rows)
            if last_size != [current]:
                last_size[:] = [current]
                model.update(WindowSize(width=size.columns, height=size.rows))

        return Application(
            layout=Layout(Window(content=_ChatControl(model))),
            key_bindings=bindings,
            full_screen=True,
            mouse_support=True,
            before_render=on_render,
            input=self.terminal_input,
            output=self.terminal_output,
        )

    def run(self, input_queue: queue.Queue, output_queue: queue.Queue) -> None:
        """Show the screen, sending user lines to ``input_queue``."""
        with suppress(OSError, ValueError):
            self.history_store.migrate_from_json(self.legacy_history)
        model = ChatModel(
            input_queue,
            output_queue,
            cluster_ctx=self.cluster_ctx,
            history_store=self.history_store,
            done=self.done,
        )
        app = self._application(model)

        async def animate() -> None:
            while True:
                await asyncio.sleep(SPINNER_INTERVAL)
                model.spinner.tick()
                _drain(model)
                app.invalidate()

        try:
            app.run(pre_run=lambda: app.create_background_task(animate()))
        except OSError as exc:
            raise RuntimeError(f"failed to start TUI: {exc}") from exc

    def close(self) -> None:
        """Stop reading agent outputs."""
        self.done.set()