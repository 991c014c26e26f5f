"""Chat screen state: key handling, message list and rendering."""

from __future__ import annotations

import queue
import re
import threading
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum, auto

from rich.color import ColorSystem
from rich.style import Style

from .history import HistoryStore
from .messages import ChatMessage, Input, MessageType, Output, OutputType, Role

HISTORY_LIMIT = 100
RULE_WIDTH = 80
SPINNER_INTERVAL = 1 / 12
MINI_DOT_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")

_ANSI_ESCAPE = re.compile(
    r"\x1b\[[0-9;]*[a-zA-Z]|\x1b[>=]?[^a-zA-Z]*[a-zA-Z]|\[[<][0-9;]+[a-zA-Z]"
)
_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ITALIC = re.compile(r"\*(?![\s*])([^*]+?)\*|\b_([^_]+?)_\b")
_CODE = re.compile(r"`([^`]+)`")
_HEADING = re.compile(r"^(#{1,6})\s+(.*?)\s*#*$")
_RULE = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})$")
_BULLET = re.compile(r"^(\s*)[-*+]\s+(.*)$")
_ORDERED = re.compile(r"^(\s*)(\d+)\.\s+(.*)$")
_HEADING_PREFIX = {1: "### ", 2: "## ", 3: "# ", 4: "# ", 5: "# ", 6: "# "}
_MARGIN = "  "

_BLUE = "\x1b[38;5;75m"
_GREEN = "\x1b[38;5;72m"
_PURPLE = "\x1b[38;5;139m"
_GRAY = "\x1b[38;5;145m"
_DARK_GRAY = "\x1b[38;5;246m"
_RED = "\x1b[38;5;203m"
_RESET = "\x1b[0m"
_HIDE_CURSOR = "\x1b[?25l"


def _styled(text: str, **style) -> str:
    return Style(**style).render(text, color_system=ColorSystem.EIGHT_BIT)


def _inline(text: str) -> str:
    text = _CODE.sub(r"\1", text)
    text = _BOLD.sub(lambda m: _styled(m.group(1), bold=True), text)
    return _ITALIC.sub(lambda m: _styled(m.group(1) or m.group(2), italic=True), text)


def render_markdown(text: str) -> str:
    """Render markdown to ANSI text: headings, rules, lists, emphasis, code."""
    lines: list[str] = []
    paragraph: list[str] = []
    in_code = False

    def flush() -> None:
        if paragraph:
            lines.append(_inline(" ".join(paragraph)))
            paragraph.clear()

    def blank() -> None:
        if lines and lines[-1] != "":
            lines.append("")

    for raw in text.splitlines():
        stripped = raw.strip()
        if stripped.startswith("```"):
            flush()
            if in_code:
                blank()
            in_code = not in_code
            continue
        if in_code:
            lines.append(_MARGIN + raw.rstrip())
            continue
        if not stripped:
            flush()
            blank()
            continue
        heading = _HEADING.match(stripped)
        if heading:
            flush()
            title = _BOLD.sub(r"\1", heading.group(2))
            prefix = _HEADING_PREFIX[len(heading.group(1))]
            lines.append(_styled(prefix + title, color="color(39)", bold=True))
            lines.append("")
            continue
        if _RULE.match(stripped):
            flush()
            lines.append(_styled("--------", color="color(240)"))
            lines.append("")
            continue
        bullet = _BULLET.match(raw)
        if bullet:
            flush()
            lines.append(bullet.group(1) + "• " + _inline(bullet.group(2)))
            continue
        ordered = _ORDERED.match(raw)
        if ordered:
            flush()
            lines.append(f"{ordered.group(1)}{ordered.group(2)}. {_inline(ordered.group(3))}")
            continue
        paragraph.append(stripped)
    flush()
    while lines and lines[-1] == "":
        lines.pop()
    body = "\n".join(_MARGIN + line if line else "" for line in lines)
    return f"\n{body}\n"


def strip_escape_sequences(text: str) -> str:
    """Remove terminal escape sequences and stray mouse reports."""
    return _ANSI_ESCAPE.sub("", text)


def is_mouse_sequence(text: str) -> bool:
    """Tell whether typed text is a leaked mouse report such as ``[<65;24;33M``."""
    if len(text) < 4 or not text.startswith("[<"):
        return False
    return all(ch.isdigit() and ch.isascii() or ch in ";M" for ch in text[2:])


class Key(Enum):
    """Keys the chat screen reacts to."""

    ENTER = auto()
    CTRL_C = auto()
    ESCAPE = auto()
    UP = auto()
    DOWN = auto()
    LEFT = auto()
    RIGHT = auto()
    HOME = auto()
    END = auto()
    BACKSPACE = auto()
    DELETE = auto()
    PAGE_UP = auto()
    PAGE_DOWN = auto()
    RUNES = auto()


@dataclass(frozen=True)
class KeyEvent:
    """A key press; ``text`` carries typed characters for ``Key.RUNES``."""

    key: Key
    text: str = ""


@dataclass(frozen=True)
class WindowSize:
    """The terminal was resized."""

    width: int
    height: int


@dataclass(frozen=True)
class MouseEvent:
    """A mouse wheel step; negative ``delta`` scrolls up."""

    delta: int


class Action(Enum):
    """What the caller should do after an update."""

    CONTINUE = auto()
    QUIT = auto()


class _Style(Enum):
    GRAY = auto()
    MARKDOWN = auto()
    NORMAL = auto()


class Viewport:
    """A scrollable window onto a block of text."""

    def __init__(self, width: int = 80, height: int = 20, *,
                 mouse_wheel_enabled: bool = True, mouse_wheel_delta: int = 3) -> None:
        self.width = width
        self.height = height
        self.mouse_wheel_enabled = mouse_wheel_enabled
        self.mouse_wheel_delta = mouse_wheel_delta
        self.y_offset = 0
        self._lines: list[str] = []

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    @property
    def max_y_offset(self) -> int:
        return max(0, len(self._lines) - max(self.height, 0))

    @property
    def at_bottom(self) -> bool:
        return self.y_offset >= self.max_y_offset

    def set_content(self, content: str) -> None:
        self._lines = content.replace("\r\n", "\n").split("\n")
        if self.y_offset > len(self._lines) - 1:
            self.goto_bottom()

    def goto_bottom(self) -> None:
        self.y_offset = self.max_y_offset

    def scroll(self, lines: int) -> None:
        self.y_offset = min(max(self.y_offset + lines, 0), self.max_y_offset)

    def handle_key(self, event: KeyEvent) -> None:
        page = max(self.height, 0)
        key, text = event.key, event.text
        if key is Key.PAGE_DOWN or (key is Key.RUNES and text in (" ", "f")):
            self.scroll(page)
        elif key is Key.PAGE_UP or (key is Key.RUNES and text == "b"):
            self.scroll(-page)
        elif key is Key.RUNES and text == "d":
            self.scroll(page // 2)
        elif key is Key.RUNES and text == "u":
            self.scroll(-(page // 2))
        elif key is Key.RUNES and text == "j":
            self.scroll(1)
        elif key is Key.RUNES and text == "k":
            self.scroll(-1)

    def handle_mouse(self, event: MouseEvent) -> None:
        if self.mouse_wheel_enabled:
            self.scroll(event.delta * self.mouse_wheel_delta)

    def view(self) -> str:
        height = max(self.height, 0)
        visible = self._lines[self.y_offset:self.y_offset + height]
        visible += [""] * (height - len(visible))
        return "\n".join(visible)


class _Spinner:
    def __init__(self) -> None:
        self.frame = 0

    def tick(self) -> None:
        self.frame = (self.frame + 1) % len(MINI_DOT_FRAMES)

    def view(self) -> str:
        return MINI_DOT_FRAMES[self.frame]


class _LineEditor:
    def __init__(self, prompt: str = "> ") -> None:
        self.prompt = prompt
        self._value = ""
        self.cursor = 0

    @property
    def value(self) -> str:
        return self._value

    @value.setter
    def value(self, text: str) -> None:
        self._value = text
        self.cursor = len(text)

    def reset(self) -> None:
        self.value = ""

    def handle(self, event: KeyEvent) -> None:
        key, pos, text = event.key, self.cursor, self._value
        if key is Key.RUNES:
            self._value = text[:pos] + event.text + text[pos:]
            self.cursor = pos + len(event.text)
        elif key is Key.BACKSPACE and pos > 0:
            self._value = text[:pos - 1] + text[pos:]
            self.cursor = pos - 1
        elif key is Key.DELETE:
            self._value = text[:pos] + text[pos + 1:]
        elif key is Key.LEFT:
            self.cursor = max(0, pos - 1)
        elif key is Key.RIGHT:
            self.cursor = min(len(text), pos + 1)
        elif key is Key.HOME:
            self.cursor = 0
        elif key is Key.END:
            self.cursor = len(text)

    def view(self) -> str:
        text, pos = self._value, self.cursor
        under = text[pos] if pos < len(text) else " "
        return f"{self.prompt}{text[:pos]}\x1b[7m{under}{_RESET}{text[pos + 1:]}"


def _emoji_prefix(output: Output) -> str:
    if output.message_type == "think":
        return "💭 "
    if output.message_type == "tool_call":
        return "🔧 "
    if output.message_type == "tool_result":
        return "✅ " if output.tool_success else "❌ "
    if output.type is OutputType.THINK:
        return "💭 "
    if output.type is OutputType.TOOL_START:
        return "🔧 "
    if output.type is OutputType.TOOL_RESULT:
        return "✅ " if output.tool_success else "❌ "
    return ""


class ChatModel:
    """State of the chat screen, driven by events and agent outputs."""

    def __init__(self, input_queue: queue.Queue, output_queue: queue.Queue, *,
                 cluster_ctx: str = "", history_store: HistoryStore | None = None,
                 done: threading.Event | None = None) -> None:
        self.input_queue = input_queue
        self.output_queue = output_queue
        self.history_store = history_store
        self.done = done if done is not None else threading.Event()
        self.viewport = Viewport(80, 20)
        self.text_input = _LineEditor("> ")
        self.spinner = _Spinner()
        self.messages: list[ChatMessage] = []
        self._styles: list[_Style] = []
        self.sending = False
        self.cluster_ctx = cluster_ctx
        self.error: str | None = None
        self.height = 0
        self.history: list[str] = []
        if history_store is not None:
            with suppress(OSError):
                self.history = history_store.load()
        self.history_index = -1
        self.temp_input = ""

    def update(self, event) -> Action:
        """Apply one event and tell the caller whether to keep running."""
        if isinstance(event, WindowSize):
            self.height = event.height
            self.viewport.height = event.height - 5
            self.viewport.width = event.width
            self.viewport.set_content(self.build_message_content())
        elif isinstance(event, KeyEvent):
            return self._handle_key(event)
        elif isinstance(event, MouseEvent):
            self.viewport.handle_mouse(event)
        elif isinstance(event, Output):
            self.handle_output(event)
            self.viewport.set_content(self.build_message_content())
            self.viewport.goto_bottom()
            if event.type in (OutputType.DONE, OutputType.ERROR):
                self.sending = False
        return Action.CONTINUE

    def _handle_key(self, event: KeyEvent) -> Action:
        if event.key not in (Key.UP, Key.DOWN):
            self.viewport.handle_key(event)
        if event.key is Key.CTRL_C:
            return Action.QUIT
        if event.key is Key.ENTER:
            return self._submit()
        if event.key is Key.ESCAPE:
            return Action.CONTINUE
        if event.key is Key.UP:
            self._history_older()
        elif event.key is Key.DOWN:
            self._history_newer()
        elif not (event.key is Key.RUNES and is_mouse_sequence(event.text)):
            self.text_input.handle(event)
        return Action.CONTINUE

    def _history_older(self) -> None:
        if not self.history:
            return
        if self.history_index == -1:
            self.temp_input = self.text_input.value
        if self.history_index < len(self.history) - 1:
            self.history_index += 1
            self.text_input.value = self.history[-1 - self.history_index]

    def _history_newer(self) -> None:
        if self.history_index == -1:
            return
        if self.history_index == 0:
            self.text_input.value = self.temp_input
            self.history_index = -1
        else:
            self.history_index -= 1
            self.text_input.value = self.history[-1 - self.history_index]

    def _submit(self) -> Action:
        value = self.text_input.value
        if not value:
            return Action.CONTINUE
        user_input = strip_escape_sequences(value).strip()
        self.text_input.reset()
        if not user_input:
            return Action.CONTINUE
        self.viewport.goto_bottom()
        self.history_index = -1
        self.history.append(user_input)
        if len(self.history) > HISTORY_LIMIT:
            self.history = self.history[1:]
        if self.history_store is not None:
            with suppress(OSError):
                self.history_store.append(user_input)

        if user_input in ("/exit", "/quit"):
            return Action.QUIT
        if user_input == "/clear-history":
            self.history = []
            if self.history_store is not None:
                with suppress(OSError):
                    self.history_store.clear()
            self.history_index = -1
            self.temp_input = ""
            return Action.CONTINUE

        self.messages.append(ChatMessage(Role.USER, user_input))
        self.viewport.set_content(self.build_message_content())
        self.sending = True
        self.input_queue.put(Input(user_input))
        return Action.CONTINUE

    def _add_assistant(self, content: str, message_type: MessageType, style: _Style) -> None:
        self.messages.append(ChatMessage(Role.ASSISTANT, content, message_type))
        self._styles.append(style)

    def handle_output(self, output: Output) -> None:
        """Turn an agent output into conversation state."""
        prefix = _emoji_prefix(output)
        if output.type is OutputType.THINK:
            self._add_assistant(prefix + output.content, MessageType.THINK, _Style.GRAY)
        elif output.type is OutputType.TOOL_START:
            content = f"执行工具: {output.tool_name}({output.tool_args})"
            self._add_assistant(prefix + content, MessageType.TOOL_CALL, _Style.GRAY)
        elif output.type is OutputType.TOOL_RESULT:
            content = "工具执行成功" if output.tool_success else f"工具执行失败: {output.tool_result}"
            self._add_assistant(prefix + content, MessageType.TOOL_RESULT, _Style.GRAY)
        elif output.type is OutputType.TEXT:
            self._add_assistant(prefix + output.content, MessageType.TEXT, _Style.MARKDOWN)
            if output.cluster_name:
                self.cluster_ctx = output.cluster_name
        elif output.type is OutputType.DONE:
            self.sending = False
        elif output.type is OutputType.ERROR:
            self.error = output.content
            self.sending = False

    def build_message_content(self) -> str:
        """Render the conversation as ANSI text for the viewport."""
        parts: list[str] = []
        assistant_started = False
        styles = iter(self._styles)
        for message in self.messages:
            if message.role is Role.USER:
                assistant_started = False
                parts.append(f"{_BLUE}You{_RESET}: {message.content}\n\n")
            elif message.role is Role.ASSISTANT:
                if not assistant_started:
                    parts.append(f"{_GREEN}Assistant{_RESET}:\n")
                    assistant_started = True
                style = next(styles, _Style.NORMAL)
                content = message.content
                if style is _Style.MARKDOWN:
                    content = render_markdown(content)
                if style is _Style.GRAY:
                    content = f"{_GRAY}{content}{_RESET}"
                parts.append(content + "\n")
            elif message.role is Role.SYSTEM:
                assistant_started = False
                parts.append(f"{_PURPLE}System{_RESET}: {_GRAY}{message.content}{_RESET}\n\n")
        if self.error is not None:
            parts.append(f"{_RED}Error: {self.error}{_RESET}\n")
        return "".join(parts)

    def view(self) -> str:
        """Render the whole screen."""
        parts = [self.viewport.view(), f"\n{_GRAY}{'═' * RULE_WIDTH}{_RESET}\n"]
        if self.sending:
            parts.append(self.spinner.view() + " ")
        parts.append(self.text_input.view())
        parts.append(f"\n{_DARK_GRAY}{'─' * RULE_WIDTH}{_RESET}\n")
        if self.cluster_ctx:
            parts.append(f"{_DARK_GRAY}● {_RESET}{_BLUE}{self.cluster_ctx}{_RESET}")
        parts.append(_HIDE_CURSOR)
        return "".join(parts)

    def read_output(self) -> Output | None:
        """Take one pending agent output without waiting, or None."""
        if self.done.is_set():
            return None
        try:
            return self.output_queue.get_nowait()
        except queue.Empty:
            return None