import queue
import threading

import pytest

from kubechat_tui.history import HistoryStore
from kubechat_tui.messages import (
    ChatMessage,
    Input,
    MessageType,
    Output,
    OutputType,
    Role,
)
from kubechat_tui.model import (
    Action,
    ChatModel,
    Key,
    KeyEvent,
    MouseEvent,
    Viewport,
    WindowSize,
    is_mouse_sequence,
    render_markdown,
    strip_escape_sequences,
)


@pytest.fixture
def setup(tmp_path):
    inputs = queue.Queue()
    outputs = queue.Queue()
    store = HistoryStore(tmp_path / "history.txt")
    model = ChatModel(inputs, outputs, cluster_ctx="test-cluster", history_store=store)
    return model, inputs, outputs, store


def enter(model, text):
    model.text_input.value = text
    return model.update(KeyEvent(Key.ENTER))


def test_user_types_and_presses_enter(setup):
    model, inputs, _, _ = setup
    action = enter(model, "get pods")
    assert action is Action.CONTINUE
    assert len(model.messages) == 1
    assert model.messages[0].role is Role.USER
    assert model.messages[0].content == "get pods"
    assert inputs.get_nowait() == Input("get pods")
    assert model.sending is True


def test_empty_input_is_ignored(setup):
    model, inputs, _, _ = setup
    model.update(KeyEvent(Key.ENTER))
    assert model.messages == []
    assert inputs.empty()


def test_input_of_only_escapes_is_ignored(setup):
    model, inputs, _, _ = setup
    enter(model, "\x1b[31m  \x1b[0m")
    assert model.messages == []
    assert inputs.empty()
    assert model.text_input.value == ""


@pytest.mark.parametrize("command", ["/clusters", "/cluster dev"])
def test_commands_are_sent_to_agent(setup, command):
    model, inputs, _, _ = setup
    enter(model, command)
    assert inputs.get_nowait().text == command


@pytest.mark.parametrize("command", ["/exit", "/quit"])
def test_exit_commands_quit(setup, command):
    model, inputs, _, _ = setup
    assert enter(model, command) is Action.QUIT
    assert inputs.empty()


def test_text_output_renders_in_viewport(setup):
    model, _, _, _ = setup
    model.messages.append(ChatMessage(Role.USER, "get pods"))
    output = Output(type=OutputType.TEXT,
                    content="Here are the pods in default namespace...",
                    message_type="text")
    model.update(output)
    assert len(model.messages) == 2
    assert model.messages[1].message_type is MessageType.TEXT


def test_think_output_has_emoji(setup):
    model, _, _, _ = setup
    model.update(Output(type=OutputType.THINK, content="分析中...", message_type="think"))
    assert len(model.messages) == 1
    assert model.messages[0].message_type is MessageType.THINK
    assert model.messages[0].content == "💭 分析中..."


def test_tool_start_output_has_emoji(setup):
    model, _, _, _ = setup
    model.update(Output(type=OutputType.TOOL_START, tool_name="k8s_get",
                        tool_args='{"resource":"pods"}', message_type="tool_call"))
    assert len(model.messages) == 1
    assert model.messages[0].message_type is MessageType.TOOL_CALL
    assert model.messages[0].content == '🔧 执行工具: k8s_get({"resource":"pods"})'


def test_tool_result_success(setup):
    model, _, _, _ = setup
    model.update(Output(type=OutputType.TOOL_RESULT, tool_success=True,
                        message_type="tool_result"))
    assert len(model.messages) == 1
    assert model.messages[0].message_type is MessageType.TOOL_RESULT
    assert model.messages[0].content == "✅ 工具执行成功"


def test_tool_result_failure(setup):
    model, _, _, _ = setup
    model.update(Output(type=OutputType.TOOL_RESULT, tool_success=False,
                        tool_result="pod not found", message_type="tool_result"))
    assert len(model.messages) == 1
    assert model.messages[0].message_type is MessageType.TOOL_RESULT
    assert model.messages[0].content == "❌ 工具执行失败: pod not found"


def test_emoji_falls_back_to_output_type(setup):
    model, _, _, _ = setup
    model.update(Output(type=OutputType.THINK, content="hmm"))
    assert model.messages[0].content == "💭 hmm"


def test_text_output_switches_cluster(setup):
    model, _, _, _ = setup
    model.update(Output(type=OutputType.TEXT, content="switched", cluster_name="prod"))
    assert model.cluster_ctx == "prod"


def test_done_and_error_stop_sending(setup):
    model, _, _, _ = setup
    enter(model, "get pods")
    model.update(Output(type=OutputType.DONE))
    assert model.sending is False
    model.sending = True
    model.update(Output(type=OutputType.ERROR, content="boom"))
    assert model.sending is False
    assert model.error == "boom"
    assert "Error: boom" in model.build_message_content()


def test_viewport_content_after_user_input(setup):
    model, _, _, _ = setup
    model.messages.append(ChatMessage(Role.USER, "test message"))
    content = model.build_message_content()
    assert "test message" in content
    assert "You" in content


def test_viewport_content_after_agent_output(setup):
    model, _, _, _ = setup
    model.messages.append(ChatMessage(Role.USER, "get pods"))
    model.messages.append(ChatMessage(Role.ASSISTANT, "pods list here", MessageType.TEXT))
    content = model.build_message_content()
    assert "Assistant" in content
    assert "pods list here" in content


def test_assistant_header_once_per_turn(setup):
    model, _, _, _ = setup
    model.update(Output(type=OutputType.THINK, content="a"))
    model.update(Output(type=OutputType.TEXT, content="b"))
    assert model.build_message_content().count("Assistant") == 1


def test_ctrl_c_exits(setup):
    model, _, _, _ = setup
    assert model.update(KeyEvent(Key.CTRL_C)) is Action.QUIT


def test_escape_is_handled(setup):
    model, _, _, _ = setup
    model.messages.append(ChatMessage(Role.USER, "test"))
    assert model.update(KeyEvent(Key.ESCAPE)) is Action.CONTINUE
    assert len(model.messages) == 1


def test_window_resize_updates_viewport(setup):
    model, _, _, _ = setup
    model.update(WindowSize(width=120, height=30))
    assert model.viewport.width == 120
    assert model.viewport.height == 25
    assert model.height == 30


def test_read_output(setup):
    model, _, outputs, _ = setup
    outputs.put(Output(type=OutputType.TEXT, content="test output", message_type="text"))
    output = model.read_output()
    assert output.content == "test output"
    assert model.read_output() is None


def test_read_output_after_done(tmp_path):
    outputs = queue.Queue()
    done = threading.Event()
    model = ChatModel(queue.Queue(), outputs, done=done)
    outputs.put(Output(type=OutputType.TEXT, content="late"))
    done.set()
    assert model.read_output() is None


def test_history_navigation(setup):
    model, _, _, _ = setup
    enter(model, "first")
    enter(model, "second")
    model.text_input.value = "draft"
    model.update(KeyEvent(Key.UP))
    assert model.text_input.value == "second"
    model.update(KeyEvent(Key.UP))
    assert model.text_input.value == "first"
    model.update(KeyEvent(Key.UP))
    assert model.text_input.value == "first"
    model.update(KeyEvent(Key.DOWN))
    assert model.text_input.value == "second"
    model.update(KeyEvent(Key.DOWN))
    assert model.text_input.value == "draft"
    assert model.history_index == -1


def test_history_is_persisted_and_limited(setup):
    model, _, _, store = setup
    for n in range(101):
        enter(model, f"cmd {n}")
    assert len(model.history) == 100
    assert model.history[0] == "cmd 1"
    assert store.load()[-1] == "cmd 100"


def test_history_loaded_on_start(tmp_path):
    store = HistoryStore(tmp_path / "h.txt")
    store.save(["old one"])
    model = ChatModel(queue.Queue(), queue.Queue(), history_store=store)
    assert model.history == ["old one"]


def test_clear_history(setup):
    model, inputs, _, store = setup
    enter(model, "get pods")
    inputs.get_nowait()
    assert enter(model, "/clear-history") is Action.CONTINUE
    assert model.history == []
    assert store.load() == []
    assert inputs.empty()


def test_typing_and_editing(setup):
    model, _, _, _ = setup
    for ch in "ab":
        model.update(KeyEvent(Key.RUNES, ch))
    model.update(KeyEvent(Key.BACKSPACE))
    model.update(KeyEvent(Key.RUNES, "c"))
    assert model.text_input.value == "ac"


def test_mouse_sequence_is_not_typed(setup):
    model, _, _, _ = setup
    model.update(KeyEvent(Key.RUNES, "[<65;24;33M"))
    assert model.text_input.value == ""


def test_view_layout(setup):
    model, _, _, _ = setup
    screen = model.view()
    assert "═" * 80 in screen
    assert "─" * 80 in screen
    assert "test-cluster" in screen
    assert screen.endswith("\x1b[?25l")


def test_viewport_scrolling():
    viewport = Viewport(80, 20)
    viewport.set_content("\n".join(str(n) for n in range(30)))
    viewport.goto_bottom()
    assert viewport.y_offset == 10
    viewport.handle_mouse(MouseEvent(-1))
    assert viewport.y_offset == 7
    viewport.handle_key(KeyEvent(Key.PAGE_UP))
    assert viewport.y_offset == 0
    assert viewport.view().split("\n")[0] == "0"


def test_mouse_wheel_scrolls_model_viewport(setup):
    model, _, _, _ = setup
    model.viewport.set_content("\n".join("x" for _ in range(50)))
    model.viewport.goto_bottom()
    bottom = model.viewport.y_offset
    model.update(MouseEvent(-1))
    assert model.viewport.y_offset == bottom - 3


def test_strip_escape_sequences():
    assert strip_escape_sequences("\x1b[31mhi\x1b[0m") == "hi"
    assert strip_escape_sequences("[<65;24;33Mabc") == "abc"


def test_is_mouse_sequence():
    assert is_mouse_sequence("[<65;24;33M")
    assert not is_mouse_sequence("[<1")
    assert not is_mouse_sequence("[<ab")
    assert not is_mouse_sequence("hello")


def test_render_markdown_heading_and_bold():
    rendered = render_markdown("# Title\n\nsome **bold** text")
    assert "### Title" in rendered
    assert "**" not in rendered
    assert "bold" in rendered


def test_render_markdown_list_and_rule():
    rendered = render_markdown("- a\n- b\n\n---")
    assert "• a" in rendered
    assert "• b" in rendered
    assert "--------" in rendered