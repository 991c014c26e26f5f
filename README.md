# kubechat-tui

A full-screen terminal chat interface for a Kubernetes assistant agent.
The interface shows the conversation in a scrollable viewport, takes the
user's input on a prompt line below it, and shows the current cluster
context at the bottom of the screen.

## How it fits together

The interface talks to the agent through two queues:

- `TUI.run(input_queue, output_queue)` starts the interface. Every line the
  user submits is put on `input_queue` as an `Input`. Everything the agent
  produces is read from `output_queue` as `Output` items.
- `TUI.close()` stops the interface from forwarding further agent output.

An `Output` carries an `OutputType`:

| Output type    | Shown as                                           |
|----------------|----------------------------------------------------|
| think          | gray, prefixed with 💭                             |
| tool start     | gray, `执行工具: name(args)`, prefixed with 🔧     |
| tool result    | gray, success ✅ or failure ❌ with the tool output |
| text           | rendered as Markdown; may switch the cluster shown |
| done           | ends the "sending" spinner                         |
| error          | shown in red below the conversation                |

A run of assistant messages is introduced once with an `Assistant:` heading;
user lines appear as `You: ...`.

## Keys and commands

- **Enter** sends the current line. Empty lines and stray terminal escape
  sequences are ignored.
- **Up / Down** browse earlier input; going past the newest entry restores
  what you had typed before browsing.
- **Ctrl+C**, `/exit` or `/quit` leave the interface.
- `/clear-history` forgets all stored input history.
- Every other line, including commands such as `/clusters` or
  `/cluster <name>`, is passed on to the agent.

## Input history

Submitted lines are kept in memory (the latest 100) and appended to
`~/.config/k8s-agent/history/history.txt`, one entry per line. `HistoryStore`
manages this file; an older JSON history file is migrated to the line format
automatically on start-up.

## Embedding the model

The screen logic lives in `ChatModel`, which can be driven without a
terminal: feed it events with `ChatModel.update`, agent output with
`ChatModel.handle_output`, and read the rendered screen with
`ChatModel.view` or the conversation text with
`ChatModel.build_message_content`.