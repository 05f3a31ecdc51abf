"""Terminal chat client built on the session engine.

The app renders `ChatSessionState` and forwards user intents to the engine.
State changes arrive through a subscription and are re-posted as Textual
messages so widgets are only touched from the message loop.
"""

from typing import Any, List, Optional

from loguru import logger
from rich.markup import escape
from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.message import Message as TextualMessage
from textual.widgets import Footer, Header, Input, OptionList, Static
from textual.widgets.option_list import Option

from llmchat.Chat.chat_models import Conversation, Message, MessageRole
from llmchat.Chat.session_engine import ChatSessionEngine


ROLE_LABELS = {
    MessageRole.USER: "You",
    MessageRole.ASSISTANT: "Assistant",
    MessageRole.SYSTEM: "System",
}


class StateChanged(TextualMessage):
    """An observable field of the session state changed."""

    def __init__(self, field: str, value: Any) -> None:
        super().__init__()
        self.field = field
        self.value = value


def render_transcript(messages: List[Message]) -> str:
    if not messages:
        return "[dim]Start typing to chat.[/dim]"
    blocks = []
    for message in messages:
        label = ROLE_LABELS.get(message.role, message.role.value)
        content = escape(message.content) if message.content else "[dim]…[/dim]"
        blocks.append(f"[b]{label}[/b]\n{content}")
    return "\n\n".join(blocks)


def conversation_label(conversation: Conversation) -> str:
    marker = "● " if conversation.is_active else "  "
    preview = (conversation.last_message or "").replace("\n", " ")
    if len(preview) > 40:
        preview = preview[:39] + "…"
    title = escape(conversation.title)
    return f"{marker}{title}\n  [dim]{escape(preview)}[/dim]" if preview else f"{marker}{title}"


class LLMChatApp(App):
    """Main chat application."""

    CSS = """
    #sidebar {
        width: 32;
        border-right: solid $primary;
    }
    #conversation-list {
        height: 1fr;
    }
    #model-label {
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }
    #transcript-scroll {
        height: 1fr;
        padding: 0 1;
    }
    #chat-input {
        dock: bottom;
    }
    """

    TITLE = "llmchat"

    BINDINGS = [
        Binding("ctrl+n", "new_conversation", "New Chat", priority=True),
        Binding("ctrl+d", "delete_conversation", "Delete", priority=True),
        Binding("ctrl+r", "regenerate", "Regenerate", priority=True),
        Binding("ctrl+k", "clear_conversation", "Clear Chat", priority=True),
        Binding("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, engine: ChatSessionEngine, bootstrap: bool = True, **kwargs):
        super().__init__(**kwargs)
        self.engine = engine
        self._bootstrap = bootstrap
        self._unsubscribe = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal():
            with Vertical(id="sidebar"):
                yield OptionList(id="conversation-list")
                yield Static("No model", id="model-label")
            with Vertical():
                with VerticalScroll(id="transcript-scroll"):
                    yield Static(render_transcript([]), id="transcript")
                yield Input(placeholder="Message (Enter to send)", id="chat-input")
        yield Footer()

    async def on_mount(self) -> None:
        self._unsubscribe = self.engine.state.subscribe(self._on_state_change)
        if self._bootstrap:
            await self.engine.bootstrap()
        self._render_all()
        self.query_one("#chat-input", Input).focus()

    async def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        await self.engine.aclose()

    def _on_state_change(self, name: str, old: Any, new: Any) -> None:
        self.post_message(StateChanged(name, new))

    # --- Rendering ---

    def _render_all(self) -> None:
        state = self.engine.state
        self._render_transcript(state.messages)
        self._render_conversations(state.conversations)
        self._render_model(state.selected_model)

    def _render_transcript(self, messages: List[Message]) -> None:
        self.query_one("#transcript", Static).update(render_transcript(messages))
        self.query_one("#transcript-scroll", VerticalScroll).scroll_end(animate=False)

    def _render_conversations(self, conversations: List[Conversation]) -> None:
        option_list = self.query_one("#conversation-list", OptionList)
        option_list.clear_options()
        option_list.add_options([Option(conversation_label(c), id=c.id) for c in conversations])

    def _render_model(self, model) -> None:
        label = f"Model: {model.name}" if model is not None else "No model"
        self.query_one("#model-label", Static).update(label)

    def on_state_changed(self, message: StateChanged) -> None:
        if message.field == "messages":
            self._render_transcript(message.value)
        elif message.field == "conversations":
            self._render_conversations(message.value)
        elif message.field == "current_conversation" and message.value is not None:
            self.sub_title = message.value.title
        elif message.field == "selected_model":
            self._render_model(message.value)
        elif message.field == "is_sending":
            chat_input = self.query_one("#chat-input", Input)
            chat_input.disabled = bool(message.value)
            if not message.value:
                chat_input.focus()
        elif message.field == "error" and message.value is not None:
            self.notify(str(message.value), title="Error", severity="error")

    # --- Input ---

    @on(Input.Submitted, "#chat-input")
    def handle_submit(self, event: Input.Submitted) -> None:
        text = event.value
        if not text.strip():
            return
        event.input.value = ""
        self.run_worker(self.engine.send(text), group="exchange", exclusive=False)

    @on(OptionList.OptionSelected, "#conversation-list")
    async def handle_conversation_selected(self, event: OptionList.OptionSelected) -> None:
        conversation = self._find_conversation(event.option.id)
        if conversation is not None and not conversation.is_active:
            await self.engine.select_conversation(conversation)

    def _find_conversation(self, conversation_id: Optional[str]) -> Optional[Conversation]:
        return next((c for c in self.engine.state.conversations if c.id == conversation_id), None)

    # --- Actions ---

    async def action_new_conversation(self) -> None:
        await self.engine.start_new_conversation()

    async def action_delete_conversation(self) -> None:
        current = self.engine.state.current_conversation
        if current is not None:
            await self.engine.delete_conversation(current)

    def action_regenerate(self) -> None:
        if not self.engine.can_regenerate:
            self.notify("Nothing to regenerate", severity="warning")
            return
        self.run_worker(self.engine.regenerate_last(), group="exchange", exclusive=False)

    def action_clear_conversation(self) -> None:
        logger.debug("Clearing visible transcript")
        self.engine.clear_conversation()
