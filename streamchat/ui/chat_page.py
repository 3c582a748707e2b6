"""NiceGUI chat interface with SSE streaming support."""

import logging
from functools import partial

from nicegui import ui

from streamchat.models.schemas import ChatSession, Message, MessageRole
from streamchat.ui.client import ChatApiClient
from streamchat.ui.orchestrator import ChatOrchestrator

logger = logging.getLogger(__name__)

PAGE_CSS = """
<style>
    body { background: #f5f5f5; }

    .chat-header { background: linear-gradient(135deg, #0f766e 0%, #1e3a8a 100%); }

    .bubble-user {
        background: #1e3a8a;
        color: white;
        border-radius: 18px 18px 4px 18px;
    }

    .bubble-assistant {
        background: #f3f4f6;
        color: #1f2937;
        border-radius: 18px 18px 18px 4px;
    }

    .bubble-assistant pre { background: #1f2937; color: #f3f4f6; padding: 0.75rem; border-radius: 8px; }

    .typing-dot {
        width: 8px; height: 8px;
        background: #0f766e;
        border-radius: 50%;
        animation: bounce 1.4s infinite ease-in-out;
    }
    .typing-dot:nth-child(2) { animation-delay: 0.2s; }
    .typing-dot:nth-child(3) { animation-delay: 0.4s; }

    @keyframes bounce {
        0%, 60%, 100% { transform: translateY(0); }
        30% { transform: translateY(-6px); }
    }

    .session-active { background: #e0f2fe; }
</style>
"""


def format_time(message: Message) -> str:
    return message.timestamp.astimezone().strftime("%I:%M %p")


@ui.page("/")
async def chat_page() -> None:
    """Main chat page: session sidebar, transcript and input row."""
    ui.add_head_html(PAGE_CSS)

    def notify(message: str, level: str) -> None:
        ui.notify(message, type=level)

    client = ChatApiClient()
    orchestrator = ChatOrchestrator(client, notify=notify)

    # --- transcript ------------------------------------------------------

    def render_bubble(message: Message) -> None:
        is_user = message.role == MessageRole.USER
        align = "justify-end" if is_user else "justify-start"
        bubble = "bubble-user" if is_user else "bubble-assistant"

        with ui.row().classes(f"w-full {align} gap-3 items-end"):
            if not is_user:
                ui.icon("smart_toy").classes("text-2xl text-gray-500")
            with ui.column().classes("max-w-[75%] gap-1"):
                with ui.element("div").classes(f"px-4 py-3 {bubble}"):
                    if not message.content:
                        with ui.row().classes("gap-1 items-center"):
                            for _ in range(3):
                                ui.element("div").classes("typing-dot")
                    elif is_user:
                        ui.label(message.content).classes("text-sm whitespace-pre-wrap")
                    else:
                        ui.markdown(message.content).classes("text-sm leading-relaxed")
                ui.label(format_time(message)).classes(
                    f"text-[10px] text-gray-400 {'self-end' if is_user else 'self-start'}"
                )
            if is_user:
                ui.icon("person").classes("text-2xl text-gray-500")

    @ui.refreshable
    def transcript() -> None:
        if not orchestrator.messages:
            with ui.column().classes("w-full h-64 items-center justify-center gap-3"):
                ui.icon("forum").classes("text-5xl text-gray-300")
                ui.label("Start a conversation").classes("text-lg text-gray-400")
            return
        for message in orchestrator.messages:
            render_bubble(message)

    # --- sidebar ---------------------------------------------------------

    async def ask_rename(session: ChatSession) -> None:
        with ui.dialog() as dialog, ui.card().classes("w-96"):
            ui.label("Rename chat").classes("text-base font-semibold")
            title_input = ui.input("Title", value=session.title).classes("w-full")
            with ui.row().classes("w-full justify-end"):
                ui.button("Cancel", on_click=lambda: dialog.submit(None)).props("flat")
                ui.button("Save", on_click=lambda: dialog.submit(title_input.value))
        title = await dialog
        dialog.delete()
        if title is not None:
            await orchestrator.rename_session(session.id, title)

    async def ask_clear_all() -> None:
        with ui.dialog() as dialog, ui.card():
            ui.label("Delete every chat? This cannot be undone.")
            with ui.row().classes("w-full justify-end"):
                ui.button("Cancel", on_click=lambda: dialog.submit(False)).props("flat")
                ui.button("Delete all", on_click=lambda: dialog.submit(True)).props("color=negative")
        confirmed = await dialog
        dialog.delete()
        if confirmed:
            await orchestrator.clear_all_sessions()

    @ui.refreshable
    def session_list() -> None:
        if not orchestrator.sessions:
            ui.label("No chats yet").classes("text-sm text-gray-400 px-2")
            return
        for session in orchestrator.sessions:
            active = "session-active" if session.id == orchestrator.session_id else ""
            with ui.row().classes(f"w-full items-center gap-1 rounded px-2 no-wrap {active}"):
                ui.label(session.title).classes("flex-grow text-sm truncate cursor-pointer").on(
                    "click", partial(orchestrator.load_session, session.id)
                )
                ui.button(icon="edit", on_click=partial(ask_rename, session)).props(
                    "flat round dense size=sm"
                )
                ui.button(
                    icon="delete",
                    on_click=partial(orchestrator.delete_session, session.id),
                ).props("flat round dense size=sm color=negative")

    # --- input -----------------------------------------------------------

    async def send() -> None:
        text = input_field.value
        if not text or not text.strip() or orchestrator.is_streaming:
            return
        input_field.value = ""
        await orchestrator.send_message(text)

    def refresh_all() -> None:
        transcript.refresh()
        session_list.refresh()
        send_btn.set_visibility(not orchestrator.is_streaming)
        cancel_btn.set_visibility(orchestrator.is_streaming)

    # === UI Layout ===
    with ui.left_drawer(value=True).classes("bg-white border-r").props("width=280"):
        with ui.row().classes("w-full items-center justify-between"):
            ui.label("Chats").classes("text-base font-semibold")
            ui.button(icon="delete_sweep", on_click=ask_clear_all).props("flat round dense")
        ui.separator()
        session_list()

    with ui.header().classes("chat-header px-5 py-3 items-center justify-between"):
        with ui.row().classes("items-center gap-3"):
            ui.icon("smart_toy").classes("text-white text-3xl")
            ui.label("Chat Assistant").classes("text-lg font-semibold text-white")
        ui.button(icon="add", on_click=orchestrator.new_chat).props("flat round color=white")

    with ui.column().classes("w-full max-w-3xl mx-auto gap-4 pb-28"):
        transcript()

    with ui.footer().classes("bg-white border-t"), ui.row().classes(
        "w-full max-w-3xl mx-auto p-3 gap-3 items-end no-wrap"
    ):
        input_field = (
            ui.textarea(placeholder="Type a message...")
            .props("autogrow outlined dense rows=1")
            .classes("flex-grow")
            .on("keydown.enter.prevent", send)
        )
        send_btn = ui.button(icon="send", on_click=send).props("round unelevated color=primary")
        cancel_btn = ui.button(icon="stop", on_click=orchestrator.cancel).props(
            "round unelevated color=negative"
        )
        cancel_btn.set_visibility(False)

    orchestrator.set_on_change(refresh_all)

    async def on_disconnect() -> None:
        orchestrator.cancel()
        await client.close()

    ui.context.client.on_disconnect(on_disconnect)

    await ui.context.client.connected()
    await orchestrator.refresh_sessions()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    ui.run(title="Chat Assistant", port=8080, reload=False)


if __name__ == "__main__":
    main()
