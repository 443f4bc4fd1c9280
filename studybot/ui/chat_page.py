"""NiceGUI chat widget driven by the in-process chat controller."""

from nicegui import ui

from studybot.chat.controller import ChatView, get_chat_controller
from studybot.chat.formatter import format_text, plain_to_html, to_html
from studybot.models.schemas import Identity, Message, Role

CUSTOM_CSS = """
<link href="https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600&display=swap"
      rel="stylesheet">
<link href="https://fonts.googleapis.com/icon?family=Material+Icons" rel="stylesheet">
<style>
    * { font-family: 'Inter', sans-serif; }

    body { background: #f5f5f5; min-height: 100vh; }

    .app-container {
        background: white;
        border-radius: 12px;
        box-shadow: 0 2px 8px rgba(0, 0, 0, 0.1);
        overflow: hidden;
    }

    .header { background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); }

    .message-user {
        background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
        color: white;
        border-radius: 18px 18px 4px 18px;
    }

    .message-assistant {
        background: #f3f4f6;
        color: #1f2937;
        border-radius: 18px 18px 18px 4px;
    }

    .avatar-user { background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); }
    .avatar-assistant { background: #6b7280; }

    .typing-dot {
        width: 8px; height: 8px;
        background: #667eea;
        border-radius: 50%;
        animation: bounce 1.4s infinite ease-in-out;
    }
    .typing-dot:nth-child(2) { animation-delay: 0.2s; }
    .typing-dot:nth-child(3) { animation-delay: 0.4s; }

    @keyframes bounce {
        0%, 60%, 100% { transform: translateY(0); }
        30% { transform: translateY(-6px); }
    }

    .typing-cursor::after {
        content: '\\258B';
        margin-left: 2px;
        opacity: 0.7;
        animation: blink 1s step-end infinite;
    }

    @keyframes blink {
        0%, 100% { opacity: 1; }
        50% { opacity: 0; }
    }

    .send-btn { background: linear-gradient(135deg, #667eea 0%, #764ba2 100%) !important; }
</style>
"""


_TYPING_INDICATOR_KEY = "typing-indicator"


def _layout_key(view: ChatView) -> list[str]:
    """Identify what is laid out on screen; text growth does not change it."""
    key = [msg.id for msg in view.messages]
    if view.loading:
        key.append(_TYPING_INDICATOR_KEY)
    return key


@ui.page("/")
def chat_page() -> None:
    """Main chat page."""
    ui.add_head_html(CUSTOM_CSS)
    controller = get_chat_controller()

    messages_container: ui.column
    input_field: ui.textarea
    send_btn: ui.button
    clear_btn: ui.button
    name_label: ui.label

    # Rendered assistant bubbles by message id, for in-place streaming updates
    bubbles: dict[str, tuple[ui.element, ui.html]] = {}
    rendered_ids: list[str] = []

    def render_avatar(is_user: bool) -> None:
        css = "avatar-user" if is_user else "avatar-assistant"
        icon = "person" if is_user else "smart_toy"
        avatar_classes = f"w-9 h-9 rounded-full flex items-center justify-center {css}"
        identity = controller.identity
        avatar_src = identity.avatar_src if identity is not None else None
        if is_user and avatar_src:
            ui.image(avatar_src).classes("w-9 h-9 rounded-full")
            return
        with ui.element("div").classes(avatar_classes):
            ui.icon(icon).classes("text-white text-lg")

    def render_message(msg: Message, growing: bool) -> None:
        is_user = msg.role is Role.USER
        align = "justify-end" if is_user else "justify-start"
        bubble_css = "message-user" if is_user else "message-assistant"

        with ui.row().classes(f"w-full {align} gap-3 items-end"):
            if not is_user:
                render_avatar(False)
            with ui.column().classes("max-w-[70%] gap-1"):
                with ui.element("div").classes(f"px-4 py-3 {bubble_css}") as bubble:
                    # Formatted tree for assistant, escaped plain text for user
                    content = plain_to_html(msg.text) if is_user else to_html(format_text(msg.text))
                    body = ui.html(content, sanitize=False).classes("text-sm leading-relaxed")
                if growing:
                    bubble.classes(add="typing-cursor")
                ui.label(msg.created_at.astimezone().strftime("%I:%M %p")).classes(
                    f"text-[10px] text-gray-400 {'self-end' if is_user else 'self-start'}"
                )
            if is_user:
                render_avatar(True)
        if not is_user:
            bubbles[msg.id] = (bubble, body)

    def render_typing_indicator() -> None:
        with ui.row().classes("w-full justify-start gap-3 items-end"):
            render_avatar(False)
            with ui.element("div").classes("message-assistant px-4 py-3"):
                with ui.row().classes("gap-1"):
                    for _ in range(3):
                        ui.element("div").classes("typing-dot")

    def rebuild(view: ChatView) -> None:
        messages_container.clear()
        bubbles.clear()
        rendered_ids[:] = _layout_key(view)
        with messages_container:
            if not view.messages:
                with ui.column().classes("w-full h-64 items-center justify-center gap-3"):
                    ui.icon("forum").classes("text-5xl text-gray-300")
                    ui.label("Hãy bắt đầu trò chuyện").classes("text-lg text-gray-400")
            for msg in view.messages:
                render_message(msg, view.streaming and msg.id == view.target_message_id)
            if view.loading:
                render_typing_indicator()

    def refresh(view: ChatView) -> None:
        if _layout_key(view) == rendered_ids and view.messages:
            # Only the tail can have changed: grow it in place
            tail = view.messages[-1]
            if tail.id in bubbles:
                bubble, body = bubbles[tail.id]
                body.set_content(to_html(format_text(tail.text)))
                if view.streaming and tail.id == view.target_message_id:
                    bubble.classes(add="typing-cursor")
                else:
                    bubble.classes(remove="typing-cursor")
        else:
            rebuild(view)

        send_btn.set_enabled(not view.busy)
        input_field.set_enabled(not view.busy)
        clear_btn.set_enabled(not view.busy)
        identity = controller.identity
        name_label.set_text(identity.display_name if identity else "Khách")

    def clear_input() -> None:
        input_field.value = controller.draft

    async def send_message() -> None:
        controller.draft = input_field.value or ""
        await controller.submit(on_sent=clear_input)

    def confirm_clear() -> None:
        with ui.dialog() as dialog, ui.card():
            ui.label("Bạn có chắc muốn xóa lịch sử trò chuyện?")
            with ui.row().classes("w-full justify-end"):
                ui.button("Hủy", on_click=dialog.close).props("flat")

                def do_clear() -> None:
                    controller.clear_history()
                    dialog.close()

                ui.button("Xóa", on_click=do_clear).props("color=negative")
        dialog.open()

    # === Profile dialog ===
    with ui.dialog() as profile_dialog, ui.card().classes("w-80"):
        ui.label("Hồ sơ của bạn").classes("text-lg font-semibold")
        name_input = ui.input("Tên hiển thị").classes("w-full")

        def save_profile() -> None:
            name = (name_input.value or "").strip()
            if not name:
                ui.notify("Vui lòng nhập tên", type="warning")
                return
            current = controller.identity
            controller.set_identity(
                Identity(
                    display_name=name,
                    avatar_image=current.avatar_image if current else None,
                )
            )
            profile_dialog.close()

        with ui.row().classes("w-full justify-end"):
            ui.button("Lưu", on_click=save_profile)

    def open_profile() -> None:
        identity = controller.identity
        name_input.value = identity.display_name if identity else ""
        profile_dialog.open()

    # === UI Layout ===
    with (
        ui.element("div").classes("w-full min-h-screen p-4 md:p-8"),
        ui.column().classes("w-full max-w-3xl mx-auto app-container").style(
            "height: calc(100vh - 4rem)"
        ),
    ):
        # Header
        with ui.row().classes("w-full header px-5 py-4 items-center justify-between"):
            with ui.row().classes("items-center gap-3"):
                ui.icon("smart_toy").classes("text-white text-3xl")
                ui.label("StudyBot AI").classes("text-lg font-semibold text-white")
            with ui.row().classes("items-center gap-3"):
                name_label = ui.label().classes("text-xs text-white/80")
                ui.button(icon="person", on_click=open_profile).props("flat round color=white")
                clear_btn = ui.button(icon="delete", on_click=confirm_clear).props(
                    "flat round color=white"
                )

        # Messages
        with (
            ui.scroll_area().classes("flex-grow w-full bg-gray-50"),
            ui.column().classes("w-full p-5"),
        ):
            messages_container = ui.column().classes("w-full gap-4")

        # Input
        with ui.row().classes("w-full p-4 gap-3 items-end bg-white border-t"):
            input_field = (
                ui.textarea(placeholder="Hỏi gì đó đi...")
                .props("autogrow borderless dense rows=1")
                .classes("flex-grow")
                .on("keydown.enter.prevent", send_message)
            )
            send_btn = (
                ui.button(icon="send", on_click=send_message)
                .props("round unelevated")
                .classes("send-btn")
            )

    refresh(controller.view)

    unsubscribe_view = controller.subscribe(refresh)
    unsubscribe_identity = controller.on_identity_required(open_profile)

    def detach() -> None:
        unsubscribe_view()
        unsubscribe_identity()

    ui.context.client.on_disconnect(detach)


def main() -> None:
    ui.run(title="StudyBot", port=8080, reload=False)


if __name__ == "__main__":
    main()
