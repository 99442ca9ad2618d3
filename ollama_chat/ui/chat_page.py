"""NiceGUI chat interface driven by the session controller."""

import html
import logging
import time

from nicegui import events, ui

from ollama_chat.attachments.image_resizer import ImageProcessingError
from ollama_chat.chat.controller import ChatController
from ollama_chat.errors import OllamaChatError
from ollama_chat.models.schemas import ConnectionState, Message, Role, StreamStatus
from ollama_chat.storage.sessions import preview
from ollama_chat.ui.formatting import format_date, format_time, markdown_to_html

logger = logging.getLogger(__name__)

# Minimum seconds between re-renders of a streaming reply
RENDER_INTERVAL = 0.05

CUSTOM_CSS = """
<style>
    body { background: #f5f5f5; }
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
    .message-error { background: #fee2e2; color: #991b1b; }
    .chat-item-active { background: #ede9fe; }
    .message-image { max-width: 240px; border-radius: 8px; margin-bottom: 6px; }
</style>
"""

STATUS_COLORS = {
    ConnectionState.CONNECTED: "text-green-300",
    ConnectionState.CONNECTING: "text-yellow-300",
    ConnectionState.DISCONNECTED: "text-red-300",
}


def register_pages(controller: ChatController) -> None:
    """Register the chat page against a controller."""

    @ui.page("/")
    def chat_page() -> None:
        ui.add_head_html(CUSTOM_CSS)

        messages_container: ui.column
        input_field: ui.textarea
        send_btn: ui.button
        status_label: ui.label
        image_badge: ui.row

        def render_message(msg: Message) -> ui.html:
            is_user = msg.role == Role.USER
            bubble = "message-user" if is_user else "message-assistant"
            if msg.is_error:
                bubble += " message-error"
            with ui.row().classes(f"w-full {'justify-end' if is_user else 'justify-start'}"):
                with ui.column().classes("max-w-[75%] gap-1"):
                    with ui.element("div").classes(f"px-4 py-3 {bubble}"):
                        for image in msg.images or []:
                            ui.image(f"data:image/jpeg;base64,{image}").classes("message-image")
                        content = (
                            html.escape(msg.content).replace("\n", "<br>")
                            if is_user
                            else markdown_to_html(msg.content)
                        )
                        label = ui.html(content, sanitize=False).classes("text-sm")
                    ui.label(format_time(msg.timestamp)).classes("text-[10px] text-gray-400")
            return label

        @ui.refreshable
        def session_list() -> None:
            sessions = controller.list_sessions()
            if not sessions:
                ui.label("No chats yet").classes("text-gray-400 p-2")
            for session in sessions:
                active = session.id == controller.sessions.active_id
                with (
                    ui.column()
                    .classes(
                        f"w-full gap-0 p-2 rounded cursor-pointer "
                        f"{'chat-item-active' if active else ''}"
                    )
                    .on("click", lambda _, sid=session.id: select_session(sid))
                ):
                    ui.label(session.title).classes("font-medium truncate w-full")
                    with ui.row().classes("w-full justify-between text-xs text-gray-500"):
                        ui.label(preview(session)).classes("truncate max-w-[70%]")
                        ui.label(format_date(session.updated_at))

        @ui.refreshable
        def chat_header() -> None:
            session = controller.active_session
            if session is None:
                ui.label("Start a new chat").classes("text-lg font-semibold")
                return
            ui.label(session.title).classes("text-lg font-semibold")
            options = controller.state.model_names
            if session.model and session.model not in options:
                options = [session.model, *options]
            ui.select(
                options,
                value=session.model or None,
                label="Model",
                on_change=lambda e: change_model(session.id, e.value),
            ).props("dense borderless").classes("w-48 text-xs")

        def refresh_messages() -> None:
            messages_container.clear()
            session = controller.active_session
            with messages_container:
                if session is None or not session.messages:
                    with ui.column().classes("w-full h-64 items-center justify-center"):
                        ui.icon("forum").classes("text-5xl text-gray-300")
                        ui.label("Start a conversation").classes("text-lg text-gray-400")
                    return
                for msg in session.messages:
                    render_message(msg)

        def refresh_all() -> None:
            session_list.refresh()
            chat_header.refresh()
            refresh_messages()

        def update_status() -> None:
            state = controller.connection
            status_label.set_text(state.value.capitalize())
            status_label.classes(replace=f"text-sm {STATUS_COLORS[state]}")

        def select_session(session_id: str) -> None:
            controller.select(session_id)
            refresh_all()

        def change_model(session_id: str, model: str | None) -> None:
            if model and session_id in controller.sessions:
                controller.set_model(session_id, model)
                session_list.refresh()

        def new_chat() -> None:
            controller.new_session()
            refresh_all()

        async def send_message() -> None:
            text = (input_field.value or "").strip()
            session = controller.active_session or controller.new_session()
            image = controller.state.pending_image
            try:
                controller.check_send(session.id, text, image)
            except OllamaChatError as e:
                ui.notify(str(e), type="warning")
                refresh_all()
                return

            input_field.value = ""
            controller.clear_image()
            image_badge.set_visibility(False)
            send_btn.disable()

            reply_label: ui.html | None = None
            accumulated = ""
            last_render = 0.0
            try:
                async for chunk in controller.stream_send(session.id, text, image):
                    if chunk.status == StreamStatus.RECEIVED:
                        refresh_all()
                    elif chunk.content:
                        accumulated += chunk.content
                        if reply_label is None:
                            with messages_container:
                                reply_label = render_message(session.messages[-1])
                        now = time.monotonic()
                        if now - last_render >= RENDER_INTERVAL:
                            reply_label.set_content(markdown_to_html(accumulated))
                            last_render = now
                    elif chunk.status == StreamStatus.ERROR:
                        ui.notify(chunk.error or "Request failed", type="negative")
            finally:
                send_btn.enable()
                update_status()
                refresh_all()

        async def reset_chat() -> None:
            session = controller.active_session
            if session is None:
                return
            await controller.reset(session.id)
            image_badge.set_visibility(False)
            refresh_all()

        def delete_chat() -> None:
            session = controller.active_session
            if session is None:
                return
            controller.delete(session.id)
            refresh_all()

        async def handle_upload(e: events.UploadEventArguments) -> None:
            try:
                controller.attach_image(await e.file.read())
            except ImageProcessingError as err:
                ui.notify(f"Error processing image: {err}", type="negative")
                return
            image_badge.set_visibility(True)

        def remove_image() -> None:
            controller.clear_image()
            image_badge.set_visibility(False)

        # === Settings dialog ===
        with ui.dialog() as settings_dialog, ui.card().classes("w-[28rem]"):
            ui.label("Settings").classes("text-lg font-semibold")
            endpoint_input = ui.input("Ollama endpoint").classes("w-full")
            model_select = ui.select([], label="Default model").classes("w-full")
            test_result = ui.label().classes("text-sm")

            async def test_connection() -> None:
                test_result.set_text("Testing connection...")
                ok = await controller.test_endpoint(endpoint_input.value or "")
                test_result.set_text(
                    "Connection successful!"
                    if ok
                    else "Connection failed. Please check the endpoint URL."
                )

            async def save_settings() -> None:
                try:
                    await controller.update_settings(
                        endpoint=endpoint_input.value, default_model=model_select.value or ""
                    )
                except (OllamaChatError, ValueError) as err:
                    ui.notify(str(err), type="negative")
                    return
                settings_dialog.close()
                update_status()
                refresh_all()

            with ui.row().classes("w-full justify-end"):
                ui.button("Test", on_click=test_connection).props("flat")
                ui.button("Cancel", on_click=settings_dialog.close).props("flat")
                ui.button("Save", on_click=save_settings)

        def open_settings() -> None:
            endpoint_input.value = controller.state.settings.endpoint
            model_select.options = controller.state.model_names
            model_select.value = controller.state.settings.default_model or None
            model_select.update()
            test_result.set_text("")
            settings_dialog.open()

        # === System prompt dialog ===
        with ui.dialog() as prompt_dialog, ui.card().classes("w-[32rem]"):
            ui.label("System prompt").classes("text-lg font-semibold")
            template_select = ui.select({}, label="Saved prompts").classes("w-full")
            prompt_text = ui.textarea("Prompt").props("autogrow").classes("w-full")
            prompt_name = ui.input("Template name").classes("w-full")

            def load_template(e: events.ValueChangeEventArguments) -> None:
                template = controller.prompts.get(e.value) if e.value else None
                if template is not None:
                    prompt_text.value = template.prompt

            template_select.on_value_change(load_template)

            def save_template() -> None:
                try:
                    controller.save_template(prompt_name.value or "", prompt_text.value or "")
                except OllamaChatError as err:
                    ui.notify(str(err), type="warning")
                    return
                template_select.options = {t.key: t.name for t in controller.prompts.list()}
                template_select.update()
                prompt_name.value = ""
                ui.notify("Prompt template saved successfully!", type="positive")

            def apply_prompt() -> None:
                session = controller.active_session
                if session is not None:
                    controller.apply_system_prompt(session.id, prompt_text.value or "")
                prompt_dialog.close()

            with ui.row().classes("w-full justify-end"):
                ui.button("Save template", on_click=save_template).props("flat")
                ui.button("Cancel", on_click=prompt_dialog.close).props("flat")
                ui.button("Apply", on_click=apply_prompt)

        def open_prompt_dialog() -> None:
            session = controller.active_session
            if session is None:
                return
            template_select.options = {t.key: t.name for t in controller.prompts.list()}
            template_select.value = None
            template_select.update()
            prompt_text.value = session.system_prompt
            prompt_name.value = ""
            prompt_dialog.open()

        # === Layout ===
        with ui.header().classes("items-center justify-between bg-indigo-600"):
            with ui.row().classes("items-center gap-3"):
                ui.icon("smart_toy").classes("text-white text-3xl")
                ui.label("Ollama Chat").classes("text-lg font-semibold text-white")
            with ui.row().classes("items-center gap-2"):
                status_label = ui.label()
                ui.button(icon="settings", on_click=open_settings).props("flat round color=white")

        with ui.left_drawer(value=True).classes("bg-white"):
            ui.button("New chat", icon="add", on_click=new_chat).classes("w-full mb-2")
            session_list()

        with ui.column().classes("w-full max-w-3xl mx-auto h-[calc(100vh-5rem)]"):
            with ui.row().classes("w-full items-center justify-between"):
                with ui.column().classes("gap-0"):
                    chat_header()
                with ui.row().classes("gap-1"):
                    ui.button(icon="psychology", on_click=open_prompt_dialog).props("flat round")
                    ui.button(icon="restart_alt", on_click=reset_chat).props("flat round")
                    ui.button(icon="delete", on_click=delete_chat).props("flat round")

            with ui.scroll_area().classes("flex-grow w-full bg-gray-50 rounded"):
                messages_container = ui.column().classes("w-full gap-4 p-4")

            with ui.row().classes("w-full items-center gap-2") as image_badge:
                ui.icon("image").classes("text-indigo-500")
                ui.label("Image attached").classes("text-xs text-gray-500")
                ui.button(icon="close", on_click=remove_image).props("flat round dense")
            image_badge.set_visibility(controller.state.pending_image is not None)

            with ui.row().classes("w-full gap-2 items-end"):
                ui.upload(on_upload=handle_upload, auto_upload=True, max_files=1).props(
                    "accept=image/* flat"
                ).classes("w-24")
                input_field = (
                    ui.textarea(placeholder="Type a message...")
                    .props("autogrow outlined dense rows=1")
                    .classes("flex-grow")
                    .on("keydown.enter.prevent", send_message)
                )
                send_btn = ui.button(icon="send", on_click=send_message).props("round")

        update_status()
        refresh_messages()
