"""Dash callbacks wiring the UI to the session controller."""

import dash_bootstrap_components as dbc
from dash import ALL, Input, Output, State, callback_context, html, no_update

from .models import ThemeName


def register_callbacks(app):
    session = app.session

    def render_messages():
        return app.layout_builder.build_messages(
            session.messages, session.settings.show_edit_badges
        )

    def theme_class(theme):
        return f"d-flex flex-column vh-100 parley-theme-{ThemeName(theme).value}"

    @app.callback(
        [
            Output("messages_container", "children"),
            Output("settings_provider", "value"),
            Output("settings_api_key", "value"),
            Output("settings_model", "value"),
            Output("settings_theme", "value"),
            Output("settings_edit_badges", "value"),
            Output("app_root", "className"),
        ],
        Input("url_location", "pathname"),
    )
    def load_page(_):
        settings = session.settings
        return (
            render_messages(),
            settings.provider.value,
            settings.api_key,
            settings.model,
            settings.theme.value,
            settings.show_edit_badges,
            theme_class(settings.theme),
        )

    @app.callback(
        [
            Output("messages_container", "children", allow_duplicate=True),
            Output("input_textarea", "value"),
            Output("notice", "children"),
            Output("notice", "color"),
            Output("notice", "is_open"),
        ],
        Input("submit_button", "n_clicks"),
        State("input_textarea", "value"),
        running=[
            (Output("submit_button", "disabled"), True, False),
            (Output("status_indicator", "children"), "Thinking...", ""),
        ],
        prevent_initial_call=True,
    )
    def send_message(n_clicks, user_input):
        if not n_clicks or not user_input or not user_input.strip():
            return no_update, no_update, no_update, no_update, no_update

        result = session.send(user_input)
        if result is None:
            return no_update, no_update, "A reply is still pending.", "warning", True
        if result.failed:
            return render_messages(), "", "Failed to send message.", "danger", True
        if not result.persisted:
            return render_messages(), "", "Could not save this conversation.", "warning", True
        return render_messages(), "", no_update, no_update, no_update

    @app.callback(
        [
            Output("messages_container", "children", allow_duplicate=True),
            Output("sidebar", "is_open", allow_duplicate=True),
            Output("notice", "children", allow_duplicate=True),
            Output("notice", "color", allow_duplicate=True),
            Output("notice", "is_open", allow_duplicate=True),
        ],
        [
            Input("new_conversation_button", "n_clicks"),
            Input("delete_conversation_button", "n_clicks"),
            Input("clear_all_button", "n_clicks"),
            Input({"type": "convo_item", "id": ALL}, "n_clicks"),
            Input({"type": "convo_delete", "id": ALL}, "n_clicks"),
        ],
        prevent_initial_call=True,
    )
    def manage_conversations(*_):
        trigger = callback_context.triggered[0] if callback_context.triggered else None
        if not trigger or not trigger["value"]:
            return no_update, no_update, no_update, no_update, no_update

        triggered_id = callback_context.triggered_id
        if triggered_id == "new_conversation_button":
            session.new_chat()
            notice = "Started new chat"
        elif triggered_id == "delete_conversation_button":
            ok = session.delete_current()
            notice = "Current chat cleared" if ok else "Could not delete chat"
        elif triggered_id == "clear_all_button":
            ok = session.clear_all()
            notice = "All chat history cleared" if ok else "Could not clear chat history"
        elif triggered_id["type"] == "convo_item":
            session.select(triggered_id["id"])
            return render_messages(), False, no_update, no_update, no_update
        else:
            ok = session.delete(triggered_id["id"])
            notice = "Chat deleted" if ok else "Could not delete chat"
        return render_messages(), False, notice, "info", True

    @app.callback(
        Output("conversations_list", "children"),
        Input("messages_container", "children"),
    )
    def update_conversation_list(_):
        items = []
        for conversation in session.store.list_conversations():
            items.append(
                dbc.ListGroupItem(
                    [
                        html.Span(
                            conversation.title,
                            id={"type": "convo_item", "id": conversation.id},
                            n_clicks=0,
                            className="flex-grow-1 text-truncate",
                            style={"cursor": "pointer"},
                        ),
                        dbc.Button(
                            html.I(className="bi bi-trash"),
                            id={"type": "convo_delete", "id": conversation.id},
                            n_clicks=0,
                            size="sm",
                            color="link",
                        ),
                    ],
                    active=conversation.id == session.conversation_id,
                    className="d-flex align-items-center",
                )
            )
        return items

    @app.callback(
        Output("sidebar", "is_open"),
        Input("sidebar_toggle", "n_clicks"),
        State("sidebar", "is_open"),
        prevent_initial_call=True,
    )
    def toggle_sidebar(n_clicks, is_open):
        if not n_clicks:
            return no_update
        return not is_open

    @app.callback(
        [
            Output("edit_modal", "is_open"),
            Output("edit_textarea", "value"),
            Output("edit_message_id", "data"),
        ],
        Input({"type": "edit_button", "index": ALL}, "n_clicks"),
        prevent_initial_call=True,
    )
    def open_editor(_):
        trigger = callback_context.triggered[0] if callback_context.triggered else None
        if not trigger or not trigger["value"]:
            return no_update, no_update, no_update
        message_id = callback_context.triggered_id["index"]
        message = next((m for m in session.messages if m.id == message_id), None)
        if message is None:
            return no_update, no_update, no_update
        return True, message.content, message_id

    @app.callback(
        [
            Output("messages_container", "children", allow_duplicate=True),
            Output("edit_modal", "is_open", allow_duplicate=True),
            Output("notice", "children", allow_duplicate=True),
            Output("notice", "color", allow_duplicate=True),
            Output("notice", "is_open", allow_duplicate=True),
        ],
        Input("edit_save_button", "n_clicks"),
        [State("edit_textarea", "value"), State("edit_message_id", "data")],
        prevent_initial_call=True,
    )
    def save_edit(n_clicks, content, message_id):
        if not n_clicks or message_id is None or not content or not content.strip():
            return no_update, no_update, no_update, no_update, no_update
        try:
            persisted = session.edit(message_id, content)
        except KeyError:
            return no_update, False, "That message no longer exists.", "warning", True
        if not persisted:
            return render_messages(), False, "Could not save the edit.", "warning", True
        return render_messages(), False, no_update, no_update, no_update

    @app.callback(
        Output("messages_container", "children", allow_duplicate=True),
        [
            Input("settings_provider", "value"),
            Input("settings_api_key", "value"),
            Input("settings_model", "value"),
            Input("settings_edit_badges", "value"),
        ],
        prevent_initial_call=True,
    )
    def update_settings(provider, api_key, model, show_edit_badges):
        settings = session.settings
        if provider and provider != settings.provider.value:
            session.set_provider(provider)
        if (api_key or "") != settings.api_key:
            session.set_api_key(api_key or "")
        if (model or "") != settings.model:
            session.set_model(model or "")
        if show_edit_badges is not None and show_edit_badges != settings.show_edit_badges:
            session.set_show_edit_badges(bool(show_edit_badges))
            return render_messages()
        return no_update

    @app.callback(
        Output("app_root", "className", allow_duplicate=True),
        Input("settings_theme", "value"),
        prevent_initial_call=True,
    )
    def update_theme(theme):
        if not theme:
            return no_update
        session.set_theme(theme)
        return theme_class(theme)
