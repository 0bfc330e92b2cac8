"""Layout builders for the chat UI."""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Set, Union

import dash_bootstrap_components as dbc
from dash import dcc, html
from dash.development.base_component import Component as DashComponent

from .models import ASSISTANT_ROLE, USER_ROLE, ChatMessage, ProviderKey, ThemeName
from .providers import PROVIDERS

REQUIRED_COMPONENT_IDS = {
    "app_root",
    "url_location",
    "sidebar",
    "sidebar_toggle",
    "conversations_list",
    "new_conversation_button",
    "delete_conversation_button",
    "clear_all_button",
    "messages_container",
    "input_textarea",
    "submit_button",
    "status_indicator",
    "notice",
    "edit_modal",
    "edit_textarea",
    "edit_save_button",
    "edit_message_id",
    "settings_provider",
    "settings_api_key",
    "settings_model",
    "settings_theme",
    "settings_edit_badges",
}

_RTL_CHARS = re.compile(
    "[\\u0590-\\u05ff\\u0600-\\u06ff\\u0750-\\u077f\\u08a0-\\u08ff"
    "\\ufb1d-\\ufb4f\\ufb50-\\ufdff\\ufe70-\\ufeff]"
)
_STRONG_LTR_CHARS = re.compile(
    "[A-Za-z\\u00c0-\\u024f\\u0370-\\u03ff\\u0400-\\u04ff\\u3040-\\u30ff\\u4e00-\\u9fff]"
)


class Layout(ABC):
    """Interface for building the Dash component tree.

    The callbacks address components by id, so a layout is checked for the
    full set of required ids when it is constructed.

    Raises
    ------
    ValueError
        If the built layout is missing any required component id.
    """

    def __init__(self) -> None:
        self.layout = self.build_layout()
        missing = REQUIRED_COMPONENT_IDS - self.get_component_keys()
        if missing:
            raise ValueError(
                f"Layout is missing required component ids: {', '.join(sorted(missing))}"
            )

    @abstractmethod
    def build_layout(self) -> DashComponent:
        """Constructs and returns the entire Dash component tree for the UI."""
        pass

    @abstractmethod
    def build_messages(
        self, messages: List[ChatMessage], show_edit_badges: bool = True
    ) -> List[DashComponent]:
        """Converts messages into renderable Dash components."""
        pass

    @abstractmethod
    def get_external_stylesheets(self) -> List[Union[str, Dict[str, Any]]]:
        pass

    def get_external_scripts(self) -> List[Union[str, Dict[str, Any]]]:
        return []

    def get_component_keys(self) -> Set[str]:
        """Returns every string component id in the layout."""
        return {
            component.id
            for component in _walk(self.layout)
            if isinstance(getattr(component, "id", None), str)
        }

    def _is_rtl(self, text: str) -> bool:
        """True when the first strongly directional character is right-to-left."""
        for char in text or "":
            if _RTL_CHARS.match(char):
                return True
            if _STRONG_LTR_CHARS.match(char):
                return False
        return False


def _walk(component):
    yield component
    children = getattr(component, "children", None)
    if children is None or isinstance(children, (str, int, float)):
        return
    if not isinstance(children, (list, tuple)):
        children = [children]
    for child in children:
        if isinstance(child, DashComponent):
            yield from _walk(child)


class Bootstrap(Layout):
    """The default layout, built with dash-bootstrap-components."""

    def get_external_stylesheets(self):
        return [dbc.themes.BOOTSTRAP, dbc.icons.BOOTSTRAP]

    def build_layout(self) -> DashComponent:
        return html.Div(
            id="app_root",
            className=f"d-flex flex-column vh-100 parley-theme-{ThemeName.DEFAULT_DARK.value}",
            children=[
                dcc.Location(id="url_location", refresh=False),
                self.build_header(),
                self.build_sidebar(),
                self.build_chat_area(),
                self.build_input_area(),
                self.build_edit_modal(),
            ],
        )

    def build_header(self) -> DashComponent:
        return html.Header(
            className="p-2 border-bottom d-flex align-items-center gap-2",
            children=[
                dbc.Button(
                    html.I(className="bi bi-list"), id="sidebar_toggle", n_clicks=0
                ),
                html.H4("Parley", className="m-0 flex-grow-1"),
                dbc.Spinner(
                    html.Div(id="status_indicator"), size="sm", spinner_class_name="ms-2"
                ),
            ],
        )

    def build_sidebar(self) -> DashComponent:
        return dbc.Offcanvas(
            id="sidebar",
            is_open=False,
            title="Conversations",
            children=[
                dbc.Button(
                    "New Chat",
                    id="new_conversation_button",
                    color="primary",
                    className="w-100 mb-3",
                ),
                dbc.ListGroup(id="conversations_list", children=[]),
                html.Hr(),
                self.build_settings(),
                html.Hr(),
                dbc.Button(
                    "Delete current chat",
                    id="delete_conversation_button",
                    color="secondary",
                    outline=True,
                    className="w-100 mb-2",
                ),
                dbc.Button(
                    "Clear all chats",
                    id="clear_all_button",
                    color="danger",
                    outline=True,
                    className="w-100",
                ),
            ],
        )

    def build_settings(self) -> DashComponent:
        return html.Div(
            [
                html.H6("Settings"),
                dbc.Label("Provider", html_for="settings_provider"),
                dbc.Select(
                    id="settings_provider",
                    options=[
                        {"label": config.display_name, "value": key.value}
                        for key, config in PROVIDERS.items()
                    ],
                    value=ProviderKey.GROQ.value,
                ),
                dbc.Label("API key", html_for="settings_api_key", className="mt-2"),
                dbc.Input(id="settings_api_key", type="password", debounce=True),
                dbc.Label("Model", html_for="settings_model", className="mt-2"),
                dbc.Input(
                    id="settings_model",
                    placeholder="Provider default",
                    debounce=True,
                ),
                dbc.Label("Theme", html_for="settings_theme", className="mt-2"),
                dbc.Select(
                    id="settings_theme",
                    options=[
                        {"label": theme.value.replace("-", " ").title(), "value": theme.value}
                        for theme in ThemeName
                    ],
                    value=ThemeName.DEFAULT_DARK.value,
                ),
                dbc.Switch(
                    id="settings_edit_badges",
                    label="Show edited badges",
                    value=True,
                    className="mt-2",
                ),
            ]
        )

    def build_chat_area(self) -> DashComponent:
        return html.Main(
            className="flex-grow-1 p-3",
            style={"overflowY": "auto"},
            children=[
                dbc.Alert(id="notice", is_open=False, duration=4000, dismissable=True),
                html.Div(id="messages_container", className="mx-auto", style={"maxWidth": "56rem"}),
            ],
        )

    def build_input_area(self) -> DashComponent:
        return html.Footer(
            className="p-3 border-top",
            children=[
                dbc.InputGroup(
                    [
                        dbc.Textarea(id="input_textarea", placeholder="Type a message..."),
                        dbc.Button(
                            html.I(className="bi bi-send"),
                            id="submit_button",
                            color="primary",
                        ),
                    ]
                )
            ],
        )

    def build_edit_modal(self) -> DashComponent:
        return dbc.Modal(
            id="edit_modal",
            is_open=False,
            children=[
                dbc.ModalHeader(dbc.ModalTitle("Edit message")),
                dbc.ModalBody(dbc.Textarea(id="edit_textarea", rows=6)),
                dbc.ModalFooter(
                    dbc.Button("Save", id="edit_save_button", color="primary")
                ),
                dcc.Store(id="edit_message_id"),
            ],
        )

    def build_messages(self, messages, show_edit_badges=True):
        if not messages:
            return [
                html.H2(
                    "How can I help you today?",
                    className="text-center text-muted mt-5",
                )
            ]
        return [self.build_message(msg, show_edit_badges) for msg in messages]

    def build_message(self, message: ChatMessage, show_edit_badges: bool = True) -> DashComponent:
        if message.role == USER_ROLE:
            className = "ms-auto bg-primary-subtle"
        elif message.error:
            className = "me-auto border border-danger"
        elif message.role == ASSISTANT_ROLE:
            className = "me-auto border"
        else:
            className = "mx-auto text-muted fst-italic"

        footer = [
            dbc.Button(
                html.I(className="bi bi-pencil"),
                id={"type": "edit_button", "index": message.id},
                size="sm",
                color="link",
                n_clicks=0,
            )
        ]
        if message.edited and show_edit_badges:
            footer.append(dbc.Badge("edited", color="warning", className="ms-1"))

        return html.Div(
            [
                dcc.Markdown(message.content),
                html.Div(footer, className="d-flex align-items-center"),
            ],
            className=f"p-2 mb-3 rounded-3 {className}",
            style={"maxWidth": "75%", "width": "fit-content"},
            dir="rtl" if self._is_rtl(message.content) else "ltr",
        )
