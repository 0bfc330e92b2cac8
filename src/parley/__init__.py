"""
The main entrypoint for the Parley package.

This module contains the Parley class, a Dash application that assembles the
store, the completion gateway and the session controller, mounts the
``/api/chat`` endpoint on its Flask server and registers the UI callbacks.
"""

from typing import Optional

from dash import Dash

from . import gateway, layout, session, store
from .api import register_api_routes
from .config import Config

__all__ = ["Parley", "Config"]


class Parley(Dash):
    """
    A local-first chat client for OpenAI-compatible completion backends.

    Every pillar is injected through the constructor, with defaults built from
    ``Config.from_env()`` so an app runs with no arguments.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional["store.Store"] = None,
        gateway: Optional["gateway.Gateway"] = None,
        layout: Optional["layout.Layout"] = None,
        **kwargs,
    ) -> None:
        """
        Initialize the Parley application.

        Parameters
        ----------
        config : Config, optional
            Process configuration. Defaults to ``Config.from_env()``.
        store : store.Store, optional
            Persistence for conversations and settings.
            Defaults to the backend named by ``config.storage``.
        gateway : gateway.Gateway, optional
            Completion gateway. Defaults to one using the configured
            default-provider credential.
        layout : layout.Layout, optional
            Layout builder for the Dash component tree.
            Defaults to layout.Bootstrap().
        **kwargs
            Additional arguments passed to the Dash constructor.

        Examples
        --------
        >>> app = Parley()

        >>> app = Parley(store=store.File("./conversations"))
        """
        gateway_module = globals()["gateway"]
        layout_module = globals()["layout"]
        session_module = globals()["session"]

        self.app_config = config if config is not None else Config.from_env()
        self.layout_builder = layout if layout is not None else layout_module.Bootstrap()

        if "external_stylesheets" not in kwargs:
            kwargs["external_stylesheets"] = []
        kwargs["external_stylesheets"].extend(
            self.layout_builder.get_external_stylesheets()
        )

        if "external_scripts" not in kwargs:
            kwargs["external_scripts"] = []
        kwargs["external_scripts"].extend(self.layout_builder.get_external_scripts())

        super().__init__(**kwargs)

        self.store = store if store is not None else self.app_config.build_store()
        self.gateway = (
            gateway
            if gateway is not None
            else gateway_module.Gateway(default_api_key=self.app_config.default_api_key)
        )
        self.session = session_module.SessionController(self.store, self.gateway)

        self.layout = self.layout_builder.layout
        register_api_routes(self.server, self.gateway)
        self._register_callbacks()

    def _register_callbacks(self) -> None:
        """Registers all the callbacks that drive the session controller."""
        from .callbacks import register_callbacks

        register_callbacks(self)
