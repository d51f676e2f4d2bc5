"""CLI context for hostform.

This module defines the shared context object passed to all CLI commands,
extracted to avoid circular imports.
"""

from __future__ import annotations

import click

from hostform.core.config import ConfigManager
from hostform.core.engine import Engine
from hostform.core.local import LocalHosting
from hostform.core.state import StateStore


class Context:
    """CLI context object passed to all commands.

    Holds shared state including configuration, the hosting backend,
    the state store and CLI options like verbosity.

    Attributes:
        config: ConfigManager instance.
        hosting: Hosting backend instance.
        store: StateStore instance.
        engine: Engine instance.
        verbose: Verbosity level (0-2).
        debug: Whether to show debug tracebacks.
    """

    def __init__(self) -> None:
        self.config: ConfigManager | None = None
        self.hosting: LocalHosting | None = None
        self.store: StateStore | None = None
        self.engine: Engine | None = None
        self.verbose: int = 0
        self.debug: bool = False

    def init_config(self) -> ConfigManager:
        """Initialize configuration manager.

        Returns:
            ConfigManager instance.
        """
        if self.config is None:
            self.config = ConfigManager()
        return self.config

    def init_hosting(self) -> LocalHosting:
        """Initialize the hosting backend named in the configuration.

        Returns:
            Hosting backend instance.
        """
        if self.hosting is None:
            config = self.init_config().config
            self.hosting = LocalHosting(config.hosting.path)
        return self.hosting

    def init_store(self) -> StateStore:
        """Initialize the state store.

        Returns:
            StateStore instance.
        """
        if self.store is None:
            self.store = StateStore(self.init_config().config.state.path)
        return self.store

    def init_engine(self) -> Engine:
        """Initialize the plan/apply engine.

        Returns:
            Engine instance.
        """
        if self.engine is None:
            config = self.init_config().config
            self.engine = Engine(self.init_hosting(), self.init_store(), config.reconcile)
        return self.engine


pass_context = click.make_pass_decorator(Context, ensure=True)
