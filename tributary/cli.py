"""Tributary CLI - tool servers, one model, on a schedule or interactively."""

import signal
import sys
import threading
from typing import Optional

import click

from .client import PromptClient, PromptSpec
from .config import ConfigManager
from .errors import TributaryError
from .hooks import HookRunner, load_hooks_from_config
from .log import setup_logging
from .prompts import TemplateStore
from .providers.base import BaseProvider
from .providers.registry import discover_providers, get_registry
from .schedule import ScheduledInvoker
from .servers import ConnectionPool, StartupFailure
from .session import InteractiveSession
from .tools import ToolRegistry
from .ui import (
    console,
    render_error,
    render_header,
    render_outcome,
    render_response,
    render_tools_table,
    render_warning,
    CYAN,
)


class TributaryApp:
    """Wires config, providers, tool servers, templates and hooks together."""

    def __init__(self, config_path: Optional[str] = None):
        self.config = ConfigManager(config_path)
        self.defaults = self.config.get_defaults()
        self.providers: dict[str, BaseProvider] = {}
        self._init_providers()

        templates = self.config.get_templates_config()
        self.templates = TemplateStore(templates["directory"], templates["inline"])
        self.hook_runner = HookRunner(load_hooks_from_config(self.config.get_hooks_config()))

    def _init_providers(self) -> None:
        """Initialize enabled providers from the registry."""
        discover_providers()

        for provider_name, provider_class in get_registry().items():
            config = self.config.get_provider_config(provider_name)
            if config:
                try:
                    self.providers[provider_name] = provider_class(config)
                except Exception as e:
                    render_warning(f"Failed to initialize {provider_name}: {e}")

    def get_provider(self, name: Optional[str] = None) -> BaseProvider:
        """Get a provider by name or default."""
        provider_name = name or self.config.get_default_provider()

        if provider_name not in self.providers:
            raise click.ClickException(
                f"Provider '{provider_name}' not found or not enabled. "
                f"Available: {list(self.providers.keys())}"
            )

        return self.providers[provider_name]

    def open_pool(self) -> ConnectionPool:
        """A pool over the configured servers; enter it to start them."""
        def report(failure: StartupFailure) -> None:
            render_warning(f"{failure.server} unavailable, continuing without it: {failure.error}")

        return ConnectionPool(self.config.get_server_definitions(), on_failure=report)

    def build_client(self, pool: ConnectionPool, provider: Optional[str] = None) -> PromptClient:
        """Aggregate the pool's tools and bind them to a provider."""
        registry = ToolRegistry.build(pool.ready)
        return PromptClient(
            self.get_provider(provider),
            registry=registry,
            templates=self.templates,
            max_rounds=int(self.defaults["max_rounds"]),
            tool_timeout=self.defaults["tool_timeout"],
        )

    def chat(self, provider: Optional[str] = None, keep_history: bool = False) -> int:
        """Interactive session over every configured tool server."""
        with self.open_pool() as pool:
            client = self.build_client(pool, provider)
            render_header(
                "TRIBUTARY CHAT",
                f"Model: {client.provider.config.model}  Tools: {len(client.registry)}",
            )
            session = InteractiveSession(
                client,
                pool=pool,
                exit_token=str(self.defaults["exit_token"]),
                welcome=str(self.defaults.get("welcome") or ""),
                keep_history=keep_history,
                hook_runner=self.hook_runner,
            )
            return session.run()

    def run_schedule(self, once: Optional[str] = None, provider: Optional[str] = None) -> bool:
        """Run the schedule until interrupted, or fire one entry with ``once``."""
        entries = self.config.get_schedule()
        if not entries:
            raise click.ClickException("No schedule entries configured")

        with self.open_pool() as pool:
            invoker = ScheduledInvoker(
                self.build_client(pool, provider),
                entries,
                max_workers=int(self.defaults["max_workers"]),
                hook_runner=self.hook_runner,
                on_outcome=render_outcome,
            )

            if once:
                try:
                    return invoker.fire(once).succeeded
                finally:
                    invoker.shutdown()

            stop = threading.Event()
            previous = signal.signal(signal.SIGTERM, lambda _sig, _frame: stop.set())
            console.print(
                f"Running {len(entries)} scheduled prompt(s). Press Ctrl+C to stop.",
                style=f"dim {CYAN}",
            )
            try:
                invoker.run(stop)
            except KeyboardInterrupt:
                stop.set()
                console.print("\nStopping scheduler...", style="dim")
            finally:
                signal.signal(signal.SIGTERM, previous)
        return True

    def ask(
        self,
        prompt: Optional[str] = None,
        template: Optional[str] = None,
        params: Optional[dict] = None,
        provider: Optional[str] = None,
        system: Optional[str] = None,
    ) -> str:
        """One-shot completion with all tools available."""
        with self.open_pool() as pool:
            client = self.build_client(pool, provider)
            result = client.complete(PromptSpec(
                message=prompt if template is None else None,
                template=template,
                params=params or {},
                system=system,
            ))
        render_response(result.content)
        if result.tool_calls:
            console.print(
                f"({len(result.tool_calls)} tool calls in {result.rounds} rounds)", style="dim",
            )
        return result.content

    def list_tools(self) -> list[dict]:
        """Start every server, list the merged tool set, shut down."""
        with self.open_pool() as pool:
            registry = ToolRegistry.build(pool.ready)
            tools = registry.describe()
            servers = pool.describe()
        render_tools_table(tools)
        for server in servers:
            console.print(f"  {server['name']}: {server['state']} {server['server']} {server['version']}", style="dim")
        return tools


# Global app instance
_app = None
_config_path: Optional[str] = None


def get_app() -> TributaryApp:
    """Get or create the app instance."""
    global _app
    if _app is None:
        _app = TributaryApp(_config_path)
    return _app


def _parse_params(pairs: tuple[str, ...]) -> dict:
    params = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected key=value, got '{pair}'", param_hint="--param")
        params[key] = value
    return params


def _run(fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except click.ClickException:
        raise
    except TributaryError as e:
        render_error(str(e))
        sys.exit(1)


# CLI Commands
@click.group()
@click.option("--config", "-c", "config_path", help="Path to config.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def cli(config_path, verbose):
    """TRIBUTARY - route one model through many tool servers.

    Chat interactively, run prompts on a schedule, or ask once.
    """
    global _config_path
    _config_path = config_path
    try:
        level = "DEBUG" if verbose else get_app().defaults["log_level"]
    except TributaryError as e:
        raise click.ClickException(str(e))
    setup_logging(level)


@cli.command()
@click.option("--provider", "-p", help="Provider to use (openai, claude)")
@click.option("--history", is_flag=True, help="Carry earlier turns into each prompt")
def chat(provider, history):
    """Start an interactive session."""
    _run(get_app().chat, provider=provider, keep_history=history)


@cli.command()
@click.option("--once", metavar="NAME", help="Fire one schedule entry and exit")
@click.option("--provider", "-p", help="Provider to use")
def schedule(once, provider):
    """Run the configured prompt schedule."""
    ok = _run(get_app().run_schedule, once=once, provider=provider)
    if not ok:
        sys.exit(1)


@cli.command()
@click.argument("prompt", nargs=-1)
@click.option("--template", "-t", help="Template id instead of a literal prompt")
@click.option("--param", "-P", "params", multiple=True, help="Template binding key=value")
@click.option("--provider", "-p", help="Provider to use")
@click.option("--system", "-s", help="System prompt")
def ask(prompt, template, params, provider, system):
    """Ask a single question with every tool available."""
    if not prompt and not template:
        raise click.UsageError("Give a PROMPT or --template")
    if prompt and template:
        raise click.UsageError("Give either a PROMPT or --template, not both")
    _run(
        get_app().ask,
        prompt=" ".join(prompt) or None,
        template=template,
        params=_parse_params(params),
        provider=provider,
        system=system,
    )


@cli.command()
def tools():
    """List the aggregated tools and the servers that own them."""
    _run(get_app().list_tools)


@cli.command()
def config():
    """Show configuration."""
    app = get_app()
    console.print(f"Config file: {app.config.config_path}")
    console.print(f"Enabled providers: {app.config.get_enabled_providers()}")
    console.print(f"Default provider: {app.config.get_default_provider()}")
    servers = _run(app.config.get_server_definitions)
    console.print(f"Tool servers: {[s.name for s in servers]}")
    entries = _run(app.config.get_schedule)
    for entry in entries:
        console.print(f"  {entry.name}: '{entry.cron}' -> {entry.template}", style="dim")
    console.print(f"Templates: {app.templates.available()}")


if __name__ == "__main__":
    cli()
