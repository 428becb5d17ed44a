"""aifamily main entry point.

Provides a chat REPL and one-shot commands over the memory engine.
"""

from __future__ import annotations

import asyncio
import logging
import logging.config
from pathlib import Path

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from .config import AIFamilyConfig
from .memory import MemoryService
from .memory.models import FamilyMember, SearchResponse
from .memory.transfer import export_memories, import_memories, validate_import_data

logger = logging.getLogger(__name__)

# Rich console for output
console = Console()


def print_members(members: list[FamilyMember], current_id: str | None = None) -> None:
    """Render family members as a table."""
    table = Table(title="Family Members")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Role")
    table.add_column("Last Accessed", style="dim")

    for member in members:
        marker = " *" if member.id == current_id else ""
        table.add_row(member.id + marker, member.name, member.role, member.last_accessed)

    console.print(table)


def print_results(response: SearchResponse) -> None:
    """Render search results as a table."""
    if not response.results:
        console.print("[yellow]No relevant memories found[/yellow]")
        return

    table = Table(title="Memories")
    table.add_column("#", style="cyan")
    table.add_column("Relevance", style="green")
    table.add_column("Memory")
    table.add_column("Timestamp", style="dim")

    for i, result in enumerate(response.results, 1):
        table.add_row(str(i), f"{result.relevance:.2f}", result.memory[:100], result.timestamp)

    console.print(table)


def report_outcome(service: MemoryService, success_message: str) -> bool:
    """Print success, or the service's error if the last operation set one."""
    if service.error:
        console.print(f"[red]✗[/red] {service.error}")
        return False
    console.print(f"[green]✓[/green] {success_message}")
    return True


class CommandHandler:
    """Handles REPL slash commands."""

    def __init__(self, service: MemoryService) -> None:
        self.service = service

    async def handle(self, command: str) -> bool:
        """Handle a REPL command.

        Args:
            command: Command string starting with '/'.

        Returns:
            True to keep running, False to exit.
        """
        parts = command.split(maxsplit=1)
        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd in ("/quit", "/exit"):
            return False

        if cmd == "/help":
            self._print_help()
        elif cmd == "/members":
            current = self.service.current_family_member
            print_members(self.service.family_members, current.id if current else None)
        elif cmd == "/use":
            member = self.service.set_current_family_member(arg)
            if member is None:
                console.print(f"[red]Unknown family member: {arg}[/red]")
            else:
                console.print(f"[green]Now talking to {member.name}[/green]")
        elif cmd == "/memory":
            print_results(await self.service.search_memories(arg))
        elif cmd == "/remember":
            self.service.error = None
            await self.service.add_memory(arg)
            report_outcome(self.service, "Remembered")
        elif cmd == "/clear":
            current = self.service.current_family_member
            self.service.error = None
            await self.service.clear_memories(family_member_id=current.id if current else None)
            report_outcome(self.service, "Memories cleared")
        else:
            console.print(f"[red]Unknown command: {cmd}[/red]")
            console.print("Type [bold]/help[/bold] for available commands")

        return True

    def _print_help(self) -> None:
        help_table = Table(title="Available Commands")
        help_table.add_column("Command", style="cyan")
        help_table.add_column("Description")

        commands = [
            ("/help", "Show this help message"),
            ("/members", "List family members"),
            ("/use <id>", "Switch the current family member"),
            ("/memory <query>", "Search memories"),
            ("/remember <text>", "Store a memory"),
            ("/clear", "Clear memories for the current family member"),
            ("/quit, /exit", "Exit the REPL"),
        ]

        for cmd, desc in commands:
            help_table.add_row(cmd, desc)

        console.print(help_table)


class ChatREPL:
    """Interactive chat with a family member."""

    def __init__(self, config: AIFamilyConfig, service: MemoryService) -> None:
        self.config = config
        self.service = service
        self.command_handler = CommandHandler(service)
        self.running = False

    async def run(self) -> None:
        self.running = True
        self._print_welcome()

        while self.running:
            try:
                user_input = Prompt.ask("[bold yellow]You[/bold yellow]", console=console)

                if not user_input.strip():
                    continue

                if user_input.startswith("/"):
                    if not await self.command_handler.handle(user_input):
                        self.running = False
                        console.print("[yellow]Goodbye![/yellow]")
                    continue

                await self._process_input(user_input)

            except KeyboardInterrupt:
                console.print("\n[yellow]Interrupt received[/yellow]")
                continue
            except EOFError:
                break

    async def _process_input(self, user_input: str) -> None:
        with console.status("[bold cyan]Thinking...[/bold cyan]"):
            response = await self.service.generate_with_memory(user_input)

        member = self.service.current_family_member
        console.print()
        console.print(Panel(
            Markdown(response),
            title=f"[bold cyan]{member.name if member else self.config.name}[/bold cyan]",
            border_style="cyan",
        ))
        console.print()

    def _print_welcome(self) -> None:
        member = self.service.current_family_member
        memory = self.service.memory
        welcome_text = f"""
[bold cyan]Welcome to {self.config.name}[/bold cyan]
[bold]Version:[/bold] {self.config.version}
[bold]Family Member:[/bold] {member.name if member else "-"}
[bold]Provider:[/bold] {memory.provider.value if memory else "-"}
[bold]Model:[/bold] {(memory.working_model if memory else None) or "-"}

Type your message to chat, or [bold]/help[/bold] for commands.
"""
        console.print(Panel(welcome_text, border_style="cyan"))


async def _open_service(config: AIFamilyConfig, api_key: str | None, verify: bool) -> MemoryService:
    service = MemoryService(config, api_key=api_key)
    with console.status("[bold cyan]Initializing AI memory system...[/bold cyan]"):
        await service.initialize(verify_connection=verify)
    return service


def _run(ctx: click.Context, coro_factory, verify: bool = False) -> None:
    """Open the service, run a coroutine against it, close it."""
    config: AIFamilyConfig = ctx.obj["config"]
    api_key: str | None = ctx.obj["api_key"]

    async def runner() -> None:
        try:
            service = await _open_service(config, api_key, verify)
        except Exception as e:
            console.print(f"[red]✗[/red] Failed to initialize: {e}")
            raise click.exceptions.Exit(1)
        try:
            await coro_factory(service)
        finally:
            await service.close()

    asyncio.run(runner())


@click.group()
@click.option("--config", "-c", "config_path", type=click.Path(exists=True), help="Path to YAML config file")
@click.option("--api-key", envvar="AIFAMILY_API_KEY", help="OpenAI or Groq API key")
@click.option("--user", "user_id", help="User id to scope memories to")
@click.option("--verbose", is_flag=True, help="Enable verbose/debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, api_key: str | None, user_id: str | None, verbose: bool) -> None:
    """AI Family memory engine: per-family-member memory with memory-augmented chat."""
    config = AIFamilyConfig.load(yaml_path=config_path)
    if user_id:
        config.default_user_id = user_id

    logging.config.dictConfig(config.get_log_config())
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled")

    ctx.obj = {"config": config, "api_key": api_key}


@cli.command()
@click.option("--member", "family_member_id", help="Family member to talk to")
@click.pass_context
def chat(ctx: click.Context, family_member_id: str | None) -> None:
    """Chat with a family member in a REPL."""

    async def run(service: MemoryService) -> None:
        if family_member_id and service.set_current_family_member(family_member_id) is None:
            console.print(f"[yellow]Unknown family member {family_member_id}, using default[/yellow]")
        await ChatREPL(ctx.obj["config"], service).run()

    _run(ctx, run, verify=True)


@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Verify the API key and report the working model."""

    async def run(service: MemoryService) -> None:
        memory = service.memory
        console.print(f"[green]✓[/green] Provider: {memory.provider.value}")
        console.print(f"[green]✓[/green] Working model: {memory.working_model}")

    _run(ctx, run, verify=True)


@cli.command()
@click.argument("content")
@click.option("--member", "family_member_id", help="Family member scope")
@click.pass_context
def add(ctx: click.Context, content: str, family_member_id: str | None) -> None:
    """Store a memory."""

    async def run(service: MemoryService) -> None:
        await service.add_memory(content, family_member_id=family_member_id)
        if not report_outcome(service, "Memory stored"):
            raise click.exceptions.Exit(1)

    _run(ctx, run)


@cli.command()
@click.argument("query")
@click.option("--limit", default=5, show_default=True, help="Maximum results")
@click.option("--member", "family_member_id", help="Family member scope")
@click.pass_context
def search(ctx: click.Context, query: str, limit: int, family_member_id: str | None) -> None:
    """Search memories."""

    async def run(service: MemoryService) -> None:
        print_results(await service.search_memories(query, limit=limit, family_member_id=family_member_id))

    _run(ctx, run)


@cli.command()
@click.pass_context
def members(ctx: click.Context) -> None:
    """List family members."""

    async def run(service: MemoryService) -> None:
        print_members(service.family_members)

    _run(ctx, run)


@cli.command("member-add")
@click.argument("name")
@click.option("--role", default="Assistant", show_default=True)
@click.option("--description", default="")
@click.pass_context
def member_add(ctx: click.Context, name: str, role: str, description: str) -> None:
    """Create a family member."""

    async def run(service: MemoryService) -> None:
        member = service.add_family_member(name=name, role=role, description=description)
        console.print(f"[green]✓[/green] Created {member.name} ({member.id})")

    _run(ctx, run)


@cli.command("member-update")
@click.argument("family_member_id")
@click.option("--name")
@click.option("--role")
@click.option("--description")
@click.pass_context
def member_update(
    ctx: click.Context,
    family_member_id: str,
    name: str | None,
    role: str | None,
    description: str | None,
) -> None:
    """Update a family member."""
    updates = {k: v for k, v in {"name": name, "role": role, "description": description}.items() if v is not None}

    async def run(service: MemoryService) -> None:
        member = service.update_family_member(family_member_id, **updates)
        if member is None:
            console.print(f"[red]✗[/red] Unknown family member: {family_member_id}")
            return
        console.print(f"[green]✓[/green] Updated {member.name}")

    _run(ctx, run)


@cli.command("member-delete")
@click.argument("family_member_id")
@click.pass_context
def member_delete(ctx: click.Context, family_member_id: str) -> None:
    """Delete a family member and its vector store."""

    async def run(service: MemoryService) -> None:
        if service.delete_family_member(family_member_id):
            console.print(f"[green]✓[/green] Deleted {family_member_id}")
        else:
            console.print(f"[red]✗[/red] Cannot delete {family_member_id}")

    _run(ctx, run)


@cli.command()
@click.option("--member", "family_member_id", help="Clear only this family member's vector store")
@click.confirmation_option(prompt="Clear memories?")
@click.pass_context
def clear(ctx: click.Context, family_member_id: str | None) -> None:
    """Clear the user's memories."""

    async def run(service: MemoryService) -> None:
        await service.clear_memories(family_member_id=family_member_id)
        if not report_outcome(service, "Memories cleared"):
            raise click.exceptions.Exit(1)

    _run(ctx, run)


@cli.command("export")
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def export_command(ctx: click.Context, output: Path) -> None:
    """Export the user's memories to a JSON file."""
    config: AIFamilyConfig = ctx.obj["config"]

    async def run(service: MemoryService) -> None:
        output.write_text(export_memories(service.memory, service.user_id, exported_by=config.name, app_version=config.version))
        console.print(f"[green]✓[/green] Exported memories to {output}")

    _run(ctx, run)


@cli.command("import")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--member", "family_member_id", default="default", show_default=True)
@click.pass_context
def import_command(ctx: click.Context, source: Path, family_member_id: str) -> None:
    """Import memories from an exported JSON file."""

    async def run(service: MemoryService) -> None:
        try:
            data = validate_import_data(source.read_text())
        except ValueError as e:
            console.print(f"[red]✗[/red] {e}")
            return

        report = await import_memories(service.memory, data, service.user_id, family_member_id)
        console.print(f"[green]✓[/green] Imported {report.successful}/{report.total} memories")
        for failure in report.failed_items:
            console.print(f"[yellow]⚠[/yellow] {failure['error']}")

    _run(ctx, run)


main = cli


if __name__ == "__main__":
    cli()
