"""
Main CLI application using Typer.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Annotated, Iterator, List, Optional

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.factory import build_store
from ..adapters.user_directory import ConfiguredUserDirectory
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SlotSwapError, SystemFailureError
from ..domain.models import Slot, SlotStatus, SlotView, SwapRequestView, UserProfile
from ..services.slot_service import SlotService
from ..services.swap_engine import SwapNegotiationEngine

app = typer.Typer(
    name="slotswap",
    help="Publish calendar slots and negotiate one-to-one swaps",
    add_completion=False
)
slot_app = typer.Typer(help="Manage your own slots")
app.add_typer(slot_app, name="slot")

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
ActorOption = Annotated[
    str,
    typer.Option("--as", "-u", help="Act as this user (id, name or email)"),
]


class Decision(str, Enum):
    accept = "accept"
    reject = "reject"


@dataclass
class AppContext:
    config: AppConfig
    directory: ConfiguredUserDirectory
    engine: SwapNegotiationEngine
    slots: SlotService

    def actor(self, identifier: str) -> str:
        try:
            return self.config.resolve_user(identifier)
        except ValueError as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            raise typer.Exit(1)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_context(config_file: Optional[Path]) -> AppContext:
    """Load configuration and wire the store, identity provider and services."""
    config_path = config_file or get_default_config_path()
    try:
        config = AppConfig.load_from_yaml(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    _configure_logging(config.log_level)

    store = build_store(config.store)
    with _handle_errors():
        store.create_schema()
    directory = ConfiguredUserDirectory(config.users)
    engine = SwapNegotiationEngine(store=store, identity_provider=directory)
    slots = SlotService(store=store, identity_provider=directory, delete_guard=engine.can_delete_slot)
    return AppContext(config=config, directory=directory, engine=engine, slots=slots)


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Render domain errors; only store outages get the generic retry hint."""
    try:
        yield
    except SystemFailureError:
        console.print(
            "[bold red]Error:[/bold red] The slot store is currently unavailable. Please try again."
        )
        raise typer.Exit(1)
    except SlotSwapError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _parse_time(value: str, tz: str, label: str) -> DateTime:
    try:
        parsed = pendulum.parse(value, tz=tz)
    except Exception as e:
        console.print(f"[red]Could not parse {label} '{value}': {e}[/red]")
        raise typer.Exit(1)
    if not isinstance(parsed, DateTime):
        console.print(f"[red]{label.capitalize()} must be a date and time, got '{value}'[/red]")
        raise typer.Exit(1)
    return parsed


def _user_label(profile: Optional[UserProfile], fallback: str) -> str:
    return f"{profile.name} <{profile.email}>" if profile else fallback


def _slot_label(slot: Optional[Slot], tz: str) -> str:
    if slot is None:
        return "[dim](deleted)[/dim]"
    return f"{slot.title}\n[dim]{slot.time_range.format_in(tz)}[/dim]"


def _slot_table(title: str, views: List[SlotView], tz: str, show_owner: bool) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="bold yellow")
    table.add_column("Time")
    table.add_column("Min.", justify="right")
    table.add_column("Status")
    if show_owner:
        table.add_column("Owner")

    for view in views:
        slot = view.slot
        row = [
            slot.id,
            slot.title,
            slot.time_range.format_in(tz),
            str(slot.time_range.duration_minutes()),
            slot.status.value,
        ]
        if show_owner:
            row.append(_user_label(view.owner, slot.owner_id))
        table.add_row(*row)
    return table


def _swap_table(title: str, views: List[SwapRequestView], tz: str, incoming: bool) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Status")
    table.add_column("They offer" if incoming else "You offer")
    table.add_column("For your slot" if incoming else "For their slot")
    table.add_column("From" if incoming else "To")
    table.add_column("Created", style="dim")

    for view in views:
        request = view.request
        counterpart = (
            _user_label(view.requester, request.requester_id)
            if incoming
            else _user_label(view.target_user, request.target_user_id)
        )
        created = request.created_at.in_timezone(tz).format("DD.MM.YYYY HH:mm") if request.created_at else ""
        table.add_row(
            request.id,
            request.status.value,
            _slot_label(view.requester_slot, tz),
            _slot_label(view.target_slot, tz),
            counterpart,
            created,
        )
    return table


def _print_swap(view: SwapRequestView, tz: str, heading: str) -> None:
    request = view.request
    console.print(Panel.fit(
        f"[bold]Request:[/bold] {request.id}\n"
        f"[bold]Status:[/bold] {request.status.value}\n"
        f"[bold]Requester:[/bold] {_user_label(view.requester, request.requester_id)}\n"
        f"[bold]Offered slot:[/bold] {_slot_label(view.requester_slot, tz)}\n"
        f"[bold]Target user:[/bold] {_user_label(view.target_user, request.target_user_id)}\n"
        f"[bold]Target slot:[/bold] {_slot_label(view.target_slot, tz)}",
        title=heading
    ))


@app.command()
def users(config_file: ConfigOption = None):
    """
    List all configured users.
    """
    ctx = _load_context(config_file)
    profiles = ctx.directory.all_users()

    if not profiles:
        console.print("[yellow]No users defined in the config file.[/yellow]")
        return

    table = Table(title="Configured users", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Name (Alias)", style="bold yellow")
    table.add_column("E-Mail", style="dim")
    for profile in profiles:
        table.add_row(profile.id, profile.name, profile.email)

    console.print()
    console.print(table)
    console.print()


@slot_app.command("add")
def slot_add(
    title: Annotated[str, typer.Argument(help="Slot title")],
    start: Annotated[str, typer.Option("--start", help="Start, e.g. '2024-11-25 10:00'")],
    end: Annotated[str, typer.Option("--end", help="End, e.g. '2024-11-25 11:00'")],
    acting_as: ActorOption,
    swappable: Annotated[bool, typer.Option("--swappable", help="Offer the slot for swapping right away")] = False,
    config_file: ConfigOption = None,
):
    """
    Create a new slot.

    Example:

        slotswap slot add "Team sync" --start "2024-11-25 10:00" --end "2024-11-25 11:00" --as alice
    """
    ctx = _load_context(config_file)
    user_id = ctx.actor(acting_as)
    tz = ctx.config.timezone
    status = SlotStatus.SWAPPABLE if swappable else SlotStatus.BUSY

    with _handle_errors():
        slot = ctx.slots.create_slot(
            owner_id=user_id,
            title=title,
            start=_parse_time(start, tz, "start"),
            end=_parse_time(end, tz, "end"),
            status=status,
        )
    console.print(f"[green]✓ Slot created:[/green] {slot.id} ({slot.status.value})")


@slot_app.command("list")
def slot_list(acting_as: ActorOption, config_file: ConfigOption = None):
    """
    List your slots.
    """
    ctx = _load_context(config_file)
    user_id = ctx.actor(acting_as)

    with _handle_errors():
        slots = ctx.slots.list_slots(user_id)

    if not slots:
        console.print("[yellow]You have no slots yet.[/yellow]")
        return
    views = [SlotView(slot=slot) for slot in slots]
    console.print(_slot_table("Your slots", views, ctx.config.timezone, show_owner=False))


@slot_app.command("update")
def slot_update(
    slot_id: Annotated[str, typer.Argument(help="Slot ID")],
    acting_as: ActorOption,
    title: Annotated[Optional[str], typer.Option("--title")] = None,
    start: Annotated[Optional[str], typer.Option("--start")] = None,
    end: Annotated[Optional[str], typer.Option("--end")] = None,
    status: Annotated[Optional[SlotStatus], typer.Option("--status", case_sensitive=False)] = None,
    config_file: ConfigOption = None,
):
    """
    Edit one of your slots (title, times, or BUSY/SWAPPABLE status).
    """
    ctx = _load_context(config_file)
    user_id = ctx.actor(acting_as)
    tz = ctx.config.timezone

    with _handle_errors():
        slot = ctx.slots.update_slot(
            slot_id,
            user_id,
            title=title,
            start=_parse_time(start, tz, "start") if start else None,
            end=_parse_time(end, tz, "end") if end else None,
            status=status,
        )
    console.print(f"[green]✓ Slot updated:[/green] {slot.id} ({slot.status.value})")


@slot_app.command("delete")
def slot_delete(
    slot_id: Annotated[str, typer.Argument(help="Slot ID")],
    acting_as: ActorOption,
    config_file: ConfigOption = None,
):
    """
    Delete one of your slots. Slots in a pending swap cannot be deleted.
    """
    ctx = _load_context(config_file)
    user_id = ctx.actor(acting_as)

    with _handle_errors():
        ctx.slots.delete_slot(slot_id, user_id)
    console.print(f"[green]✓ Slot deleted:[/green] {slot_id}")


@app.command()
def market(acting_as: ActorOption, config_file: ConfigOption = None):
    """
    Show swappable slots offered by other users.
    """
    ctx = _load_context(config_file)
    user_id = ctx.actor(acting_as)

    with _handle_errors():
        views = ctx.slots.list_swappable_slots(user_id)

    if not views:
        console.print("[yellow]⚠ No swappable slots available right now.[/yellow]")
        return
    console.print(_slot_table("Swappable slots", views, ctx.config.timezone, show_owner=True))


@app.command()
def propose(
    offered_slot_id: Annotated[str, typer.Argument(help="ID of your SWAPPABLE slot")],
    target_slot_id: Annotated[str, typer.Argument(help="ID of the slot you want")],
    acting_as: ActorOption,
    config_file: ConfigOption = None,
):
    """
    Propose swapping one of your slots for another user's slot.
    """
    ctx = _load_context(config_file)
    user_id = ctx.actor(acting_as)

    with _handle_errors():
        view = ctx.engine.propose_swap(user_id, offered_slot_id, target_slot_id)
    _print_swap(view, ctx.config.timezone, "✓ Swap requested")


@app.command()
def incoming(acting_as: ActorOption, config_file: ConfigOption = None):
    """
    List pending swap requests addressed to you.
    """
    ctx = _load_context(config_file)
    user_id = ctx.actor(acting_as)

    with _handle_errors():
        views = ctx.engine.list_incoming_requests(user_id)

    if not views:
        console.print("[yellow]No pending requests.[/yellow]")
        return
    console.print(_swap_table("Incoming requests", views, ctx.config.timezone, incoming=True))


@app.command()
def outgoing(acting_as: ActorOption, config_file: ConfigOption = None):
    """
    List the swap requests you have made.
    """
    ctx = _load_context(config_file)
    user_id = ctx.actor(acting_as)

    with _handle_errors():
        views = ctx.engine.list_outgoing_requests(user_id)

    if not views:
        console.print("[yellow]You have not requested any swaps.[/yellow]")
        return
    console.print(_swap_table("Outgoing requests", views, ctx.config.timezone, incoming=False))


@app.command()
def respond(
    request_id: Annotated[str, typer.Argument(help="Swap request ID")],
    decision: Annotated[Decision, typer.Argument(help="accept or reject", case_sensitive=False)],
    acting_as: ActorOption,
    config_file: ConfigOption = None,
):
    """
    Accept or reject a swap request addressed to you.
    """
    ctx = _load_context(config_file)
    user_id = ctx.actor(acting_as)

    with _handle_errors():
        view = ctx.engine.respond_to_swap(request_id, user_id, decision is Decision.accept)
    heading = "✓ Swap accepted" if decision is Decision.accept else "Swap rejected"
    _print_swap(view, ctx.config.timezone, heading)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotswap[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
