"""Main CLI entry point for the lead-assign command."""

import json
import sys
import uuid
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..assignment import (
    AssignmentAction,
    AssignmentEngine,
    AssignmentError,
    AssignmentRule,
    Lead,
    NoAssigneeFound,
    RuleCondition,
    Territory,
    create_engine,
)

console = Console()

DEFAULT_DATA_DIR = Path.home() / ".lead-assignment"

data_dir_option = click.option(
    "--data-dir",
    envvar="LA_DATA_DIR",
    type=click.Path(file_okay=False),
    help="Directory holding rules, capacity and history files",
)


def get_engine(data_dir: Optional[str] = None) -> AssignmentEngine:
    """Get engine instance backed by the data directory."""
    return create_engine(Path(data_dir) if data_dir else DEFAULT_DATA_DIR)


def _fail(message: str):
    console.print(f"[red]{message}[/red]")
    sys.exit(1)


def _parse_value(raw: str):
    """Interpret CLI values as JSON where possible (numbers, booleans), else text."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _parse_condition(raw: str) -> RuleCondition:
    parts = raw.split(":", 2)
    if len(parts) != 3:
        raise click.BadParameter(f"Expected field:operator:value, got {raw!r}")
    field, operator, value = parts
    return RuleCondition.from_dict({"field": field, "operator": operator, "value": _parse_value(value)})


@click.group()
@click.version_option(version="1.0.0", prog_name="lead-assign")
def cli():
    """Lead Assignment Engine - route CRM leads to the right owner.

    \b
    Quick Start:
      lead-assign capacity set user-1 --max 20             # Register a team member
      lead-assign rules add -n "Referrals" -c source:equals:Referral -t user-1
      lead-assign assign --id lead-42 --source Referral    # Route a lead
      lead-assign history                                  # Audit trail
    """
    pass


# ============================================================================
# ASSIGNMENT
# ============================================================================

@cli.command()
@click.option("--lead-file", type=click.Path(exists=True, dir_okay=False), help="JSON file with the lead")
@click.option("--id", "lead_id", help="Lead id")
@click.option("--company", default="")
@click.option("--source", default="")
@click.option("--status", default="")
@click.option("--score", type=float, default=0)
@click.option("--region")
@click.option("--timeout", type=float, help="Give up after this many seconds")
@data_dir_option
def assign(
    lead_file: Optional[str],
    lead_id: Optional[str],
    company: str,
    source: str,
    status: str,
    score: float,
    region: Optional[str],
    timeout: Optional[float],
    data_dir: Optional[str]
):
    """Assign a lead to a team member."""
    engine = get_engine(data_dir)

    try:
        if lead_file:
            with open(lead_file, 'r') as f:
                lead = Lead.from_dict(json.load(f))
        else:
            lead = Lead.from_dict({
                "id": lead_id or str(uuid.uuid4())[:8],
                "company": company,
                "source": source,
                "status": status,
                "score": score,
                "region": region,
            })
    except (AssignmentError, ValueError) as e:
        _fail(f"Invalid lead: {e}")

    result = engine.assign(lead, timeout=timeout)
    try:
        assignee = result.unwrap()
    except NoAssigneeFound as e:
        console.print(f"[yellow]Lead {lead.id} left unassigned: {e.reason}[/yellow]")
        sys.exit(1)

    details = [
        f"[bold]Assigned to:[/bold] [green]{assignee}[/green]",
        f"[bold]Method:[/bold] {result.assignment_type.value}",
    ]
    if result.rule:
        details.append(f"[bold]Rule:[/bold] {result.rule.name}")
    if result.territory:
        details.append(f"[bold]Territory:[/bold] {result.territory.name}")
    console.print(Panel.fit("\n".join(details), title=f"Lead {lead.id}"))


@cli.command()
@click.argument("lead_id")
@click.argument("user_id")
@click.option("--by", "assigned_by", default="admin", help="Who made the assignment")
@data_dir_option
def reassign(lead_id: str, user_id: str, assigned_by: str, data_dir: Optional[str]):
    """Manually assign LEAD_ID to USER_ID."""
    engine = get_engine(data_dir)
    try:
        engine.reassign(lead_id, user_id, assigned_by=assigned_by)
    except AssignmentError as e:
        _fail(str(e))
    console.print(f"[green]✓ Lead {lead_id} assigned to {user_id}[/green]")


@cli.command()
@click.option("--lead", "lead_id", help="Only show one lead")
@data_dir_option
def history(lead_id: Optional[str], data_dir: Optional[str]):
    """Show the assignment audit trail."""
    engine = get_engine(data_dir)
    entries = engine.get_assignment_history(lead_id)

    if not entries:
        console.print("[dim]No assignments recorded[/dim]")
        return

    table = Table(title=f"Assignment History ({len(entries)})")
    table.add_column("Date", style="dim")
    table.add_column("Lead", style="cyan")
    table.add_column("Assigned To", style="green")
    table.add_column("Type")
    table.add_column("Rule / Territory")
    table.add_column("By", style="dim")

    for entry in entries:
        table.add_row(
            entry.assignment_date.strftime('%Y-%m-%d %H:%M'),
            entry.lead_id,
            entry.assigned_to,
            entry.assignment_type.value,
            entry.rule_name or entry.territory_id or "",
            entry.assigned_by,
        )

    console.print(table)


@cli.command()
@data_dir_option
def stats(data_dir: Optional[str]):
    """Show assignment statistics."""
    engine = get_engine(data_dir)
    data = engine.get_assignment_stats()

    type_lines = "\n".join(
        f"  {t.replace('_', ' ')}: {c} ({data['type_distribution'][t]}%)"
        for t, c in sorted(data['by_type'].items(), key=lambda x: -x[1])
    ) or "  none"
    user_lines = "\n".join(
        f"  {u}: {c}" for u, c in sorted(data['by_user'].items(), key=lambda x: -x[1])
    ) or "  none"

    console.print(Panel.fit(
        f"[bold]Total Assignments:[/bold] {data['total_assignments']}\n"
        f"[bold]Success Rate:[/bold] {data['success_rate']}%\n"
        f"[bold]Queued Leads:[/bold] {data['queued_leads']}\n\n"
        f"[bold]By Type:[/bold]\n{type_lines}\n\n"
        f"[bold]By User:[/bold]\n{user_lines}",
        title="📊 Assignment Statistics"
    ))


# ============================================================================
# RULES
# ============================================================================

@cli.group()
def rules():
    """Manage assignment rules."""
    pass


@rules.command("list")
@click.option("--active", is_flag=True, help="Only active rules")
@data_dir_option
def rules_list(active: bool, data_dir: Optional[str]):
    """List rules in evaluation order."""
    store = get_engine(data_dir).rule_store
    items = store.list_active_rules() if active else store.list_all_rules()

    table = Table(title=f"Assignment Rules ({len(items)})")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Priority", justify="right")
    table.add_column("Conditions")
    table.add_column("Target", style="green")
    table.add_column("Active")

    for rule in items:
        conditions = " AND ".join(
            f"{c.field} {c.operator.value} {c.value!r}" for c in rule.conditions
        )
        table.add_row(
            rule.id,
            rule.name,
            str(rule.priority),
            conditions,
            rule.action.target,
            "[green]yes[/green]" if rule.is_active else "[dim]no[/dim]",
        )

    console.print(table)


@rules.command("add")
@click.option("--name", "-n", required=True)
@click.option("--condition", "-c", "conditions", multiple=True, required=True,
              help="field:operator:value, e.g. source:equals:Referral")
@click.option("--target", "-t", required=True, help="User or team id")
@click.option("--action", "action_type", default="assign_to_user",
              type=click.Choice(["assign_to_user", "assign_to_team", "round_robin", "load_balance"]))
@click.option("--priority", "-p", type=int, default=0)
@click.option("--inactive", is_flag=True, help="Create the rule disabled")
@data_dir_option
def rules_add(
    name: str,
    conditions: Tuple[str, ...],
    target: str,
    action_type: str,
    priority: int,
    inactive: bool,
    data_dir: Optional[str]
):
    """Add an assignment rule. Conditions are ANDed."""
    engine = get_engine(data_dir)
    try:
        rule = AssignmentRule(
            id=str(uuid.uuid4())[:12],
            name=name,
            priority=priority,
            conditions=[_parse_condition(c) for c in conditions],
            action=AssignmentAction.from_dict({"type": action_type, "target": target}),
            is_active=not inactive,
        )
        engine.rule_store.add_rule(rule)
    except AssignmentError as e:
        _fail(str(e))
    console.print(f"[green]✓ Added rule {rule.name} ({rule.id})[/green]")


@rules.command("delete")
@click.argument("rule_id")
@data_dir_option
def rules_delete(rule_id: str, data_dir: Optional[str]):
    """Delete a rule."""
    try:
        get_engine(data_dir).rule_store.delete_rule(rule_id)
    except AssignmentError as e:
        _fail(str(e))
    console.print(f"[green]✓ Deleted rule {rule_id}[/green]")


@rules.command("enable")
@click.argument("rule_id")
@data_dir_option
def rules_enable(rule_id: str, data_dir: Optional[str]):
    """Activate a rule."""
    try:
        get_engine(data_dir).rule_store.set_rule_active(rule_id, True)
    except AssignmentError as e:
        _fail(str(e))
    console.print(f"[green]✓ Rule {rule_id} enabled[/green]")


@rules.command("disable")
@click.argument("rule_id")
@data_dir_option
def rules_disable(rule_id: str, data_dir: Optional[str]):
    """Deactivate a rule."""
    try:
        get_engine(data_dir).rule_store.set_rule_active(rule_id, False)
    except AssignmentError as e:
        _fail(str(e))
    console.print(f"[yellow]Rule {rule_id} disabled[/yellow]")


# ============================================================================
# TERRITORIES
# ============================================================================

@cli.group()
def territories():
    """Manage sales territories."""
    pass


@territories.command("list")
@data_dir_option
def territories_list(data_dir: Optional[str]):
    """List territories by priority."""
    items = get_engine(data_dir).rule_store.list_territories()

    table = Table(title=f"Territories ({len(items)})")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Priority", justify="right")
    table.add_column("Regions")
    table.add_column("Users", style="green")

    for territory in items:
        table.add_row(
            territory.id,
            territory.name,
            str(territory.priority),
            ", ".join(territory.regions),
            ", ".join(territory.assigned_users),
        )

    console.print(table)


@territories.command("add")
@click.option("--name", "-n", required=True)
@click.option("--region", "-r", "regions", multiple=True, required=True)
@click.option("--user", "-u", "users", multiple=True, required=True, help="Assignees, in order of preference")
@click.option("--priority", "-p", type=int, default=0)
@data_dir_option
def territories_add(
    name: str,
    regions: Tuple[str, ...],
    users: Tuple[str, ...],
    priority: int,
    data_dir: Optional[str]
):
    """Add a territory."""
    territory = Territory(
        id=str(uuid.uuid4())[:12],
        name=name,
        regions=list(regions),
        assigned_users=list(users),
        priority=priority,
    )
    try:
        get_engine(data_dir).rule_store.add_territory(territory)
    except AssignmentError as e:
        _fail(str(e))
    console.print(f"[green]✓ Added territory {territory.name} ({territory.id})[/green]")


@territories.command("delete")
@click.argument("territory_id")
@data_dir_option
def territories_delete(territory_id: str, data_dir: Optional[str]):
    """Delete a territory."""
    try:
        get_engine(data_dir).rule_store.delete_territory(territory_id)
    except AssignmentError as e:
        _fail(str(e))
    console.print(f"[green]✓ Deleted territory {territory_id}[/green]")


# ============================================================================
# TEAM CAPACITY
# ============================================================================

@cli.group()
def capacity():
    """Manage team member capacity and availability."""
    pass


@capacity.command("list")
@data_dir_option
def capacity_list(data_dir: Optional[str]):
    """Show team workload."""
    members = get_engine(data_dir).capacity.list_all()

    table = Table(title=f"Team Capacity ({len(members)})")
    table.add_column("User", style="cyan")
    table.add_column("Leads", justify="right")
    table.add_column("Load", justify="right")
    table.add_column("Available")
    table.add_column("Specialties")
    table.add_column("Territory", style="dim")

    for m in members:
        load = f"{m.load_ratio * 100:.0f}%" if m.max_leads else "-"
        table.add_row(
            m.user_id,
            f"{m.current_leads}/{m.max_leads}",
            load,
            "[green]yes[/green]" if m.availability else "[red]no[/red]",
            ", ".join(m.specialties),
            m.territory or "",
        )

    console.print(table)


@capacity.command("set")
@click.argument("user_id")
@click.option("--max", "max_leads", type=int, required=True, help="Maximum open leads")
@click.option("--specialty", "-s", "specialties", multiple=True)
@click.option("--unavailable", is_flag=True, help="Register as unavailable")
@click.option("--territory")
@data_dir_option
def capacity_set(
    user_id: str,
    max_leads: int,
    specialties: Tuple[str, ...],
    unavailable: bool,
    territory: Optional[str],
    data_dir: Optional[str]
):
    """Register a team member or change their limits."""
    try:
        member = get_engine(data_dir).capacity.set_capacity(
            user_id, max_leads, list(specialties), not unavailable, territory
        )
    except AssignmentError as e:
        _fail(str(e))
    console.print(f"[green]✓ {member.user_id}: {member.current_leads}/{member.max_leads} leads[/green]")


@capacity.command("availability")
@click.argument("user_id")
@click.argument("state", type=click.Choice(["on", "off"]))
@data_dir_option
def capacity_availability(user_id: str, state: str, data_dir: Optional[str]):
    """Mark USER_ID available (on) or unavailable (off)."""
    try:
        get_engine(data_dir).capacity.set_availability(user_id, state == "on")
    except AssignmentError as e:
        _fail(str(e))
    console.print(f"[green]✓ {user_id} availability: {state}[/green]")


@capacity.command("leads")
@click.argument("user_id")
@click.argument("count", type=int)
@data_dir_option
def capacity_leads(user_id: str, count: int, data_dir: Optional[str]):
    """Set USER_ID's current lead count."""
    try:
        get_engine(data_dir).capacity.update_current_leads(user_id, count)
    except AssignmentError as e:
        _fail(str(e))
    console.print(f"[green]✓ {user_id} now holds {count} leads[/green]")


@capacity.command("reset")
@data_dir_option
def capacity_reset(data_dir: Optional[str]):
    """Reset every member's lead count to zero."""
    get_engine(data_dir).capacity.reset_current_leads()
    console.print("[green]✓ Lead counts reset[/green]")


# ============================================================================
# CONFIG
# ============================================================================

@cli.group()
def config():
    """View or change assignment configuration."""
    pass


@config.command("show")
@data_dir_option
def config_show(data_dir: Optional[str]):
    """Show the current configuration."""
    data = get_engine(data_dir).get_config().to_dict()

    table = Table(title="Assignment Config")
    table.add_column("Option", style="cyan")
    table.add_column("Value")
    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)


@config.command("set")
@click.argument("key")
@click.argument("value")
@data_dir_option
def config_set(key: str, value: str, data_dir: Optional[str]):
    """Set a configuration option, e.g. default_strategy load_balance."""
    try:
        get_engine(data_dir).update_config({key: _parse_value(value)})
    except AssignmentError as e:
        _fail(str(e))
    console.print(f"[green]✓ {key} = {value}[/green]")


# ============================================================================
# SERVER
# ============================================================================

@cli.command()
@click.option("--host", default="127.0.0.1")
@click.option("--port", type=int, default=8000)
@data_dir_option
def serve(host: str, port: int, data_dir: Optional[str]):
    """Run the assignment HTTP API."""
    import uvicorn
    from ..api.main import create_app

    app = create_app(get_engine(data_dir))
    console.print(f"[green]Serving lead assignment API on http://{host}:{port}[/green]")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    cli()
