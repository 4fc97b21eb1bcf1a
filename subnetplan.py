#!/usr/bin/env python3
"""
📐 Subnet Planner CLI
- Places variable-size subnet requests into one or more address pools
- Aligned, non-overlapping blocks (first-fit / best-fit)
- Utilization and fragmentation report
"""

import json
import logging
from pathlib import Path

import click
import yaml
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from allocator import PLAN_STRATEGIES, find_next_available, plan
from errors import PlanError, PlanFileError, RequestError
from models import SubnetRequest
from placement import available_strategies
from settings import OUTPUT_FORMATS, load_config

console = Console()
err_console = Console(stderr=True)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def fail(message: str) -> None:
    click.echo(f"❌ {message}", err=True)
    click.get_current_context().exit(1)


def _parse_prefix(value, name):
    """Accept 27 or '/27'"""
    if isinstance(value, str):
        text = value.strip().lstrip("/")
        if not text.isdigit():
            raise PlanFileError(f"Request '{name}': invalid prefix '{value}'")
        return int(text)
    return value


def _parse_priority(value, name):
    if isinstance(value, bool) or not isinstance(value, int):
        raise PlanFileError(f"Request '{name}': invalid priority '{value}'")
    return value


def parse_request(entry, index: int) -> SubnetRequest:
    if not isinstance(entry, dict):
        raise PlanFileError(f"Request #{index + 1} must be a mapping")
    name = str(entry.get("name") or f"subnet-{index + 1}")
    prefix = entry.get("prefix")
    return SubnetRequest(
        name=name,
        prefix_length=_parse_prefix(prefix, name) if prefix is not None else None,
        host_count=entry.get("hosts"),
        priority=_parse_priority(entry.get("priority", index), name),
        version=entry.get("version"),
        id=str(entry["id"]) if "id" in entry else None,
    )


def load_plan_file(path) -> dict:
    """
    Read a YAML plan:

        pools: [192.168.0.0/22]
        reserved: [192.168.0.0/28]        # optional
        strategy: best-fit                # optional
        usable_hosts_only: true           # optional
        requests:
          - {name: web, hosts: 50}
          - {name: db, prefix: 27}
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise PlanFileError(f"Cannot read plan {path}: {e}") from e
    except yaml.YAMLError as e:
        raise PlanFileError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise PlanFileError(f"Plan {path} must be a mapping")
    for key in ("pools", "requests", "reserved"):
        if not isinstance(data.get(key, []), list):
            raise PlanFileError(f"'{key}' must be a list")
    usable_hosts_only = data.get("usable_hosts_only")
    if usable_hosts_only is not None and not isinstance(usable_hosts_only, bool):
        raise PlanFileError("'usable_hosts_only' must be true or false")

    return {
        "pools": [str(p) for p in data.get("pools", [])],
        "reserved": [str(r) for r in data.get("reserved", [])],
        "requests": [
            parse_request(entry, i) for i, entry in enumerate(data.get("requests", []))
        ],
        "strategy": data.get("strategy"),
        "usable_hosts_only": usable_hosts_only,
    }


def utilization_bar(util: float) -> str:
    return "█" * min(int(util / 5), 20) + "░" * max(20 - int(util / 5), 0)


def print_plan(result) -> None:
    console.print(Panel(f"📐 Subnet Plan ({result.strategy})", style="bold cyan"))

    table = Table("Name", "CIDR", "Pool", "Usable", "Status", box=box.ROUNDED)
    for outcome in result.outcomes:
        if outcome.success:
            details = outcome.details(result.usable_hosts_only)
            table.add_row(
                outcome.request_name,
                outcome.allocation.cidr,
                outcome.pool_cidr,
                str(details["usable_hosts"]),
                "✅",
            )
        else:
            status = f"❌ {outcome.failure_reason.value}"
            table.add_row(outcome.request_name, "-", "-", "-", status)
    console.print(table)

    for report in result.pool_reports:
        util = report.utilization_percent
        used = report.allocated_space + report.reserved_space
        console.print(f"\n📦 Pool: {report.pool.cidr}")
        console.print(
            f"   Used: {used}/{report.pool.size} IPs "
            f"{utilization_bar(util)} {util:.1f}%"
        )
        for i, block in enumerate(report.free_blocks):
            is_last = i == len(report.free_blocks) - 1
            prefix = "   └──" if is_last else "   ├──"
            info = block.to_dict(report.pool.width)
            console.print(f"{prefix} free {info['cidr']} ({block.size} IPs)")

    s = result.summary
    console.print(
        f"\n✅ {s.success_count}/{s.total_requests} allocated | "
        f"{s.total_allocated_space}/{s.total_pool_space} IPs | "
        f"efficiency {s.efficiency_percent:.1f}% | wasted {s.wasted_space}"
    )
    for warning in result.warnings:
        console.print(f"⚠️  {warning}", style="yellow")


def print_candidates(result) -> None:
    table = Table(
        "#", "Candidate", "Hosts", "Usable", "Pool", "Free block", box=box.ROUNDED
    )
    for i, c in enumerate(result.candidates, 1):
        details = c.details(result.usable_hosts_only)
        table.add_row(
            str(i),
            str(c.cidr),
            f"{details['first_host']} - {details['last_host']}",
            str(details["usable_hosts"]),
            c.pool_cidr,
            str(c.gap_size),
        )
    console.print(table)
    console.print(
        f"Free: {result.total_free_space} IPs in {result.fragmentation_count} blocks "
        f"(largest {result.largest_free_block}) | wanted /{result.requested_prefix} | "
        f"{result.total_allocations} allocations in {result.total_pools} pools"
    )
    for warning in result.warnings:
        console.print(f"⚠️  {warning}", style="yellow")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option("1.0", "--version", "-v")
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(exists=True),
    help="Path to config.yaml file",
)
@click.option("--verbose", "-V", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config_file, verbose):
    """📐 Subnet Planner CLI

    Aligned VLSM placement | First-Fit / Best-Fit | Utilization report
    """
    try:
        config = load_config(config_file)
    except PlanError as e:
        fail(str(e))
    setup_logging("DEBUG" if verbose else config["logging"]["level"])
    ctx.obj = config


@cli.command()
def quickstart():
    """🚀 Quickstart guide"""
    click.echo("""
1️⃣  cat > plan.yaml <<EOF
    pools: [192.168.0.0/22]
    requests:
      - {name: web, hosts: 100}
      - {name: db, prefix: 27}
      - {name: mgmt, hosts: 10}
    EOF
2️⃣  ./subnetplan.py plan plan.yaml
3️⃣  ./subnetplan.py plan plan.yaml --strategy first-fit --format json
4️⃣  ./subnetplan.py next 10.0.0.0/24 --prefix 26 --allocated 10.0.0.0/26
    """)


@cli.command(name="plan")
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--strategy", "-s", type=click.Choice(PLAN_STRATEGIES), help="Placement strategy"
)
@click.option(
    "--usable-hosts/--all-addresses",
    default=None,
    help="Reserve IPv4 network/broadcast addresses when sizing host counts",
)
@click.option("--format", "-f", "output_format", type=click.Choice(OUTPUT_FORMATS))
@click.pass_obj
def plan_command(config, plan_file, strategy, usable_hosts, output_format):
    """Plan subnets from a YAML plan file"""
    planner = config["planner"]
    try:
        plan_input = load_plan_file(Path(plan_file))
        result = plan(
            plan_input["pools"],
            plan_input["requests"],
            strategy=strategy or plan_input["strategy"] or planner["strategy"],
            usable_hosts_only=_first_set(
                usable_hosts,
                plan_input["usable_hosts_only"],
                planner["usable_hosts_only"],
            ),
            reserved=plan_input["reserved"],
        )
    except PlanError as e:
        fail(str(e))

    if (output_format or config["output"]["format"]) == "json":
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        print_plan(result)


@cli.command(name="next")
@click.argument("pools", nargs=-1, required=True)
@click.option("--prefix", "-p", type=int, help="Desired prefix length")
@click.option("--hosts", "-n", type=int, help="Desired host count")
@click.option("--allocated", "-a", multiple=True, help="Already allocated CIDR")
@click.option(
    "--policy", type=click.Choice(available_strategies()), default="first-fit"
)
@click.option(
    "--count", "-k", type=click.IntRange(min=1), help="Number of candidates"
)
@click.option(
    "--usable-hosts/--all-addresses",
    default=None,
    help="Reserve IPv4 network/broadcast addresses when sizing host counts",
)
@click.option("--format", "-f", "output_format", type=click.Choice(OUTPUT_FORMATS))
@click.pass_obj
def next_command(
    config, pools, prefix, hosts, allocated, policy, count, usable_hosts, output_format
):
    """Find the next available subnet(s) in POOLS"""
    planner = config["planner"]
    try:
        result = find_next_available(
            list(pools),
            prefix_length=prefix,
            host_count=hosts,
            allocations=list(allocated),
            policy=policy,
            usable_hosts_only=_first_set(usable_hosts, planner["usable_hosts_only"]),
            max_candidates=_first_set(count, planner["max_candidates"]),
        )
    except (PlanError, RequestError) as e:
        fail(str(e))

    if (output_format or config["output"]["format"]) == "json":
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        print_candidates(result)


def _first_set(*values):
    return next(v for v in values if v is not None)


if __name__ == "__main__":
    cli()
