"""Main CLI interface for the LoadMatch engine

Provides command-line commands for:
- Scoring load/vehicle matches
- Detecting lane volume anomalies
- Building analytics and dashboard snapshots
- Exporting the built-in reference dataset
"""

import click
import json
import pandas as pd
from pathlib import Path
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from loadmatch import __version__
from loadmatch.data.loaders import DataLoader
from loadmatch.data.sample import sample_dataset
from loadmatch.exceptions import LoadMatchError
from loadmatch.pipeline import SnapshotBuilder
from loadmatch.utils.config import DEFAULT_CONFIG_PATH, ConfigLoader
from loadmatch.utils.logging_config import get_logger, setup_logging_from_config


console = Console()
logger = get_logger(__name__)


SEVERITY_STYLES = {'high': 'bold red', 'medium': 'yellow', 'low': 'dim'}
TREND_ARROWS = {'up': '[green]▲[/green]', 'down': '[red]▼[/red]', 'stable': '[dim]■[/dim]'}


@click.group()
@click.version_option(version=__version__, prog_name='LoadMatch Engine')
def cli():
    """
    LoadMatch Engine

    Freight load matching and lane analytics:
    - Scored, explainable load/vehicle pairings
    - Lane volume spike/drop detection
    - Analytics and dashboard snapshots
    """
    pass


def config_option(func):
    """--config and --json options shared by the commands"""
    func = click.option(
        '--json',
        'as_json',
        is_flag=True,
        help='Print the raw JSON payload instead of tables'
    )(func)
    return click.option(
        '--config',
        '-c',
        type=click.Path(exists=True, dir_okay=False),
        default=None,
        help=f'Path to configuration file (default: {DEFAULT_CONFIG_PATH} if present)'
    )(func)


def input_options(lanes: bool = False, counters: bool = False):
    """Input file options shared by the commands"""
    def decorator(func):
        options = [
            click.option('--loads', type=click.Path(exists=True, dir_okay=False),
                         help='Loads file (JSON or CSV)'),
            click.option('--trucks', type=click.Path(exists=True, dir_okay=False),
                         help='Vehicles file (JSON or CSV)'),
        ]
        if lanes:
            options.append(click.option('--lanes', type=click.Path(exists=True, dir_okay=False),
                                        help='Lane volumes file (JSON or long-format CSV)'))
        if counters:
            options.append(click.option('--counters', type=click.Path(exists=True, dir_okay=False),
                                        help='Operational counters file (JSON)'))
        options.append(click.option('--sample', is_flag=True,
                                    help='Use the built-in reference dataset'))

        for option in reversed(options):
            func = option(func)
        return func
    return decorator


def _load_config(config):
    """Configuration file given on the command line, else the default file if present"""
    if config is None and Path(DEFAULT_CONFIG_PATH).exists():
        config = DEFAULT_CONFIG_PATH
    loader = ConfigLoader(config) if config else None

    setup_logging_from_config(loader)
    return loader


def _read_inputs(sample, loads=None, trucks=None, lanes=None, counters=None):
    """Read inputs from files, or take them from the reference dataset"""
    if sample:
        data = sample_dataset()
        return data['loads'], data['trucks'], data['lanes'], data['counters']

    loader = DataLoader()
    return (
        loader.load_loads(loads) if loads else [],
        loader.load_vehicles(trucks) if trucks else [],
        loader.load_lanes(lanes) if lanes else [],
        loader.load_counters(counters) if counters else None,
    )


def _echo_json(payload):
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _fail(message: str, error: Exception):
    console.print(f"\n[bold red]✗ Error:[/bold red] {str(error)}")
    if isinstance(error, (LoadMatchError, FileNotFoundError, ValueError)):
        logger.error(f"{message}: {error}")
    else:
        logger.exception(message)
    raise click.Abort()


@cli.command()
@config_option
@input_options()
@click.option('--exclusive', is_flag=True, help='Keep one vehicle per load (greedy assignment)')
def match(config, as_json, loads, trucks, sample, exclusive):
    """
    Score and rank vehicles for every load

    Examples:
      loadmatch match --sample
      loadmatch match --loads loads.json --trucks trucks.csv --json
    """
    try:
        builder = SnapshotBuilder(config=_load_config(config))
        raw_loads, raw_trucks, _, _ = _read_inputs(sample, loads=loads, trucks=trucks)

        payload = builder.match(raw_loads, raw_trucks, exclusive=exclusive)

        if as_json:
            _echo_json(payload)
            return

        console.print(Panel.fit(
            "[bold cyan]LoadMatch Engine - Matches[/bold cyan]",
            border_style="cyan"
        ))

        table = Table(title="Ranked Matches", show_header=True, header_style="bold cyan")
        table.add_column("Load", style="cyan", no_wrap=True)
        table.add_column("Truck", style="yellow", no_wrap=True)
        table.add_column("Score", justify="right", style="green")
        table.add_column("Reason", style="dim")

        for row in payload['matches']:
            table.add_row(row['loadId'], row['truckId'], f"{row['matchScore']:.3f}", row['reason'])

        console.print(table)

        metadata = payload['metadata']
        console.print(
            f"\n[bold]Loads:[/bold] {metadata['loadsCount']}  "
            f"[bold]Trucks:[/bold] {metadata['trucksCount']}  "
            f"[bold]Matches:[/bold] {metadata['matchesCount']}  "
            f"[bold]Time:[/bold] {metadata['processingTime']}"
        )
        for skipped in metadata['skipped']:
            console.print(
                f"[yellow]⚠  Skipped {skipped['kind']} '{skipped['id']}': {skipped['reason']}[/yellow]"
            )

    except Exception as e:
        _fail("Matching failed", e)


@cli.command()
@config_option
@click.option('--lanes', type=click.Path(exists=True, dir_okay=False),
              help='Lane volumes file (JSON or long-format CSV)')
@click.option('--sample', is_flag=True, help='Use the built-in reference dataset')
def anomalies(config, as_json, lanes, sample):
    """
    Classify lane volume changes as spike, drop or stable

    Example:
      loadmatch anomalies --lanes lanes.csv
    """
    try:
        builder = SnapshotBuilder(config=_load_config(config))
        _, _, raw_lanes, _ = _read_inputs(sample, lanes=lanes)

        results = builder.anomalies(raw_lanes)

        if as_json:
            _echo_json([a.to_dict() for a in results])
            return

        table = Table(title="Lane Anomalies", show_header=True, header_style="bold cyan")
        table.add_column("Lane", style="cyan")
        table.add_column("Type")
        table.add_column("Severity")
        table.add_column("Change", justify="right")
        table.add_column("Message", style="dim")

        for anomaly in results:
            style = SEVERITY_STYLES[anomaly.severity.value]
            table.add_row(
                anomaly.lane,
                anomaly.type.value,
                f"[{style}]{anomaly.severity.value}[/{style}]",
                f"{anomaly.percent_change:+.1f}%",
                anomaly.message
            )

        console.print(table)

    except Exception as e:
        _fail("Anomaly detection failed", e)


@cli.command()
@config_option
@input_options(lanes=True, counters=True)
def analytics(config, as_json, loads, trucks, lanes, counters, sample):
    """
    Build the analytics snapshot

    Example:
      loadmatch analytics --sample --json
    """
    try:
        builder = SnapshotBuilder(config=_load_config(config))
        snapshot = builder.analytics(*_read_inputs(sample, loads, trucks, lanes, counters))

        if as_json:
            _echo_json(snapshot)
            return

        console.print(Panel.fit(
            "[bold cyan]LoadMatch Engine - Analytics[/bold cyan]",
            border_style="cyan"
        ))

        table = Table(title="KPIs")
        table.add_column("KPI", style="cyan")
        table.add_column("Value", justify="right", style="green")
        table.add_column("Change", justify="right")
        table.add_column("Trend", justify="center")

        for name, kpi in snapshot['kpis'].items():
            value = kpi['value']
            value_str = f"{value:,.1f}" if isinstance(value, float) else f"{value:,}"
            table.add_row(f"{name} ({kpi['unit']})", value_str,
                          f"{kpi['changePercent']:+.1f}%", TREND_ARROWS[kpi['trend']])

        console.print(table)

        if snapshot['laneBreakdown']:
            lanes_table = Table(title="Lane Breakdown")
            lanes_table.add_column("Lane", style="cyan")
            lanes_table.add_column("Current", justify="right", style="green")
            lanes_table.add_column("Previous", justify="right", style="yellow")
            lanes_table.add_column("Change", justify="right")

            for row in snapshot['laneBreakdown']:
                lanes_table.add_row(row['lane'], f"{row['current']:,}", f"{row['previous']:,}",
                                    f"{row['changePercent']:+.1f}%")

            console.print(lanes_table)

        accuracy = snapshot['forecastAccuracy']
        console.print(Panel(
            f"[bold]MAPE:[/bold] {accuracy['mape']}%   [bold]MAE:[/bold] {accuracy['mae']}   "
            f"[bold]RMSE:[/bold] {accuracy['rmse']}   [bold]Rating:[/bold] {accuracy['rating']}",
            title="Forecast Accuracy",
            border_style="cyan"
        ))

        for insight in snapshot['insights']:
            console.print(f"[bold]{insight['title']}:[/bold] {insight['description']}")

    except Exception as e:
        _fail("Analytics snapshot failed", e)


@cli.command()
@config_option
@input_options(lanes=True, counters=True)
def dashboard(config, as_json, loads, trucks, lanes, counters, sample):
    """
    Build the dashboard snapshot

    Example:
      loadmatch dashboard --loads loads.json --trucks trucks.json --lanes lanes.csv
    """
    try:
        builder = SnapshotBuilder(config=_load_config(config))
        snapshot = builder.dashboard(*_read_inputs(sample, loads, trucks, lanes, counters))

        if as_json:
            _echo_json(snapshot)
            return

        stats = snapshot['stats']
        utilization = snapshot['utilization']
        console.print(Panel(
            "\n".join([
                f"[bold]Active shipments:[/bold]  {stats['activeShipments']:,}",
                f"[bold]Quote requests:[/bold]    {stats['quoteRequests']:,}",
                f"[bold]Match rate:[/bold]        {stats['matchRate']:.1f}%",
                f"[bold]Avg response:[/bold]      {stats['avgResponseTimeMinutes']} min",
                f"[bold]Fleet:[/bold]             {utilization['availableVehicles']} available, "
                f"{utilization['utilizationPercent']}% utilized, "
                f"{utilization['idleVehicles']} idle",
            ]),
            title="LoadMatch Engine - Dashboard",
            border_style="cyan"
        ))

        if snapshot['laneHighlights']:
            table = Table(title="Lane Highlights")
            table.add_column("Lane", style="cyan")
            table.add_column("Weekly Loads", justify="right", style="green")
            table.add_column("Change", justify="right")
            table.add_column("Trend", justify="center")

            for row in snapshot['laneHighlights']:
                table.add_row(row['lane'], f"{row['weeklyLoads']:,}",
                              f"{row['changePercent']:+.1f}%", TREND_ARROWS[row['trend']])

            console.print(table)

        alerts = snapshot['alerts']
        console.print(f"\n[bold]Alerts:[/bold] {alerts['count']}")
        for alert in alerts['topAlerts']:
            style = SEVERITY_STYLES[alert['severity']]
            console.print(f"  [{style}]{alert['severity'].upper()}[/{style}] {alert['message']}")

    except Exception as e:
        _fail("Dashboard snapshot failed", e)


@cli.command()
@click.option(
    '--output',
    '-o',
    type=click.Path(file_okay=False),
    default='sample_data',
    help='Directory the reference dataset is written to'
)
def sample(output):
    """
    Export the built-in reference dataset

    Writes loads.json, trucks.json, lanes.csv (long format) and
    counters.json, ready to be passed back to the other commands.

    Example:
      loadmatch sample -o data/
    """
    try:
        output_dir = Path(output)
        output_dir.mkdir(parents=True, exist_ok=True)

        data = sample_dataset()

        for name in ('loads', 'trucks', 'counters'):
            with open(output_dir / f"{name}.json", 'w', encoding='utf-8') as f:
                json.dump(data[name], f, indent=2, ensure_ascii=False)

        df_lanes = pd.DataFrame([
            {
                'lane': lane['lane'],
                'origin': lane['origin'],
                'destination': lane['destination'],
                'week': point['week'],
                'loads': point['loads'],
            }
            for lane in data['lanes']
            for point in lane['history']
        ])
        df_lanes.to_csv(output_dir / 'lanes.csv', index=False)

        console.print(f"[green]✓[/green] Reference dataset written to {output_dir}")
        console.print(
            f"  {len(data['loads'])} loads, {len(data['trucks'])} trucks, "
            f"{len(data['lanes'])} lanes ({len(df_lanes):,} weekly points)"
        )

    except Exception as e:
        _fail("Sample export failed", e)


if __name__ == '__main__':
    cli()
