"""
Command-Line Interface for RetirePlan.

Purpose
-------
Runs retirement projections from JSON request files and renders the
results as tables, without writing Python code.

Commands
--------
- plan: Full plan (summary, gap analysis, step-up optimization)
- matrix: Year-by-year projection table (or CSV)
- scenarios: What-if scenario comparison
- income: Post-retirement income per strategy
- config: Create and validate request files, show settings
- strategy: Save and show the selected strategy
- info: Package and dependency versions

Example Usage
-------------
    # Create a starter request
    $ retireplan config create request.json

    # Run the plan and save the full result
    $ retireplan plan request.json --output plan.json

    # Year-by-year matrix as CSV
    $ retireplan matrix request.json --csv matrix.csv

    # Remember a strategy choice
    $ retireplan strategy save SAFE_4_PERCENT --increase-sip
"""

from __future__ import annotations

import sys
from datetime import date
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import AppSettings, IncomeStrategy, PlanningParameters
from .constants import SCHEMA_VERSION
from .exceptions import RetirePlanError
from .utils import format_currency

STRATEGIES = [s.value for s in IncomeStrategy]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _repository(ctx: click.Context):
    from .repository import JsonFileSettingsRepository

    return JsonFileSettingsRepository(ctx.obj["settings"].settings_path)


def _load_request(ctx: click.Context, path: Path, strategy: Optional[str] = None,
                  saved: bool = False, user: str = "default"):
    """Load *path*, fill unset assumptions from settings, apply strategy."""
    from .engine import PlanRequest
    from .repository import apply_selection
    from .serialization import load_request

    settings: AppSettings = ctx.obj["settings"]
    try:
        request = load_request(path)
        explicit = request.params.model_dump(include=request.params.model_fields_set)
        params = PlanningParameters.from_settings(settings, **explicit)
        if saved:
            params = apply_selection(params, _repository(ctx).load_selection(user))
    except RetirePlanError as e:
        _fail(str(e))
    if strategy:
        params = params.model_copy(update={"income_strategy": IncomeStrategy(strategy)})
    return PlanRequest(
        params=params,
        investments=request.investments,
        loans=request.loans,
        goals=request.goals,
        insurance=request.insurance,
        incomes=request.incomes,
        expenses=request.expenses,
    )


def _run(ctx: click.Context, path: Path, strategy: Optional[str] = None,
         saved: bool = False, user: str = "default"):
    from .engine import plan_retirement

    return plan_retirement(_load_request(ctx, path, strategy, saved, user))


def _money(value: float) -> str:
    return format_currency(value, compact=True)


request_argument = click.argument(
    "request_file", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
strategy_option = click.option(
    "--strategy", "-s",
    type=click.Choice(STRATEGIES, case_sensitive=False),
    default=None,
    help="Override the income strategy of the request",
)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(version=__version__, prog_name="retireplan")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, quiet: bool, verbose: bool) -> None:
    """
    RetirePlan - Retirement corpus projection and strategy engine.

    Projects corpus growth, required corpus per withdrawal strategy,
    SIP step-up optimization, retirement income and what-if scenarios.

    Use 'retireplan COMMAND --help' for command-specific help.
    """
    ctx.ensure_object(dict)
    settings = AppSettings()
    settings.configure_logging("DEBUG" if verbose else None)
    ctx.obj["settings"] = settings
    ctx.obj["quiet"] = quiet
    ctx.obj["console"] = Console()


# ---------------------------------------------------------------------------
# plan
# ---------------------------------------------------------------------------

@main.command()
@request_argument
@strategy_option
@click.option("--saved", is_flag=True, help="Apply the saved strategy selection")
@click.option("--user", default="default", show_default=True, help="Settings user id")
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the full plan as JSON",
)
@click.option(
    "--plot",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Save the corpus chart to this image file",
)
@click.pass_context
def plan(
    ctx: click.Context,
    request_file: Path,
    strategy: Optional[str],
    saved: bool,
    user: str,
    output: Optional[Path],
    plot: Optional[Path],
) -> None:
    """
    Run the full retirement plan.

    Example:
        retireplan plan request.json --strategy SAFE_4_PERCENT -o plan.json
    """
    console: Console = ctx.obj["console"]
    quiet = ctx.obj["quiet"]
    result = _run(ctx, request_file, strategy, saved, user)
    s = result.summary
    gap = result.gap_analysis
    opt = result.optimization

    if not quiet:
        table = Table(title="Retirement Summary", show_header=True)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green", justify="right")
        table.add_row("Age", f"{s.current_age} → {s.retirement_age} (life {s.life_expectancy})")
        table.add_row("Years to retirement", f"{s.years_to_retirement}")
        table.add_row("Current corpus", _money(s.current_corpus))
        table.add_row("Illiquid assets", _money(s.illiquid_value))
        table.add_row("Projected corpus", _money(s.final_corpus))
        table.add_row("Strategy", s.selected_strategy_name)
        table.add_row("Required corpus", _money(s.required_corpus))
        table.add_row("Monthly income", format_currency(s.selected_monthly_income))
        if s.shortfall_years:
            table.add_row("Shortfall years", ", ".join(map(str, s.shortfall_years)))
        console.print(table)

        gap_table = Table(title="Gap Analysis")
        gap_table.add_column("Strategy", style="cyan")
        gap_table.add_column("Required", justify="right")
        gap_table.add_column("Gap", justify="right")
        gap_table.add_column("Monthly income", justify="right")
        for name, required in gap.required_by_strategy.items():
            diff = required - gap.projected_corpus
            style = "red" if diff > 0 else "green"
            gap_table.add_row(
                IncomeStrategy(name).label,
                _money(required),
                f"[{style}]{_money(diff)}[/{style}]",
                format_currency(s.monthly_income_by_strategy.get(name, 0.0)),
            )
        console.print(gap_table)

        status = "[green]On track[/green]" if gap.is_on_track else (
            f"[red]Short by {_money(gap.corpus_gap)} ({gap.gap_percent:.1f}%)[/red]; "
            f"extra SIP {format_currency(gap.additional_monthly_sip)}/month"
        )
        console.print(Panel(status, title="Status"))
        console.print(Panel(opt.summary(), title="SIP Step-Up"))

        for rec in result.recommendations:
            console.print(f"• [bold]{rec.title}[/bold]: {rec.description}")

    if output:
        from .serialization import save_plan

        try:
            save_plan(result, output)
        except RetirePlanError as e:
            _fail(str(e))
        if not quiet:
            click.echo(f"Plan saved to {output}")

    if plot:
        import matplotlib
        matplotlib.use("Agg")
        from .plotting import plot_corpus

        plot_corpus(result, save_path=str(plot))
        if not quiet:
            click.echo(f"Chart saved to {plot}")


# ---------------------------------------------------------------------------
# matrix / scenarios / income
# ---------------------------------------------------------------------------

@main.command()
@request_argument
@strategy_option
@click.option(
    "--csv", "csv_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the matrix as CSV instead of printing it",
)
@click.pass_context
def matrix(ctx: click.Context, request_file: Path, strategy: Optional[str],
           csv_path: Optional[Path]) -> None:
    """
    Print the year-by-year projection.

    Example:
        retireplan matrix request.json --csv matrix.csv
    """
    console: Console = ctx.obj["console"]
    result = _run(ctx, request_file, strategy)
    if csv_path:
        result.matrix_frame().to_csv(csv_path)
        if not ctx.obj["quiet"]:
            click.echo(f"Matrix saved to {csv_path}")
        return
    if not result.matrix:
        click.echo("No accumulation years to project.")
        return

    selected = result.params.income_strategy.value
    table = Table(title="Retirement Matrix")
    for col in ("Year", "Age", "MF SIP", "Inflow", "Goals", "Net corpus", "Required", "Retire?"):
        table.add_column(col, justify="right")
    for row in result.matrix:
        corpus = _money(row.net_corpus)
        if row.shortfall:
            corpus = f"[red]{corpus}[/red]"
        table.add_row(
            str(row.year),
            str(row.age),
            format_currency(row.mf_sip),
            _money(row.total_inflow) if row.total_inflow else "",
            _money(row.goal_outflow) if row.goal_outflow else "",
            corpus,
            _money(row.required_corpus.get(selected, 0.0)),
            "✓" if row.can_retire.get(selected) else "",
        )
    console.print(table)


@main.command()
@request_argument
@strategy_option
@click.pass_context
def scenarios(ctx: click.Context, request_file: Path, strategy: Optional[str]) -> None:
    """
    Compare what-if scenarios.

    Example:
        retireplan scenarios request.json
    """
    console: Console = ctx.obj["console"]
    result = _run(ctx, request_file, strategy)
    if not result.scenarios:
        click.echo("No applicable scenarios.")
        return
    table = Table(title="What-If Scenarios")
    table.add_column("Scenario", style="cyan")
    table.add_column("Type")
    table.add_column("Year", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("Delta", justify="right", style="green")
    table.add_column("Meets target", justify="center")
    for res in result.scenarios:
        sc = res.scenario
        table.add_row(
            sc.title,
            sc.type.value,
            str(sc.deployment_year),
            format_currency(sc.value, compact=sc.type.value != "sip"),
            _money(res.delta),
            "✓" if res.meets_required else "✗",
        )
    console.print(table)


@main.command()
@request_argument
@click.option("--yearly", is_flag=True, help="Interpolate to one row per year")
@click.pass_context
def income(ctx: click.Context, request_file: Path, yearly: bool) -> None:
    """
    Post-retirement income under every strategy.

    Example:
        retireplan income request.json --yearly
    """
    console: Console = ctx.obj["console"]
    result = _run(ctx, request_file)
    for name, projection in result.income.items():
        frame = projection.interpolate_yearly() if yearly else projection.to_frame()
        depletion = (
            f"depleted at age {projection.depletion_age}"
            if projection.depletion_age is not None else "sustained"
        )
        table = Table(title=f"{projection.strategy.label} ({depletion})")
        for col in ("Age", "Corpus", "Monthly income", "Rental", "Annuity"):
            table.add_column(col, justify="right")
        for _, row in frame.iterrows():
            table.add_row(
                str(int(row["age"])),
                _money(row["corpus"]),
                format_currency(row["monthly_income"]),
                format_currency(row["rental_income"]),
                format_currency(row["annuity_income"]),
            )
        console.print(table)


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------

@main.group()
def config() -> None:
    """Request file and settings management."""


@config.command("validate")
@request_argument
@click.pass_context
def config_validate(ctx: click.Context, request_file: Path) -> None:
    """
    Validate a request file.

    Example:
        retireplan config validate request.json
    """
    from .serialization import RECORD_COLLECTIONS

    request = _load_request(ctx, request_file)
    params = request.params
    click.echo(f"✓ {request_file} is valid")
    if not ctx.obj["quiet"]:
        click.echo(
            f"  Ages {params.current_age} → {params.retirement_age} → {params.life_expectancy}, "
            f"strategy {params.income_strategy.value}"
        )
        for name in RECORD_COLLECTIONS:
            click.echo(f"  {name}: {len(getattr(request, name))}")
        if params.is_degenerate:
            click.echo("  Warning: retirement age is not after current age", err=True)


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show the effective settings (environment and .env applied)."""
    console: Console = ctx.obj["console"]
    settings: AppSettings = ctx.obj["settings"]
    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", justify="right")
    for name, value in settings.model_dump().items():
        table.add_row(name, str(value))
    console.print(table)


@config.command("create")
@click.argument("output_file", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--template", "-t", type=click.Choice(["basic", "full"]), default="basic")
@click.pass_context
def config_create(ctx: click.Context, output_file: Path, template: str) -> None:
    """
    Create a new request file from a template.

    Example:
        retireplan config create request.json --template full
    """
    from .serialization import write_json

    year = date.today().year
    data = {
        "schema_version": SCHEMA_VERSION,
        "parameters": {
            "currentAge": 35,
            "retirementAge": 60,
            "lifeExpectancy": 85,
            "incomeStrategy": "SUSTAINABLE",
        },
        "investments": [
            {"type": "MUTUAL_FUND", "name": "Equity funds",
             "currentValue": 2000000, "monthlySip": 50000},
            {"type": "EPF", "name": "EPF", "currentValue": 800000, "monthlySip": 15000},
        ],
        "incomes": [{"source": "Salary", "monthlyAmount": 200000, "annualIncrement": 8}],
        "expenses": [{"name": "Household", "category": "LIVING", "amount": 60000,
                      "frequency": "MONTHLY"}],
    }
    if template == "full":
        data["parameters"].update(
            sipStepUpPercent=10,
            stepUpEffectiveFromYear=1,
            rateReduction={"enabled": True, "percent": 0.5, "everyYears": 5},
        )
        data["investments"] += [
            {"type": "PPF", "name": "PPF", "currentValue": 500000, "yearlyContribution": 150000},
            {"type": "FD", "name": "Bank FD", "currentValue": 300000, "interestRate": 7,
             "maturityDate": f"{year + 3}-03-31"},
            {"type": "REAL_ESTATE", "name": "Plot", "currentValue": 4000000},
        ]
        data["loans"] = [{"name": "Home loan", "type": "HOME", "emi": 35000,
                          "endDate": f"{year + 8}-06-30"}]
        data["goals"] = [{"name": "Child education", "targetAmount": 2500000,
                          "targetYear": year + 12}]
        data["insurance"] = [
            {"type": "TERM_LIFE", "policyName": "Term plan", "annualPremium": 18000},
            {"type": "ENDOWMENT", "policyName": "Endowment", "annualPremium": 50000,
             "maturityBenefit": 1200000, "maturityDate": f"{year + 10}-01-15"},
        ]
        data["expenses"].append(
            {"name": "School fees", "category": "EDUCATION", "amount": 120000,
             "frequency": "YEARLY", "isTimeBound": True, "endYear": year + 12}
        )

    try:
        write_json(data, output_file)
    except RetirePlanError as e:
        _fail(str(e))
    if not ctx.obj["quiet"]:
        ctx.obj["console"].print(f"[green]Created request file: {output_file}[/green]")


# ---------------------------------------------------------------------------
# strategy
# ---------------------------------------------------------------------------

@main.group()
def strategy() -> None:
    """Saved strategy selection."""


@strategy.command("save")
@click.argument("income_strategy", type=click.Choice(STRATEGIES, case_sensitive=False))
@click.option("--user", default="default", show_default=True)
@click.option("--sell-illiquid", is_flag=True, help="Adopt selling illiquid assets")
@click.option("--reinvest-maturities", is_flag=True, help="Adopt reinvesting maturities")
@click.option("--redirect-emis", is_flag=True, help="Adopt redirecting freed EMIs")
@click.option("--increase-sip", is_flag=True, help="Adopt the SIP increase")
@click.option("--notes", default="", help="Free-text notes")
@click.pass_context
def strategy_save(
    ctx: click.Context,
    income_strategy: str,
    user: str,
    sell_illiquid: bool,
    reinvest_maturities: bool,
    redirect_emis: bool,
    increase_sip: bool,
    notes: str,
) -> None:
    """
    Save the selected income strategy and adopted scenarios.

    Example:
        retireplan strategy save SAFE_4_PERCENT --increase-sip
    """
    from .repository import StrategySelection

    selection = StrategySelection(
        user_id=user,
        selected_income_strategy=income_strategy.upper(),
        sell_illiquid_assets=sell_illiquid,
        reinvest_maturities=reinvest_maturities,
        redirect_loan_emis=redirect_emis,
        increase_sip=increase_sip,
        strategy_notes=notes,
    )
    try:
        _repository(ctx).save_selection(selection)
    except RetirePlanError as e:
        _fail(str(e))
    if not ctx.obj["quiet"]:
        click.echo(f"Saved strategy {selection.selected_income_strategy.value} for '{user}'")


@strategy.command("show")
@click.option("--user", default="default", show_default=True)
@click.pass_context
def strategy_show(ctx: click.Context, user: str) -> None:
    """Show the saved strategy selection."""
    try:
        selection = _repository(ctx).load_selection(user)
    except RetirePlanError as e:
        _fail(str(e))
    if selection is None:
        click.echo(f"No saved strategy for '{user}'")
        return
    lines = [
        f"Strategy: {selection.selected_income_strategy.label}",
        f"Adopted scenarios: {', '.join(selection.adopted_scenarios) or 'none'}",
    ]
    if selection.strategy_notes:
        lines.append(f"Notes: {selection.strategy_notes}")
    ctx.obj["console"].print(Panel("\n".join(lines), title=f"Saved strategy ({user})"))


# ---------------------------------------------------------------------------
# info
# ---------------------------------------------------------------------------

@main.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """
    Display package and dependency versions.
    """
    from importlib.metadata import PackageNotFoundError, version

    info_lines = [
        f"RetirePlan Version: {__version__}",
        f"Python: {sys.version.split()[0]}",
        f"Settings file: {ctx.obj['settings'].settings_path}",
    ]
    for name in ("numpy", "pandas", "pydantic", "pydantic-settings", "matplotlib",
                 "rich", "click"):
        try:
            info_lines.append(f"{name}: {version(name)}")
        except PackageNotFoundError:
            info_lines.append(f"{name}: not installed")
    ctx.obj["console"].print(Panel("\n".join(info_lines), title="System Information"))


if __name__ == "__main__":
    main()
