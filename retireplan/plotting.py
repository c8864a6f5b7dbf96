"""
Plotting utilities for RetirePlan.

Purpose
-------
Visualizes a computed RetirementPlan with matplotlib. Plotting is kept
apart from the engine so the core stays free of any rendering dependency
at import time; ``matplotlib.pyplot`` is imported inside each function.

Modes
-----
- "corpus": per-bucket stacked balances over the accumulation phase,
  net corpus line, required corpus of the selected strategy, then the
  post-retirement drawdown of every strategy
- "income": monthly income per strategy after retirement
- "scenarios": baseline vs strategy corpus path of each what-if scenario
- "stepup": projected corpus per step-up stop year against the target

Example
-------
>>> from retireplan.plotting import plot_plan
>>> plot_plan(plan, "corpus", save_path="corpus.png")
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import numpy as np

from .aggregator import InstrumentType

if TYPE_CHECKING:
    from .engine import RetirementPlan

__all__ = [
    "plot_plan",
    "plot_corpus",
    "plot_income",
    "plot_scenarios",
    "plot_step_up",
]

_CRORE = 1e7


def _finish(fig, axes, title, save_path, return_fig_ax):
    import matplotlib.pyplot as plt

    fig.suptitle(title, fontsize=14, fontweight='bold')
    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, bbox_inches='tight', dpi=150)
    if return_fig_ax:
        return fig, axes
    return None


def plot_corpus(
    plan: RetirementPlan,
    figsize: tuple = (14, 6),
    title: Optional[str] = None,
    save_path: Optional[str] = None,
    return_fig_ax: bool = False,
) -> Optional[tuple]:
    """
    Two panels: accumulation by bucket (left) and retirement drawdown (right).

    Amounts are shown in crore.
    """
    import matplotlib.pyplot as plt

    fig, axes = plt.subplots(1, 2, figsize=figsize)
    ax_acc, ax_ret = axes

    # Panel 1: accumulation
    rows = plan.matrix
    if rows:
        years = np.array([r.year for r in rows])
        stacks = [
            np.array([max(0.0, r.balance(t)) for r in rows]) / _CRORE
            for t in InstrumentType
        ]
        colors = plt.cm.Set2(np.linspace(0, 1, len(stacks)))
        ax_acc.stackplot(
            years, *stacks,
            labels=[t.value.replace('_', ' ').title() for t in InstrumentType],
            colors=colors, alpha=0.8,
        )
        ax_acc.plot(years, [r.net_corpus / _CRORE for r in rows],
                    color='black', linewidth=2, label='Net corpus')
        strategy = plan.params.income_strategy.value
        required = [r.required_corpus.get(strategy, 0.0) / _CRORE for r in rows]
        ax_acc.plot(years, required, color='crimson', linestyle='--', linewidth=2,
                    label=f'Required ({plan.params.income_strategy.label})')
        shortfall = [r.year for r in rows if r.shortfall]
        for year in shortfall:
            ax_acc.axvline(year, color='red', alpha=0.2)
    else:
        ax_acc.text(0.5, 0.5, 'No accumulation years', ha='center', va='center',
                    transform=ax_acc.transAxes)
    ax_acc.set_xlabel("Year", fontsize=11)
    ax_acc.set_ylabel("Corpus (₹ Cr)", fontsize=11)
    ax_acc.set_title("Accumulation", fontsize=12, fontweight='bold')
    ax_acc.legend(loc='upper left', fontsize=9)
    ax_acc.grid(True, alpha=0.3)

    # Panel 2: drawdown per strategy
    for name, projection in plan.income.items():
        dense = projection.interpolate_yearly()
        if dense.empty:
            continue
        ax_ret.plot(dense["age"], dense["corpus"] / _CRORE, linewidth=2.5,
                    label=projection.strategy.label)
        if projection.depletion_age is not None:
            ax_ret.axvline(projection.depletion_age, linestyle=':', alpha=0.5)
    ax_ret.set_xlabel("Age", fontsize=11)
    ax_ret.set_ylabel("Corpus (₹ Cr)", fontsize=11)
    ax_ret.set_title("Retirement Drawdown", fontsize=12, fontweight='bold')
    ax_ret.grid(True, alpha=0.3)
    if ax_ret.lines:
        ax_ret.legend(loc='best', fontsize=10)

    return _finish(fig, axes, title or "Retirement Corpus", save_path, return_fig_ax)


def plot_income(
    plan: RetirementPlan,
    figsize: tuple = (10, 6),
    title: Optional[str] = None,
    save_path: Optional[str] = None,
    return_fig_ax: bool = False,
) -> Optional[tuple]:
    """Monthly corpus-funded income per strategy, plus rental and annuity income."""
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(figsize=figsize)
    other_plotted = False
    for projection in plan.income.values():
        dense = projection.interpolate_yearly()
        if dense.empty:
            continue
        ax.plot(dense["age"], dense["monthly_income"], linewidth=2.5,
                label=projection.strategy.label)
        if not other_plotted:
            other = dense["rental_income"] + dense["annuity_income"]
            if other.any():
                ax.fill_between(dense["age"], 0, other, alpha=0.2,
                                label='Rental + annuity')
            other_plotted = True
    ax.set_xlabel("Age", fontsize=11)
    ax.set_ylabel("Monthly income (₹)", fontsize=11)
    ax.grid(True, alpha=0.3)
    if ax.lines:
        ax.legend(loc='best', fontsize=10)
    return _finish(fig, ax, title or "Post-Retirement Income", save_path, return_fig_ax)


def plot_scenarios(
    plan: RetirementPlan,
    figsize: tuple = (14, 6),
    title: Optional[str] = None,
    save_path: Optional[str] = None,
    return_fig_ax: bool = False,
) -> Optional[tuple]:
    """
    Two panels: corpus paths (left) and delta at retirement (right).
    """
    import matplotlib.pyplot as plt

    fig, axes = plt.subplots(1, 2, figsize=figsize)
    ax_path, ax_delta = axes
    results = plan.scenarios

    if results:
        base = results[0].comparison
        ax_path.plot([c.calendar_year for c in base],
                     [c.baseline_corpus / _CRORE for c in base],
                     color='black', linewidth=2.5, label='Baseline')
    for res in results:
        ax_path.plot([c.calendar_year for c in res.comparison],
                     [c.strategy_corpus / _CRORE for c in res.comparison],
                     linewidth=2, label=res.scenario.title)
    ax_path.set_xlabel("Year", fontsize=11)
    ax_path.set_ylabel("Corpus (₹ Cr)", fontsize=11)
    ax_path.set_title("Corpus Paths", fontsize=12, fontweight='bold')
    ax_path.grid(True, alpha=0.3)
    if ax_path.lines:
        ax_path.legend(loc='best', fontsize=9)

    colors = plt.cm.Set3(np.linspace(0, 1, max(1, len(results))))
    ax_delta.bar(
        [r.scenario.id for r in results],
        [r.delta / _CRORE for r in results],
        color=colors[:len(results)],
    )
    ax_delta.set_ylabel("Delta at retirement (₹ Cr)", fontsize=11)
    ax_delta.set_title("Impact", fontsize=12, fontweight='bold')
    ax_delta.grid(True, alpha=0.3, axis='y')
    ax_delta.tick_params(axis='x', rotation=45)

    return _finish(fig, axes, title or "What-If Scenarios", save_path, return_fig_ax)


def plot_step_up(
    plan: RetirementPlan,
    figsize: tuple = (10, 6),
    title: Optional[str] = None,
    save_path: Optional[str] = None,
    return_fig_ax: bool = False,
) -> Optional[tuple]:
    """Projected corpus per step-up stop year against the target."""
    import matplotlib.pyplot as plt

    opt = plan.optimization
    fig, ax = plt.subplots(figsize=figsize)
    scenarios = sorted(opt.scenarios, key=lambda s: s.stop_year)
    if scenarios:
        ax.plot([s.age for s in scenarios],
                [s.projected_corpus / _CRORE for s in scenarios],
                marker='o', linewidth=2, label='Corpus if step-up stops')
    ax.axhline(opt.target_corpus / _CRORE, color='crimson', linestyle='--',
               label='Target corpus')
    if opt.can_stop_early:
        ax.axvline(opt.optimal_stop_age, color='green', linestyle=':',
                   label=f'Optimal stop (age {opt.optimal_stop_age})')
    ax.set_xlabel("Age at which step-up stops", fontsize=11)
    ax.set_ylabel("Corpus at retirement (₹ Cr)", fontsize=11)
    ax.grid(True, alpha=0.3)
    ax.legend(loc='best', fontsize=10)
    return _finish(fig, ax, title or "SIP Step-Up Optimization", save_path, return_fig_ax)


_MODES = {
    "corpus": plot_corpus,
    "income": plot_income,
    "scenarios": plot_scenarios,
    "stepup": plot_step_up,
}


def plot_plan(plan: RetirementPlan, mode: str = "corpus", **kwargs) -> Optional[tuple]:
    """
    Unified plotting interface.

    Parameters
    ----------
    plan : RetirementPlan
    mode : {"corpus", "income", "scenarios", "stepup"}
    **kwargs
        figsize, title, save_path, return_fig_ax.
    """
    try:
        fn = _MODES[mode]
    except KeyError:
        raise ValueError(
            f"Unknown plot mode '{mode}'. Valid: {', '.join(_MODES)}"
        ) from None
    return fn(plan, **kwargs)
