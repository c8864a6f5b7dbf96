"""
Post-retirement income projection for RetirePlan.

Purpose
-------
Simulates how the corpus at retirement is drawn down (or sustained) over
the retirement horizon under each withdrawal strategy, and reports the
resulting monthly income together with rental and annuity income that
arrive independently of the corpus.

Strategies (r = corpus return, g = inflation, w = withdrawal rate)
------------------------------------------------------------------
- SUSTAINABLE:      withdrawal_t = c_t * w;            c_{t+1} = c_t (1 + r) - withdrawal_t
- SAFE_4_PERCENT:   withdrawal_t = 0.04 C_0 (1 + g)^t; c_{t+1} = c_t (1 + r) - withdrawal_t
- SIMPLE_DEPLETION: withdrawal_t = c_t / (n - t);      c_{t+1} = c_t - withdrawal_t

The corpus never goes below zero: once depleted, withdrawals are capped at
what is left and the depletion age is recorded.

Output is a sparse series sampled every INCOME_SAMPLE_STEP years plus the
final year; ``interpolate_yearly`` densifies it with linear interpolation.
Rental and annuity income are reported in their own columns and never
reduce the corpus.

Example
-------
>>> from retireplan.income import project_income
>>> proj = project_income(inputs, corpus=60_000_000)
>>> proj.samples[0].monthly_income
>>> proj.interpolate_yearly().loc[10, "corpus"]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from .aggregator import PlanInputs
from .config import IncomeStrategy
from .constants import INCOME_SAMPLE_STEP, MONTHS_PER_YEAR, SAFE_WITHDRAWAL_RATE
from .utils import rows_to_frame

__all__ = [
    "IncomeSample",
    "IncomeProjection",
    "project_income",
    "compare_strategies",
    "interpolate_yearly",
]

logger = logging.getLogger(__name__)

_DEPLETED = 1e-6


@dataclass(frozen=True)
class IncomeSample:
    """
    Income picture in retirement year ``year_offset``.

    ``corpus`` is the balance at the start of the year; ``monthly_income``
    is the corpus-funded withdrawal divided by twelve.
    """

    year_offset: int
    age: int
    calendar_year: int
    corpus: float
    annual_withdrawal: float
    monthly_income: float
    rental_income: float
    annuity_income: float

    @property
    def total_monthly_income(self) -> float:
        return self.monthly_income + self.rental_income + self.annuity_income


@dataclass(frozen=True)
class IncomeProjection:
    strategy: IncomeStrategy
    initial_corpus: float
    retirement_years: int
    samples: Tuple[IncomeSample, ...]
    depletion_age: Optional[int]

    @property
    def is_sustainable(self) -> bool:
        """Corpus lasts through the whole horizon."""
        return self.depletion_age is None

    @property
    def first_year_monthly_income(self) -> float:
        return self.samples[0].monthly_income if self.samples else 0.0

    def to_frame(self) -> pd.DataFrame:
        return rows_to_frame(self.samples, index="year_offset")

    def interpolate_yearly(self) -> pd.DataFrame:
        return interpolate_yearly(self.samples)


def _withdrawal(
    strategy: IncomeStrategy,
    corpus: float,
    initial: float,
    t: int,
    n: int,
    r: float,
    g: float,
    w: float,
) -> float:
    if corpus <= 0:
        return 0.0
    if strategy is IncomeStrategy.SAFE_4_PERCENT:
        planned = SAFE_WITHDRAWAL_RATE * initial * (1.0 + g) ** t
        return min(planned, corpus * (1.0 + r))
    if strategy is IncomeStrategy.SIMPLE_DEPLETION:
        remaining = n - t
        return corpus / remaining if remaining > 0 else 0.0
    return corpus * w


def _rental_income(inputs: PlanInputs, years_from_now: int) -> float:
    return sum(
        i.monthly_amount * (1.0 + i.annual_increment / 100.0) ** years_from_now
        for i in inputs.rental_incomes
    )


def _annuity_income(inputs: PlanInputs, calendar_year: int) -> float:
    total = 0.0
    for policy in inputs.annuity_policies:
        start = policy.annuity_start_year or inputs.retirement_year
        if calendar_year >= start:
            total += policy.monthly_annuity_amount * (
                1.0 + policy.annuity_growth_rate / 100.0
            ) ** (calendar_year - start)
    return total


def project_income(
    inputs: PlanInputs,
    corpus: float,
    strategy: Optional[IncomeStrategy] = None,
) -> IncomeProjection:
    """
    Draw down *corpus* over the retirement horizon.

    Parameters
    ----------
    inputs : PlanInputs
    corpus : float
        Corpus at retirement. Negative values (a shortfall) start at zero.
    strategy : IncomeStrategy, optional
        Defaults to the strategy selected in the parameters.

    Returns
    -------
    IncomeProjection
    """
    params = inputs.params
    strategy = strategy or params.income_strategy
    n = 0 if params.is_degenerate else params.retirement_years
    r = params.corpus_return_rate / 100.0
    g = params.inflation_rate / 100.0
    w = params.withdrawal_rate / 100.0
    initial = max(0.0, corpus)

    samples: List[IncomeSample] = []
    depletion_age: Optional[int] = None
    c = initial
    for t in range(n + 1):
        withdrawal = _withdrawal(strategy, c, initial, t, n, r, g, w) if t < n else 0.0
        if t % INCOME_SAMPLE_STEP == 0 or t == n:
            calendar_year = inputs.retirement_year + t
            samples.append(
                IncomeSample(
                    year_offset=t,
                    age=params.retirement_age + t,
                    calendar_year=calendar_year,
                    corpus=c,
                    annual_withdrawal=withdrawal,
                    monthly_income=withdrawal / MONTHS_PER_YEAR,
                    rental_income=_rental_income(inputs, params.years_to_retirement + t),
                    annuity_income=_annuity_income(inputs, calendar_year),
                )
            )
        if t == n:
            break
        growth = 1.0 if strategy is IncomeStrategy.SIMPLE_DEPLETION else 1.0 + r
        next_c = c * growth - withdrawal
        if next_c <= _DEPLETED * max(initial, 1.0):
            next_c = 0.0
            if c > 0 and depletion_age is None:
                depletion_age = params.retirement_age + t + 1
        c = next_c

    if depletion_age is not None:
        logger.info(
            "Corpus depleted at age %d under %s", depletion_age, strategy.value
        )
    return IncomeProjection(
        strategy=strategy,
        initial_corpus=initial,
        retirement_years=n,
        samples=tuple(samples),
        depletion_age=depletion_age,
    )


def compare_strategies(inputs: PlanInputs, corpus: float) -> Dict[str, IncomeProjection]:
    """Income projection for every strategy, keyed by strategy name."""
    return {s.value: project_income(inputs, corpus, s) for s in IncomeStrategy}


def interpolate_yearly(samples: Tuple[IncomeSample, ...]) -> pd.DataFrame:
    """
    Dense yearly series from sparse samples via linear interpolation.

    Returns a DataFrame indexed by ``year_offset`` (0..last sample) with
    columns ``age``, ``corpus``, ``monthly_income``, ``rental_income``,
    ``annuity_income`` and ``total_monthly_income``.
    """
    columns = ["age", "corpus", "monthly_income", "rental_income", "annuity_income",
               "total_monthly_income"]
    if not samples:
        return pd.DataFrame(columns=columns, index=pd.Index([], name="year_offset"))
    xs = np.array([s.year_offset for s in samples], dtype=float)
    grid = np.arange(0, samples[-1].year_offset + 1)
    data = {
        "age": samples[0].age + grid,
        "corpus": np.interp(grid, xs, [s.corpus for s in samples]),
        "monthly_income": np.interp(grid, xs, [s.monthly_income for s in samples]),
        "rental_income": np.interp(grid, xs, [s.rental_income for s in samples]),
        "annuity_income": np.interp(grid, xs, [s.annuity_income for s in samples]),
    }
    frame = pd.DataFrame(data, index=pd.Index(grid, name="year_offset"))
    frame["total_monthly_income"] = (
        frame["monthly_income"] + frame["rental_income"] + frame["annuity_income"]
    )
    return frame[columns]
