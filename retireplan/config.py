"""
Configuration management module for RetirePlan.

Purpose
-------
Centralized, type-safe planning parameters using Pydantic models, plus
application settings loaded from the environment.

Design Principles
-----------------
- Immutable: frozen models, one instance per calculation call
- Forgiving: numeric junk and out-of-range values are coerced to safe
  defaults instead of rejected, because planning input is edited
  interactively and the engine must always return a complete result
- Interoperable: camelCase aliases (``currentAge``) and snake_case names
  (``current_age``) are both accepted
- Environment-aware: default assumptions can be overridden with
  ``RETIREPLAN_*`` environment variables or a ``.env`` file

Example
-------
>>> from datetime import date
>>> from retireplan.config import PlanningParameters, IncomeStrategy
>>> params = PlanningParameters(
...     current_age=35, retirement_age=60, life_expectancy=85,
...     mf_return=12.0, as_of=date(2025, 1, 1),
... )
>>> params.years_to_retirement
25
>>> PlanningParameters.model_validate({"currentAge": "40", "mfReturn": "abc"}).mf_return
12.0
"""

from __future__ import annotations

import datetime
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_CORPUS_RETURN_RATE,
    DEFAULT_CURRENT_AGE,
    DEFAULT_EPF_RETURN,
    DEFAULT_INFLATION_RATE,
    DEFAULT_LIFE_EXPECTANCY,
    DEFAULT_MF_RETURN,
    DEFAULT_NPS_RETURN,
    DEFAULT_PPF_RETURN,
    DEFAULT_RATE_REDUCTION_FLOOR,
    DEFAULT_RATE_REDUCTION_PERCENT,
    DEFAULT_RATE_REDUCTION_YEARS,
    DEFAULT_RETIREMENT_AGE,
    DEFAULT_SIP_STEP_UP,
    DEFAULT_STEP_UP_EFFECTIVE_FROM,
    DEFAULT_WITHDRAWAL_RATE,
    MAX_AGE,
    MAX_RATE_PERCENT,
)
from .utils import safe_date, safe_float, safe_int

__all__ = [
    "IncomeStrategy",
    "RateReduction",
    "PlanningParameters",
    "AppSettings",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Income Strategy
# ---------------------------------------------------------------------------

class IncomeStrategy(str, Enum):
    """Post-retirement withdrawal strategy."""

    SUSTAINABLE = "SUSTAINABLE"
    SAFE_4_PERCENT = "SAFE_4_PERCENT"
    SIMPLE_DEPLETION = "SIMPLE_DEPLETION"

    @property
    def label(self) -> str:
        return {
            IncomeStrategy.SUSTAINABLE: "Sustainable",
            IncomeStrategy.SAFE_4_PERCENT: "4% Safe Withdrawal",
            IncomeStrategy.SIMPLE_DEPLETION: "Simple Depletion",
        }[self]

    @classmethod
    def coerce(cls, value: Any) -> "IncomeStrategy":
        """Map a loosely-typed value to a strategy, defaulting to SUSTAINABLE."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().upper().replace("-", "_").replace(" ", "_")
            if key in cls.__members__:
                return cls[key]
        logger.debug("Unknown income strategy %r, using SUSTAINABLE", value)
        return cls.SUSTAINABLE


_MODEL_CONFIG = ConfigDict(
    frozen=True,
    extra="ignore",
    alias_generator=to_camel,
    populate_by_name=True,
)


def _field_default(cls: type[BaseModel], name: str) -> Any:
    return cls.model_fields[name].default


# ---------------------------------------------------------------------------
# Rate Reduction
# ---------------------------------------------------------------------------

class RateReduction(BaseModel):
    """
    Gradual reduction of administered fixed-income rates.

    Every ``every_years`` elapsed, PPF/EPF/deposit rates drop by ``percent``
    percentage points, never below ``floor``. Market-linked instruments are
    unaffected.

    Attributes
    ----------
    enabled : bool
        Apply the reduction at all.
    percent : float
        Percentage points removed per period (e.g. 0.5).
    every_years : int
        Period length in years; values < 1 disable the reduction.
    floor : float
        Minimum rate after reduction.
    """

    model_config = _MODEL_CONFIG

    enabled: bool = Field(default=True, description="Apply rate reduction")
    percent: float = Field(
        default=DEFAULT_RATE_REDUCTION_PERCENT,
        description="Percentage points removed per period",
    )
    every_years: int = Field(
        default=DEFAULT_RATE_REDUCTION_YEARS,
        description="Years per reduction period",
    )
    floor: float = Field(
        default=DEFAULT_RATE_REDUCTION_FLOOR,
        description="Lowest reachable rate",
    )

    @field_validator("enabled", mode="before")
    @classmethod
    def coerce_enabled(cls, v):
        if isinstance(v, str):
            return v.strip().lower() in {"1", "true", "yes", "on"}
        return bool(v) if v is not None else True

    @field_validator("percent", "floor", mode="before")
    @classmethod
    def coerce_non_negative(cls, v, info):
        return max(0.0, safe_float(v, _field_default(cls, info.field_name)))

    @field_validator("every_years", mode="before")
    @classmethod
    def coerce_period(cls, v):
        return max(0, safe_int(v, DEFAULT_RATE_REDUCTION_YEARS))

    @property
    def active(self) -> bool:
        return self.enabled and self.every_years > 0 and self.percent > 0

    def reduced_rate(self, rate: float, year_index: int) -> float:
        """Rate in effect during *year_index* after periodic reductions."""
        if not self.active or year_index <= 0:
            return rate
        periods = year_index // self.every_years
        return max(self.floor, rate - periods * self.percent)


# ---------------------------------------------------------------------------
# Planning Parameters
# ---------------------------------------------------------------------------

class PlanningParameters(BaseModel):
    """
    Assumptions for one projection call.

    Attributes
    ----------
    current_age, retirement_age, life_expectancy : int
        Ages in whole years. ``retirement_age <= current_age`` or
        ``life_expectancy <= retirement_age`` are accepted and produce
        degenerate (zero-length) horizons.
    inflation_rate : float
        Annual inflation in percent.
    ppf_return, epf_return, mf_return, nps_return : float
        Expected annual return per instrument in percent.
    corpus_return_rate : float
        Nominal return on the corpus after retirement.
    withdrawal_rate : float
        Annual withdrawal percentage used by the SUSTAINABLE strategy.
    sip_step_up_percent : float
        Annual increase applied to the mutual-fund SIP.
    step_up_effective_from_year : int
        First year offset at which step-up applies.
    income_strategy : IncomeStrategy
        Strategy used for the headline gap and optimizer target.
    rate_reduction : RateReduction
        Fixed-income rate decay schedule.
    lumpsum_yearly : float
        Extra amount invested in mutual funds every year.
    as_of : datetime.date
        Valuation date; the only clock input of the engine.

    Examples
    --------
    >>> PlanningParameters(current_age=62, retirement_age=60).years_to_retirement
    0
    """

    model_config = _MODEL_CONFIG

    current_age: int = Field(default=DEFAULT_CURRENT_AGE, description="Current age")
    retirement_age: int = Field(default=DEFAULT_RETIREMENT_AGE, description="Retirement age")
    life_expectancy: int = Field(default=DEFAULT_LIFE_EXPECTANCY, description="Life expectancy")
    inflation_rate: float = Field(default=DEFAULT_INFLATION_RATE, description="Inflation %")
    ppf_return: float = Field(default=DEFAULT_PPF_RETURN, description="PPF return %")
    epf_return: float = Field(default=DEFAULT_EPF_RETURN, description="EPF return %")
    mf_return: float = Field(default=DEFAULT_MF_RETURN, description="Mutual fund return %")
    nps_return: float = Field(default=DEFAULT_NPS_RETURN, description="NPS return %")
    corpus_return_rate: float = Field(
        default=DEFAULT_CORPUS_RETURN_RATE,
        description="Post-retirement corpus return %",
    )
    withdrawal_rate: float = Field(
        default=DEFAULT_WITHDRAWAL_RATE,
        description="Sustainable withdrawal %",
    )
    sip_step_up_percent: float = Field(
        default=DEFAULT_SIP_STEP_UP,
        description="Annual SIP step-up %",
    )
    step_up_effective_from_year: int = Field(
        default=DEFAULT_STEP_UP_EFFECTIVE_FROM,
        description="Year offset from which step-up applies",
    )
    income_strategy: IncomeStrategy = Field(
        default=IncomeStrategy.SUSTAINABLE,
        description="Selected withdrawal strategy",
    )
    rate_reduction: RateReduction = Field(
        default_factory=RateReduction,
        description="Fixed-income rate reduction schedule",
    )
    lumpsum_yearly: float = Field(default=0.0, description="Yearly lump sum into MF")
    as_of: datetime.date = Field(
        default_factory=datetime.date.today,
        description="Valuation date",
    )

    @field_validator("current_age", "retirement_age", "life_expectancy", mode="before")
    @classmethod
    def coerce_age(cls, v, info):
        age = max(0, safe_int(v, _field_default(cls, info.field_name)))
        if age > MAX_AGE:
            logger.debug("Clamping %s=%s to %s", info.field_name, age, MAX_AGE)
            return MAX_AGE
        return age

    @field_validator("step_up_effective_from_year", mode="before")
    @classmethod
    def coerce_offset(cls, v):
        return max(0, safe_int(v, DEFAULT_STEP_UP_EFFECTIVE_FROM))

    @field_validator(
        "inflation_rate",
        "ppf_return",
        "epf_return",
        "mf_return",
        "nps_return",
        "corpus_return_rate",
        "withdrawal_rate",
        "sip_step_up_percent",
        "lumpsum_yearly",
        mode="before",
    )
    @classmethod
    def coerce_rate(cls, v, info):
        value = safe_float(v, _field_default(cls, info.field_name))
        if value < 0:
            logger.debug("Clamping negative %s=%s to 0", info.field_name, value)
            return 0.0
        if value > MAX_RATE_PERCENT and info.field_name != "lumpsum_yearly":
            logger.debug("Clamping %s=%s to %s", info.field_name, value, MAX_RATE_PERCENT)
            return MAX_RATE_PERCENT
        return value

    @field_validator("income_strategy", mode="before")
    @classmethod
    def coerce_strategy(cls, v):
        return IncomeStrategy.coerce(v)

    @field_validator("rate_reduction", mode="before")
    @classmethod
    def coerce_rate_reduction(cls, v):
        if v is None or isinstance(v, (RateReduction, dict)):
            return v if v is not None else RateReduction()
        return RateReduction()

    @field_validator("as_of", mode="before")
    @classmethod
    def coerce_as_of(cls, v):
        return safe_date(v) or datetime.date.today()

    # -------------------- Derived horizon --------------------
    @property
    def years_to_retirement(self) -> int:
        return max(0, self.retirement_age - self.current_age)

    @property
    def retirement_years(self) -> int:
        return max(0, self.life_expectancy - self.retirement_age)

    @property
    def current_year(self) -> int:
        return self.as_of.year

    @property
    def retirement_year(self) -> int:
        return self.current_year + self.years_to_retirement

    @property
    def is_degenerate(self) -> bool:
        """True when there is no accumulation phase to project."""
        return self.years_to_retirement == 0

    @classmethod
    def from_settings(cls, settings: "AppSettings", **overrides: Any) -> "PlanningParameters":
        """Build parameters whose unspecified assumptions come from *settings*."""
        defaults = {
            "inflation_rate": settings.inflation_rate,
            "ppf_return": settings.ppf_return,
            "epf_return": settings.epf_return,
            "mf_return": settings.mf_return,
            "nps_return": settings.nps_return,
            "corpus_return_rate": settings.corpus_return_rate,
            "withdrawal_rate": settings.withdrawal_rate,
            "sip_step_up_percent": settings.sip_step_up_percent,
        }
        defaults.update(overrides)
        return cls.model_validate(defaults)


# ---------------------------------------------------------------------------
# Application Settings (Environment Variables)
# ---------------------------------------------------------------------------

class AppSettings(BaseSettings):
    """
    Global application settings loaded from environment variables.

    Supports .env files for local development. Environment variables are
    prefixed with RETIREPLAN_ (e.g., RETIREPLAN_MF_RETURN=11.5).

    Attributes
    ----------
    inflation_rate, ppf_return, epf_return, mf_return, nps_return : float
        Default assumptions (percent) used when a request omits them.
    corpus_return_rate, withdrawal_rate, sip_step_up_percent : float
        Default strategy assumptions.
    log_level : str
        Logging level: "DEBUG", "INFO", "WARNING", "ERROR".
    settings_path : Path
        JSON file backing the settings repository.

    Examples
    --------
    >>> settings = AppSettings()
    >>> settings.inflation_rate
    6.0
    """

    model_config = SettingsConfigDict(
        env_prefix="RETIREPLAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    inflation_rate: float = Field(default=DEFAULT_INFLATION_RATE, ge=0, le=30)
    ppf_return: float = Field(default=DEFAULT_PPF_RETURN, ge=0, le=30)
    epf_return: float = Field(default=DEFAULT_EPF_RETURN, ge=0, le=30)
    mf_return: float = Field(default=DEFAULT_MF_RETURN, ge=0, le=50)
    nps_return: float = Field(default=DEFAULT_NPS_RETURN, ge=0, le=50)
    corpus_return_rate: float = Field(default=DEFAULT_CORPUS_RETURN_RATE, ge=0, le=50)
    withdrawal_rate: float = Field(default=DEFAULT_WITHDRAWAL_RATE, gt=0, le=50)
    sip_step_up_percent: float = Field(default=DEFAULT_SIP_STEP_UP, ge=0, le=100)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging level",
    )
    settings_path: Path = Field(
        default=Path.home() / ".config" / "retireplan" / "settings.json",
        description="Settings repository file",
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    def configure_logging(self, level: Optional[str] = None) -> None:
        """Configure the package logger from ``log_level`` (or *level*)."""
        chosen = "DEBUG" if self.debug else (level or self.log_level)
        logging.basicConfig(
            level=getattr(logging, chosen),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        logging.getLogger("retireplan").setLevel(getattr(logging, chosen))
