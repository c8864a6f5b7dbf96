"""
Settings repository for RetirePlan.

Purpose
-------
Persists the two pieces of user state the engine consumes but does not
own: default planning assumptions and the saved strategy selection (the
chosen income strategy plus which what-if interventions the user has
adopted). The engine never talks to a repository; callers read from it,
build a PlanRequest, and optionally write the outcome back.

Key components
--------------
- StrategySelection: a user's saved strategy choice
- SettingsRepository: abstract collaborator
- InMemorySettingsRepository: dict-backed, for tests and embedding
- JsonFileSettingsRepository: single JSON document on disk

Example
-------
>>> from retireplan.repository import JsonFileSettingsRepository, StrategySelection
>>> repo = JsonFileSettingsRepository(Path("~/.config/retireplan/settings.json").expanduser())
>>> repo.save_selection(StrategySelection(user_id="me", selected_income_strategy="SAFE_4_PERCENT"))
>>> repo.load_selection("me").selected_income_strategy
<IncomeStrategy.SAFE_4_PERCENT: 'SAFE_4_PERCENT'>
"""

from __future__ import annotations

import datetime
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .config import IncomeStrategy, PlanningParameters
from .constants import DEFAULT_SIP_INCREASE_PERCENT, SCHEMA_VERSION
from .exceptions import ConfigurationError, SerializationError

if TYPE_CHECKING:
    from .engine import RetirementPlan

__all__ = [
    "StrategySelection",
    "SettingsRepository",
    "InMemorySettingsRepository",
    "JsonFileSettingsRepository",
    "apply_selection",
    "selection_from_plan",
]

logger = logging.getLogger(__name__)

DEFAULT_USER = "default"


# ---------------------------------------------------------------------------
# Strategy selection
# ---------------------------------------------------------------------------

class StrategySelection(BaseModel):
    """
    A user's saved retirement strategy.

    Attributes
    ----------
    selected_income_strategy : IncomeStrategy
        Withdrawal strategy used for the required corpus.
    sell_illiquid_assets, reinvest_maturities, redirect_loan_emis, increase_sip : bool
        What-if interventions the user has adopted.
    sip_increase_percent : float
        Size of the SIP increase intervention.
    projected_corpus_with_strategy, projected_gap_with_strategy : float, optional
        Snapshot of the plan when the selection was saved.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    user_id: str = Field(default=DEFAULT_USER, min_length=1)
    selected_income_strategy: IncomeStrategy = IncomeStrategy.SUSTAINABLE
    sell_illiquid_assets: bool = False
    sell_illiquid_assets_year: Optional[int] = None
    reinvest_maturities: bool = False
    redirect_loan_emis: bool = False
    increase_sip: bool = False
    sip_increase_percent: float = Field(default=DEFAULT_SIP_INCREASE_PERCENT, ge=0)
    strategy_notes: str = ""
    projected_corpus_with_strategy: Optional[float] = None
    projected_gap_with_strategy: Optional[float] = None
    is_on_track_with_strategy: Optional[bool] = None
    updated_at: Optional[datetime.datetime] = None

    @field_validator("selected_income_strategy", mode="before")
    @classmethod
    def check_strategy(cls, v):
        if isinstance(v, IncomeStrategy):
            return v
        name = str(v).strip().upper()
        if name not in IncomeStrategy.__members__:
            raise ValueError(
                f"Unknown income strategy '{v}'. "
                f"Use one of: {', '.join(IncomeStrategy.__members__)}."
            )
        return IncomeStrategy[name]

    @property
    def adopted_scenarios(self) -> tuple:
        """Ids of the what-if scenarios this selection adopts."""
        flags = (
            ("sell_illiquid", self.sell_illiquid_assets),
            ("reinvest_maturities", self.reinvest_maturities),
            ("redirect_emi", self.redirect_loan_emis),
            ("increase_sip", self.increase_sip),
        )
        return tuple(name for name, on in flags if on)


def apply_selection(params: PlanningParameters, selection: Optional[StrategySelection]) -> PlanningParameters:
    """Parameters with the selection's income strategy applied."""
    if selection is None:
        return params
    return params.model_copy(update={"income_strategy": selection.selected_income_strategy})


def selection_from_plan(
    plan: RetirementPlan,
    user_id: str = DEFAULT_USER,
    **choices: Any,
) -> StrategySelection:
    """Snapshot *plan* into a selection; *choices* set the adopted interventions."""
    gap = plan.gap_analysis
    return StrategySelection(
        user_id=user_id,
        selected_income_strategy=plan.params.income_strategy,
        projected_corpus_with_strategy=gap.projected_corpus,
        projected_gap_with_strategy=gap.corpus_gap,
        is_on_track_with_strategy=gap.is_on_track,
        updated_at=datetime.datetime.combine(plan.params.as_of, datetime.time()),
        **choices,
    )


def _selection(data: Dict[str, Any]) -> StrategySelection:
    try:
        return StrategySelection.model_validate(data)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid strategy selection: {e}") from e


# ---------------------------------------------------------------------------
# Repository interface
# ---------------------------------------------------------------------------

class SettingsRepository(ABC):
    """Abstract store for default assumptions and strategy selections."""

    @abstractmethod
    def _get_defaults(self, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def _put_defaults(self, user_id: str, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def _get_selection(self, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def _put_selection(self, user_id: str, data: Optional[Dict[str, Any]]) -> None:
        ...

    # -------------------- Defaults --------------------
    def load_defaults(self, user_id: str = DEFAULT_USER) -> PlanningParameters:
        """Saved default parameters, or the built-in defaults."""
        data = self._get_defaults(user_id)
        return PlanningParameters.model_validate(data or {})

    def save_defaults(self, params: PlanningParameters, user_id: str = DEFAULT_USER) -> None:
        data = params.model_dump(mode="json", by_alias=True, exclude={"as_of"})
        self._put_defaults(user_id, data)
        logger.debug("Saved default parameters for %s", user_id)

    # -------------------- Selections --------------------
    def load_selection(self, user_id: str = DEFAULT_USER) -> Optional[StrategySelection]:
        data = self._get_selection(user_id)
        return _selection(data) if data is not None else None

    def save_selection(self, selection: StrategySelection) -> None:
        self._put_selection(selection.user_id, selection.model_dump(mode="json", by_alias=True))
        logger.info(
            "Saved strategy %s for %s",
            selection.selected_income_strategy.value, selection.user_id,
        )

    def delete_selection(self, user_id: str = DEFAULT_USER) -> bool:
        """Remove a saved selection; returns whether one existed."""
        existed = self._get_selection(user_id) is not None
        if existed:
            self._put_selection(user_id, None)
        return existed


class InMemorySettingsRepository(SettingsRepository):
    """Dict-backed repository."""

    def __init__(self):
        self._defaults: Dict[str, Dict[str, Any]] = {}
        self._selections: Dict[str, Dict[str, Any]] = {}

    def _get_defaults(self, user_id):
        return self._defaults.get(user_id)

    def _put_defaults(self, user_id, data):
        self._defaults[user_id] = dict(data)

    def _get_selection(self, user_id):
        return self._selections.get(user_id)

    def _put_selection(self, user_id, data):
        if data is None:
            self._selections.pop(user_id, None)
        else:
            self._selections[user_id] = dict(data)


class JsonFileSettingsRepository(SettingsRepository):
    """
    Repository stored as one JSON document.

    Layout::

        {"schema_version": "0.1.0",
         "defaults":   {"<user>": {...PlanningParameters...}},
         "selections": {"<user>": {...StrategySelection...}}}

    The file is read on every access and rewritten on every change, so
    several processes see each other's writes.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"schema_version": SCHEMA_VERSION, "defaults": {}, "selections": {}}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise SerializationError(f"Invalid JSON in {self.path}: {e}") from e
        except OSError as e:
            raise SerializationError(f"Cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise SerializationError(f"Settings file {self.path} must hold a JSON object")
        data.setdefault("defaults", {})
        data.setdefault("selections", {})
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        data["schema_version"] = SCHEMA_VERSION
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise ConfigurationError(f"Settings path {self.path} is not writable: {e}") from e

    def _get_defaults(self, user_id):
        return self._read()["defaults"].get(user_id)

    def _put_defaults(self, user_id, data):
        doc = self._read()
        doc["defaults"][user_id] = data
        self._write(doc)

    def _get_selection(self, user_id):
        return self._read()["selections"].get(user_id)

    def _put_selection(self, user_id, data):
        doc = self._read()
        if data is None:
            doc["selections"].pop(user_id, None)
        else:
            doc["selections"][user_id] = data
        self._write(doc)
