"""
Serialization module for RetirePlan requests and plans.

Purpose
-------
Provides JSON loading of planning requests and JSON export of computed
plans, so requests can be versioned, shared and replayed from the CLI.

Supports serialization of:
- PlanRequest (parameters + record collections), both directions
- RetirementPlan (export only; plans are recomputed, never reloaded)

Design Principles
-----------------
- Stable keys: every exported key is camelCase and does not depend on
  Python attribute order
- Structural checks only: a request that is not a mapping, or whose record
  collections are not lists, raises ValidationError. Bad field values are
  left to the lenient record and parameter constructors.
- Versioned: files carry ``schema_version``; a different major version is
  rejected, a different minor version only warns

Example
-------
>>> from pathlib import Path
>>> from retireplan.serialization import load_request, save_plan
>>> from retireplan.engine import plan_retirement
>>> request = load_request(Path("request.json"))
>>> save_plan(plan_retirement(request), Path("plan.json"))
"""

from __future__ import annotations

import dataclasses
import json
import math
import warnings
from datetime import date
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Mapping

import numpy as np
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from .aggregator import InstrumentType
from .constants import SCHEMA_VERSION
from .exceptions import SchemaVersionError, SerializationError, ValidationError

if TYPE_CHECKING:
    from .engine import PlanRequest, RetirementPlan
    from .income import IncomeProjection
    from .scenario import ScenarioResult

__all__ = [
    "RECORD_COLLECTIONS",
    "to_jsonable",
    "check_schema_version",
    "request_from_dict",
    "request_to_dict",
    "load_request",
    "save_request",
    "write_json",
    "plan_to_dict",
    "save_plan",
]

RECORD_COLLECTIONS = ("investments", "loans", "goals", "insurance", "incomes", "expenses")


# ---------------------------------------------------------------------------
# Generic conversion
# ---------------------------------------------------------------------------

def _key(key: Any) -> str:
    if isinstance(key, InstrumentType):
        return key.key
    if isinstance(key, Enum):
        return str(key.value)
    return str(key)


def to_jsonable(value: Any) -> Any:
    """
    Convert engine objects into JSON-ready builtins.

    Dataclass fields and pydantic model fields become camelCase keys; enum
    values, dates (ISO format) and numpy scalars are unwrapped; non-finite
    floats become ``None``.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            to_camel(f.name): to_jsonable(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {_key(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, np.generic):
        return to_jsonable(value.item())
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

def check_schema_version(data: Mapping[str, Any]) -> None:
    """
    Validate ``schema_version`` of a loaded document.

    Raises
    ------
    SchemaVersionError
        If the major version differs from the current one.
    """
    version = str(data.get("schema_version", data.get("schemaVersion", SCHEMA_VERSION)))
    expected_major = SCHEMA_VERSION.split(".")[0]
    if version.split(".")[0] != expected_major:
        raise SchemaVersionError(
            f"Unsupported schema_version '{version}' "
            f"(expected major version {expected_major})."
        )
    if version != SCHEMA_VERSION:
        warnings.warn(
            f"Request schema version {version} differs from current "
            f"version {SCHEMA_VERSION}. May encounter compatibility issues.",
            UserWarning,
        )


def request_from_dict(data: Any) -> PlanRequest:
    """
    Build a PlanRequest from a decoded JSON document.

    Raises
    ------
    ValidationError
        If *data* is not a mapping, a record collection is not a list, or
        the parameters are not a mapping.
    """
    from .engine import PlanRequest

    if not isinstance(data, Mapping):
        raise ValidationError(f"Request must be a JSON object, got {type(data).__name__}")
    check_schema_version(data)
    for name in RECORD_COLLECTIONS:
        items = data.get(name)
        if items is not None and not isinstance(items, list):
            raise ValidationError(f"'{name}' must be a list, got {type(items).__name__}")
    params = data.get("parameters", data.get("params"))
    if params is not None and not isinstance(params, Mapping):
        raise ValidationError(f"'parameters' must be an object, got {type(params).__name__}")
    return PlanRequest.from_dict(data)


def request_to_dict(request: PlanRequest) -> Dict[str, Any]:
    """Inverse of ``request_from_dict`` (records written with camelCase keys)."""
    data: Dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "parameters": request.params.model_dump(mode="json", by_alias=True),
    }
    for name in RECORD_COLLECTIONS:
        data[name] = [to_jsonable(r) for r in getattr(request, name)]
    return data


def _read_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise SerializationError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise SerializationError(f"Cannot read {path}: {e}") from e


def write_json(data: Any, path: Path, indent: int = 2) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent, ensure_ascii=False)
    except OSError as e:
        raise SerializationError(f"Cannot write {path}: {e}") from e


def load_request(path: Path) -> PlanRequest:
    """
    Load a planning request from a JSON file.

    Parameters
    ----------
    path : Path
        Input file path

    Returns
    -------
    PlanRequest

    Raises
    ------
    SerializationError
        If the file cannot be read or is not valid JSON.
    ValidationError
        If the document is structurally malformed.
    """
    return request_from_dict(_read_json(Path(path)))


def save_request(request: PlanRequest, path: Path) -> None:
    write_json(request_to_dict(request), Path(path))


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

def _income_to_dict(projection: IncomeProjection) -> Dict[str, Any]:
    data = to_jsonable(projection)
    data["isSustainable"] = projection.is_sustainable
    data["firstYearMonthlyIncome"] = projection.first_year_monthly_income
    for sample, raw in zip(data["samples"], projection.samples):
        sample["totalMonthlyIncome"] = raw.total_monthly_income
    return data


def _scenario_to_dict(result: ScenarioResult) -> Dict[str, Any]:
    data = to_jsonable(result.scenario)
    data.update(
        baselineCorpus=result.baseline_final,
        strategyCorpus=result.strategy_final,
        delta=result.delta,
        projectedCorpus=result.projected_corpus,
        corpusWithStrategy=result.corpus_with_strategy,
        requiredCorpus=result.required_corpus,
        meetsRequired=result.meets_required,
        shortfall=result.shortfall,
        comparison=[
            dict(to_jsonable(row), difference=row.difference) for row in result.comparison
        ],
    )
    return data


def plan_to_dict(plan: RetirementPlan) -> Dict[str, Any]:
    """
    JSON-ready view of a plan.

    Top-level keys are ``summary``, ``gapAnalysis``, ``matrix``,
    ``maturingBeforeRetirement``, ``recommendations`` and ``scenarios``.
    The step-up optimization and the per-strategy income projections are
    nested in ``summary`` as ``sipStepUpOptimization`` and
    ``retirementIncomeProjection``.
    """
    summary = to_jsonable(plan.summary)
    summary["selectedStrategyName"] = plan.summary.selected_strategy_name
    summary["sipStepUpOptimization"] = to_jsonable(plan.optimization)
    summary["retirementIncomeProjection"] = {
        name: _income_to_dict(proj) for name, proj in plan.income.items()
    }

    gap = to_jsonable(plan.gap_analysis)
    gap["totalFreedMonthly"] = plan.gap_analysis.total_freed_monthly
    gap["totalPotentialCorpus"] = plan.gap_analysis.total_potential_corpus

    maturities = to_jsonable(plan.maturities)
    maturities["totalValue"] = plan.maturities.total

    return {
        "summary": summary,
        "gapAnalysis": gap,
        "matrix": [to_jsonable(row) for row in plan.matrix],
        "maturingBeforeRetirement": maturities,
        "recommendations": [to_jsonable(s) for s in plan.recommendations],
        "scenarios": [_scenario_to_dict(s) for s in plan.scenarios],
    }


def save_plan(plan: RetirementPlan, path: Path, indent: int = 2) -> None:
    """
    Save a computed plan to a JSON file (with ``schema_version``).

    Examples
    --------
    >>> save_plan(plan, Path("out/plan.json"))
    """
    data = {"schema_version": SCHEMA_VERSION}
    data.update(plan_to_dict(plan))
    write_json(data, Path(path), indent=indent)
