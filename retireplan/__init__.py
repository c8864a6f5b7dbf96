"""
RetirePlan - Retirement Corpus Projection & Strategy Engine

Projects year-by-year corpus growth from a household's investments, loans,
goals, insurance and expenses, computes the corpus needed at retirement
under several withdrawal strategies, and evaluates ways to close the gap.

Modules
-------
- records      : Typed input records (investments, loans, goals, ...)
- config       : Planning parameters and application settings
- aggregator   : Records -> instrument buckets and cashflow events
- projection   : Year-by-year accumulation matrix
- corpus       : Required corpus per strategy and gap analysis
- optimization : SIP step-up stop-year optimizer
- income       : Post-retirement income projection
- scenario     : What-if scenario engine
- engine       : plan_retirement, the request/response boundary
"""

__version__ = "0.1.0"

from .config import IncomeStrategy, PlanningParameters
from .engine import PlanRequest, RetirementPlan, plan_retirement
from . import utils
