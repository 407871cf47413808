"""
Continuum — recurring agent directives with an auditable journal.

Public API:
    from continuum import Continuum, ContinuumConfig, Directive
"""

__version__ = "0.1.0"

# Core
from continuum.core.config import ContinuumConfig
from continuum.core.errors import ContinuumError

# Scheduling
from continuum.scheduler.directive import Directive, DirectiveMode, SIMULATE_TARGET
from continuum.scheduler.evaluator import DueSet, evaluate
from continuum.scheduler.coordinator import Claim, ClaimOutcome, TriggerCoordinator
from continuum.scheduler.store import ScheduleStore

# Delivery & journal
from continuum.delivery.chain import DeliveryChain
from continuum.journal.entry import JournalEntry, JournalStatus
from continuum.journal.ledger import JournalLedger

# Host facade
from continuum.runtime import Continuum

__all__ = [
    "ContinuumConfig",
    "ContinuumError",
    "Directive",
    "DirectiveMode",
    "SIMULATE_TARGET",
    "DueSet",
    "evaluate",
    "Claim",
    "ClaimOutcome",
    "TriggerCoordinator",
    "ScheduleStore",
    "DeliveryChain",
    "JournalEntry",
    "JournalStatus",
    "JournalLedger",
    "Continuum",
]
