"""Building blocks shared by the nwpublisher commands.

Attributes:
    NostrRelayStore: Relay event store over ``nostr_sdk.Client``.
    collect_snapshot: Concurrent per-relay query of the site graph.
    ReconciliationPlan / RelayPlan / PlanSummary: Pure plan data.
    PlanExecutor / ExecutionSummary: Plan application and its results.
    ConfirmationGate: Operator approval before any plan runs.
"""

from .configs import AuthorConfig, ExecutionConfig
from .confirm import (
    DELETE_PHRASE,
    SYNC_PHRASE,
    ConfirmationGate,
    TypedPhraseGate,
)
from .executor import EventOutcome, ExecutionSummary, PlanExecutor, RelayExecution
from .mixins import PlanApplyMixin
from .plan import PlanSummary, ReconciliationPlan, RelayPlan, RelayPlanSummary
from .snapshot import Snapshot, collect_snapshot
from .store import NostrRelayConnection, NostrRelayStore, to_graph_events


__all__ = [
    "DELETE_PHRASE",
    "SYNC_PHRASE",
    "AuthorConfig",
    "ConfirmationGate",
    "EventOutcome",
    "ExecutionConfig",
    "ExecutionSummary",
    "NostrRelayConnection",
    "NostrRelayStore",
    "PlanApplyMixin",
    "PlanExecutor",
    "PlanSummary",
    "ReconciliationPlan",
    "RelayExecution",
    "RelayPlan",
    "RelayPlanSummary",
    "Snapshot",
    "TypedPhraseGate",
    "collect_snapshot",
    "to_graph_events",
]
