"""hydrator.hydration

Component-facing layer: the hydration contract and the orchestrator that drives it.
"""

from hydrator.hydration.component import Hydratable, HydratableComponent
from hydrator.hydration.history import UndoHistory
from hydrator.hydration.orchestrator import HydrationOrchestrator, HydrationState
from hydrator.hydration.snapshots import SnapshotManager

__all__ = [
    "Hydratable",
    "HydratableComponent",
    "HydrationOrchestrator",
    "HydrationState",
    "SnapshotManager",
    "UndoHistory",
]
