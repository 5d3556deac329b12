# oubli_mem/__init__.py

from .decay.function import decay, settle
from .decay.render import RenderDecay
from .decay.stability import compute_stability, weighted_intensity
from .memory import Memory
from .models import DecayResult, DegradationState, MemoryEntity
from .scheduler import DegradationScheduler
from .store import MemoryStore, StoreEvent, normalize

__all__ = [
    "DecayResult",
    "DegradationScheduler",
    "DegradationState",
    "Memory",
    "MemoryEntity",
    "MemoryStore",
    "RenderDecay",
    "StoreEvent",
    "compute_stability",
    "decay",
    "normalize",
    "settle",
    "weighted_intensity",
]
