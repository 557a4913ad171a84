import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class RuntimeContext:
    """
    Diagnostics collected while running the identifiability pipeline.

    The pipeline only writes into this object; it never reads it back.
    Stage names follow the benchmarking categories: ``ioeq_time``,
    ``wrnsk_time``, ``rank_time``, ``simplify_time`` and ``check_time``.

    Args:
        timings: Wall-clock seconds spent per stage.
        info: Free-form facts about the run (Wronskian ranks, bounds, ...).
    """
    timings: Dict[str, float] = field(default_factory=dict)
    info: Dict[str, Any] = field(default_factory=dict)

    @contextmanager
    def timer(self, stage: str):
        start = time.perf_counter()
        try:
            yield self
        finally:
            self.timings[stage] = time.perf_counter() - start
