"""
Slab Resolver — buckets a requested completion time into a completion slab.

Callers normally pass a slab key straight to the calculator; this helper is
for callers that only know the turnaround in hours.
"""

from __future__ import annotations

from rate_engine.models.enums import CompletionSlab


def resolve_slab(requested_hours: float) -> CompletionSlab:
    """
    <= 24h -> within_24h, <= 48h -> within_48h, <= 72h -> within_72h,
    anything longer -> within_1w (the slowest slab).
    """
    hours = float(requested_hours)
    if hours <= 0:
        raise ValueError(f"Completion time must be positive, got {requested_hours}")

    for slab in sorted(CompletionSlab, key=lambda s: s.urgency_rank):
        if hours <= slab.max_hours:
            return slab
    return CompletionSlab.WITHIN_1W
