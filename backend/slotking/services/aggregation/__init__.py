"""
Derived views over a vote ledger: per-slot counts, distinct voters, the most voted slot,
availability ratios and rankings. All pure functions of (ledger, slots).
"""
from slotking.services.aggregation.aggregate import (
    SlotSummary,
    availability_ratio,
    ledger_from_availabilities,
    merge_ledgers,
    most_voted_slot,
    rank_slots,
    summarize_slots,
    vote_count,
)

__all__ = [
    "SlotSummary",
    "availability_ratio",
    "ledger_from_availabilities",
    "merge_ledgers",
    "most_voted_slot",
    "rank_slots",
    "summarize_slots",
    "vote_count",
]
