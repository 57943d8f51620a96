"""
Leaderboard ranking.
"""

from typing import Any, Dict, List


def assign_ranks(entries: List[Dict[str, Any]], key: str = "value") -> List[Dict[str, Any]]:
    """
    Add a competition rank to entries already sorted best first.

    Equal values share a rank and the next distinct value skips ahead,
    so scores 90, 90, 80 rank 1, 1, 3.
    """
    previous = object()
    rank = 0
    for position, entry in enumerate(entries, start=1):
        if entry[key] != previous:
            rank = position
            previous = entry[key]
        entry["rank"] = rank
    return entries
