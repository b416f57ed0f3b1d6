"""
Specialisation scoping

Which requests, and which of their lines, a provider gets to see.
Governing bodies see only lines in their sports; schools see whole requests
from every other school.
"""

import copy
from typing import Any, Callable


def scope_to_sports(
    request: dict[str, Any],
    sport_ids: list[str],
    sport_of: Callable[[str], str | None],
) -> dict[str, Any] | None:
    """
    Narrow a request to the lines in the given sports

    Returns None when no line matches, otherwise a copy whose items hold
    only the matching lines.
    """
    wanted = set(sport_ids)
    relevant = [item for item in request["items"] if sport_of(item["equipment_id"]) in wanted]
    if not relevant:
        return None
    scoped = copy.deepcopy(request)
    scoped["items"] = copy.deepcopy(relevant)
    return scoped


def scope_for_school(request: dict[str, Any], school_id: str) -> dict[str, Any] | None:
    """Schools see other schools' requests in full, never their own"""
    if request["requester_school_id"] == school_id:
        return None
    return copy.deepcopy(request)
