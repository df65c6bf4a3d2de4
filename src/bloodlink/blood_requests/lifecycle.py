"""Blood request lifecycle state machine.

States:
  pending -> matched -> in_progress -> completed
  (any non-completed state) -> cancelled
  pending -> expired (lazily, once expires_at has passed)

Each operation checks its preconditions before touching the request, so a
rejected call leaves the object unchanged. Nothing here talks to the database;
the service layer flushes whatever these functions append or mutate.
"""

from __future__ import annotations

from datetime import datetime, timezone

from bloodlink.db.models import BloodRequest, RequestDonation, RequestMatch

VALID_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["matched", "expired", "cancelled"],
    "matched": ["in_progress", "completed", "cancelled"],
    "in_progress": ["completed", "cancelled"],
    "expired": ["cancelled"],
    "completed": [],
    "cancelled": [],
}

REQUEST_STATUSES = tuple(VALID_TRANSITIONS)

# Statuses in which donors may still respond.
OPEN_STATUSES = frozenset({"pending", "matched", "in_progress"})

RESPONSE_ACTIONS = ("accept", "decline")

RESPONSE_PAST_TENSE = {"accept": "accepted", "decline": "declined"}


def validate_transition(current_status: str, target_status: str) -> None:
    """Validate a state transition. Raises ValueError if invalid."""
    valid = VALID_TRANSITIONS.get(current_status, [])
    if target_status not in valid:
        raise ValueError(
            f"Invalid transition: {current_status} -> {target_status}. "
            f"Valid transitions: {valid}"
        )


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def is_past_expiry(request: BloodRequest, now: datetime | None = None) -> bool:
    return _now(now) > request.expires_at


def refresh_expiry(request: BloodRequest, now: datetime | None = None) -> bool:
    """Flip a stale pending request to expired. Returns True if it changed."""
    if request.status != "pending" or not is_past_expiry(request, now):
        return False
    validate_transition(request.status, "expired")
    request.status = "expired"
    return True


def find_match(request: BloodRequest, donor_id: int) -> RequestMatch | None:
    for match in request.matches:
        if match.donor_id == donor_id:
            return match
    return None


def apply_response(
    request: BloodRequest,
    donor_id: int,
    action: str,
    now: datetime | None = None,
) -> RequestMatch:
    """Record a donor's accept/decline response.

    The first accept moves a pending request to matched. A decline is recorded
    but leaves the status alone. A donor gets exactly one response per request.

    Raises:
        ValueError: unknown action, closed request, or donor already responded.
    """
    if action not in RESPONSE_ACTIONS:
        raise ValueError(f"Action must be one of {list(RESPONSE_ACTIONS)}")

    now = _now(now)
    refresh_expiry(request, now)
    if request.status not in OPEN_STATUSES:
        raise ValueError(f"This request is {request.status} and no longer accepts responses")

    if find_match(request, donor_id) is not None:
        raise ValueError("You have already responded to this request")

    accepted = action == "accept"
    if accepted and request.status == "pending":
        validate_transition(request.status, "matched")
        request.status = "matched"

    match = RequestMatch(
        donor_id=donor_id,
        status="accepted" if accepted else "declined",
        matched_at=now,
        responded_at=now,
    )
    request.matches.append(match)
    return match


def record_completion(
    request: BloodRequest,
    donor_id: int,
    units: int,
    now: datetime | None = None,
) -> RequestDonation:
    """Record units donated by an accepted donor.

    The request becomes completed once the received total reaches the units
    required, otherwise in_progress.
    """
    if units < 1:
        raise ValueError("Units donated must be at least 1")

    match = find_match(request, donor_id)
    if match is None or match.status != "accepted":
        raise ValueError("Donor was not matched or did not accept")

    if request.status not in ("matched", "in_progress"):
        raise ValueError(f"Cannot record a donation on a {request.status} request")

    new_total = request.total_units_received + units
    target = "completed" if new_total >= request.units_required else "in_progress"
    if target != request.status:
        validate_transition(request.status, target)

    now = _now(now)
    donation = RequestDonation(donor_id=donor_id, units_donated=units, donated_at=now)
    request.donations.append(donation)
    request.total_units_received = new_total
    request.status = target
    match.status = "completed"
    return donation


def set_units_required(request: BloodRequest, units: int) -> None:
    """Change the units a request needs, re-applying the completion rule.

    Lowering the target to what has already been received completes a request
    that is matched or in_progress.
    """
    if units < request.total_units_received:
        raise ValueError(
            f"Units required cannot be less than units already received ({request.total_units_received})"
        )
    completes = (
        request.total_units_received > 0
        and request.total_units_received >= units
        and request.status in ("matched", "in_progress")
    )
    if completes:
        validate_transition(request.status, "completed")
    request.units_required = units
    if completes:
        request.status = "completed"


def cancel(request: BloodRequest) -> list[int]:
    """Cancel a request. Returns donor ids whose accepted match should be told."""
    if request.status == "completed":
        raise ValueError("Cannot cancel a completed request")
    if request.status == "cancelled":
        raise ValueError("Request is already cancelled")
    validate_transition(request.status, "cancelled")
    request.status = "cancelled"
    return [m.donor_id for m in request.matches if m.status == "accepted"]
