"""
state.py — Lifecycle state machines for requests, counter-offers and orders

Transitions are checked at the service boundary, so a terminal record
cannot be mutated no matter which endpoint is called.

Business Rules:
- QuotationRequest: pending → sent → responded; pending → responded is allowed
  (a supplier may answer through a link delivered before the send status landed);
  sent → sent is allowed (resend); responded is terminal
- CounterOffer: pending → accepted | partially_accepted; both terminal
- PurchaseOrder: pending → sending → sent; sent → sending allowed (resend);
  a failed send returns to the status held before it (sending → pending or
  sending → sent)

Called by: dispatch_service, response_service, counter_offer_service, order_service
Depends on: nothing
"""


class StateTransitionError(Exception):
    """An operation was attempted from a state that does not allow it."""


REQUEST_TRANSITIONS = {
    "pending": {"sent", "responded"},
    "sent": {"sent", "responded"},
    "responded": set(),
}

COUNTER_OFFER_TRANSITIONS = {
    "pending": {"accepted", "partially_accepted"},
    "accepted": set(),
    "partially_accepted": set(),
}

ORDER_TRANSITIONS = {
    "pending": {"sending"},
    "sending": {"sent", "pending"},
    "sent": {"sending"},
}

_MACHINES = {
    "request": REQUEST_TRANSITIONS,
    "counter_offer": COUNTER_OFFER_TRANSITIONS,
    "purchase_order": ORDER_TRANSITIONS,
}


def can_transition(machine: str, current: str, target: str) -> bool:
    return target in _MACHINES[machine].get(current or "pending", set())


def is_terminal(machine: str, status: str) -> bool:
    return not _MACHINES[machine].get(status, set())


def transition(record, machine: str, target: str) -> None:
    """Move `record.status` to `target` or raise StateTransitionError."""
    current = record.status or "pending"
    if not can_transition(machine, current, target):
        label = machine.replace("_", " ")
        raise StateTransitionError(
            f"Cannot move {label} #{record.id} from '{current}' to '{target}'"
        )
    record.status = target
