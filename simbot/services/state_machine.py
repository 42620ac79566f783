from enum import Enum
from typing import Dict, Iterable, Optional, Set


class ConversationState(str, Enum):
    INITIAL = "INITIAL"
    CUSTOMER_REGISTRATION = "CUSTOMER_REGISTRATION"
    INTENT_SELECTION = "INTENT_SELECTION"
    PRODUCT_SELECTED = "PRODUCT_SELECTED"
    IMEI_REQUIRED = "IMEI_REQUIRED"
    IMEI_VALIDATED = "IMEI_VALIDATED"
    ADDRESS_REQUIRED = "ADDRESS_REQUIRED"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    SIM_SHIPPED = "SIM_SHIPPED"
    PORTABILITY_WAIT_SIM = "PORTABILITY_WAIT_SIM"
    PORTABILITY_NIP_REQUIRED = "PORTABILITY_NIP_REQUIRED"
    PORTABILITY_SIM_ACTIVATION = "PORTABILITY_SIM_ACTIVATION"
    PORTABILITY_IN_PROGRESS = "PORTABILITY_IN_PROGRESS"
    PORTABILITY_COMPLETED = "PORTABILITY_COMPLETED"
    COMPLETED = "COMPLETED"
    BLOCKED = "BLOCKED"
    ERROR_STATE = "ERROR_STATE"
    ABANDONED = "ABANDONED"


STATE_ORDINALS: Dict[ConversationState, int] = {
    ConversationState.INITIAL: 0,
    ConversationState.CUSTOMER_REGISTRATION: 5,
    ConversationState.INTENT_SELECTION: 10,
    ConversationState.PRODUCT_SELECTED: 20,
    ConversationState.IMEI_REQUIRED: 30,
    ConversationState.IMEI_VALIDATED: 35,
    ConversationState.ADDRESS_REQUIRED: 40,
    ConversationState.PAYMENT_PENDING: 50,
    ConversationState.PAYMENT_CONFIRMED: 60,
    ConversationState.SIM_SHIPPED: 70,
    ConversationState.PORTABILITY_WAIT_SIM: 80,
    ConversationState.PORTABILITY_NIP_REQUIRED: 85,
    ConversationState.PORTABILITY_SIM_ACTIVATION: 90,
    ConversationState.PORTABILITY_IN_PROGRESS: 95,
    ConversationState.PORTABILITY_COMPLETED: 100,
    ConversationState.COMPLETED: 110,
    ConversationState.BLOCKED: 900,
    ConversationState.ERROR_STATE: 950,
    ConversationState.ABANDONED: 999,
}

# Backward corrections allowed within this ordinal distance.
MAX_BACKWARD_DISTANCE = 20

RESTART_STATES = frozenset({ConversationState.INITIAL, ConversationState.INTENT_SELECTION})


def state_ordinal(state: ConversationState) -> int:
    return STATE_ORDINALS[state]


def parse_state(name: Optional[str]) -> Optional[ConversationState]:
    """Return the enum member for an exact state name, or None."""
    if not name:
        return None
    try:
        return ConversationState[name]
    except KeyError:
        return None


class TransitionPolicy:
    """Decides whether a conversation may move between two states."""

    def is_valid_transition(self, from_state: ConversationState, to_state: ConversationState) -> bool:
        raise NotImplementedError


class OrdinalTransitionPolicy(TransitionPolicy):
    """
    Permissive ordinal-distance rule.

    Recovery from INITIAL/ERROR_STATE and entry into ERROR_STATE/BLOCKED are
    always allowed, terminal states only restart, everything else may move
    forward freely or back by at most MAX_BACKWARD_DISTANCE.
    """

    def __init__(self, max_backward_distance: int = MAX_BACKWARD_DISTANCE):
        self.max_backward_distance = max_backward_distance

    def is_valid_transition(self, from_state: ConversationState, to_state: ConversationState) -> bool:
        if from_state in (ConversationState.ERROR_STATE, ConversationState.INITIAL):
            return True

        if to_state in (ConversationState.ERROR_STATE, ConversationState.BLOCKED):
            return True

        if from_state == to_state:
            return True

        if from_state in (ConversationState.COMPLETED, ConversationState.ABANDONED):
            return to_state in RESTART_STATES

        if from_state == ConversationState.BLOCKED:
            return to_state in RESTART_STATES

        from_ordinal = state_ordinal(from_state)
        to_ordinal = state_ordinal(to_state)

        if to_ordinal > from_ordinal:
            return True

        return to_ordinal >= from_ordinal - self.max_backward_distance


class TableTransitionPolicy(TransitionPolicy):
    """Explicit allowed-next-states table; unknown sources allow nothing."""

    def __init__(self, table: Dict[ConversationState, Iterable[ConversationState]], *, allow_error_entry: bool = True):
        self.table: Dict[ConversationState, Set[ConversationState]] = {
            state: set(targets) for state, targets in table.items()
        }
        self.allow_error_entry = allow_error_entry

    def is_valid_transition(self, from_state: ConversationState, to_state: ConversationState) -> bool:
        if from_state == to_state:
            return True
        if self.allow_error_entry and to_state in (ConversationState.ERROR_STATE, ConversationState.BLOCKED):
            return True
        return to_state in self.table.get(from_state, set())


DEFAULT_POLICY: TransitionPolicy = OrdinalTransitionPolicy()


def can_transition(
    from_state: ConversationState,
    to_state: ConversationState,
    policy: Optional[TransitionPolicy] = None,
) -> bool:
    """Check if transition is valid under the given (or default) policy."""
    return (policy or DEFAULT_POLICY).is_valid_transition(from_state, to_state)
