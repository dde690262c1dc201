"""
Canonical workflow types (``stock_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document state machines.  Every document family
(purchase, invoice, quote, credit note, inventory session) declares one
``Workflow`` in its ``workflows.py``; services call ``Workflow.require``
before any write, so the transition table is checked in exactly one place.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_states`` are members of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from stock_kernel.exceptions import InvalidTransitionError


class StockEffect(str, Enum):
    """Ledger effect a transition has on every stocked line of the document."""

    NONE = "none"
    INBOUND = "inbound"
    OUTBOUND = "outbound"
    RETURN = "return"
    REVERSE_INBOUND = "reverse_inbound"
    INVENTORY_CORRECTION = "inventory_correction"


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the owning service does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    Contract: frozen.  ``stock_effect`` names the ledger movement the
    transition applies to each stocked line.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    stock_effect: StockEffect = StockEffect.NONE


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    ``initial_states`` are the states a document may be created in; they
    are also the only states from which it may be deleted or edited.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()
    initial_states: tuple[str, ...] = ()
    deletable_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"{self.name}: initial state {self.initial_state} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"{self.name}: transition {t.from_state}->{t.to_state} "
                    "references an unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.name}: terminal state {t.from_state} has a transition"
                )
        for state in self.initial_states + self.deletable_states:
            if state not in self.states:
                raise ValueError(f"{self.name}: unknown state {state}")

    @property
    def creation_states(self) -> tuple[str, ...]:
        return self.initial_states or (self.initial_state,)

    def find(self, from_state: str, to_state: str) -> Transition | None:
        from_state, to_state = _value(from_state), _value(to_state)
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None

    def allows(self, from_state: str, to_state: str) -> bool:
        return self.find(from_state, to_state) is not None

    def require(self, from_state: str, to_state: str) -> Transition:
        """Return the transition or raise ``InvalidTransitionError``."""
        transition = self.find(from_state, to_state)
        if transition is None:
            raise InvalidTransitionError(
                self.name, _value(from_state), _value(to_state)
            )
        return transition

    def targets(self, from_state: str) -> frozenset[str]:
        return frozenset(
            t.to_state for t in self.transitions if t.from_state == _value(from_state)
        )


def _value(state) -> str:
    return state.value if isinstance(state, Enum) else str(state)
