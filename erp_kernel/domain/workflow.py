"""
Canonical workflow types (``erp_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document state machines (sales orders, production
orders, transfers, BOMs).  Every status change in the system is validated
against a ``Workflow`` transition table instead of ad hoc status checks at
each call site.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* ``resolve`` accepts only (state, action) pairs present in the table;
  repeating an action whose target is the current state is a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass

from erp_kernel.exceptions import IllegalTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only: the owning service evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``moves_stock=True`` marks transitions that write stock transactions
    or reservations in the same database transaction as the status write.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    moves_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state '{self.initial_state}' "
                f"is not a declared state"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} "
                    f"{t.from_state}->{t.to_state} uses an undeclared state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state '{t.from_state}' "
                    f"has an outgoing transition"
                )

    @property
    def actions(self) -> frozenset[str]:
        return frozenset(t.action for t in self.transitions)

    def transition_for(self, current_state: str, action: str) -> Transition | None:
        """Return the transition for (state, action), or None if not legal."""
        for t in self.transitions:
            if t.from_state == current_state and t.action == action:
                return t
        return None

    def is_repeat(self, current_state: str, action: str) -> bool:
        """True when ``action`` leads to ``current_state`` from some state."""
        return any(
            t.action == action and t.to_state == current_state
            for t in self.transitions
        )

    def resolve(
        self,
        current_state: str,
        action: str,
        entity_id: object = None,
    ) -> Transition | None:
        """
        Validate ``action`` against the transition table.

        Returns:
            The matching Transition, or None when the action was already
            applied (the document sits in the action's target state) and
            the call must be treated as a no-op.

        Raises:
            IllegalTransitionError: (state, action) is not legal.
        """
        transition = self.transition_for(current_state, action)
        if transition is not None:
            return transition
        if self.is_repeat(current_state, action):
            return None
        raise IllegalTransitionError(
            entity_type=self.name,
            entity_id=str(entity_id),
            current_state=current_state,
            action=action,
        )
