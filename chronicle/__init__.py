"""Village Chronicle: a ten-year village survival simulation."""

from chronicle.actions import Action
from chronicle.state import WorldState, initial_state
from chronicle.transition import advance_tick, apply_event, transition

__all__ = ["Action", "WorldState", "advance_tick", "apply_event", "initial_state", "transition"]
