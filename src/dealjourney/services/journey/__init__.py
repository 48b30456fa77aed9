"""Journey state machine exports."""

from .state_machine import JourneyState, JourneyStateMachine

__all__ = ["JourneyState", "JourneyStateMachine"]
