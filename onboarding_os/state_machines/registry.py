"""
State machine registry for dynamic instantiation.

Provides factory function to create state machine instances by flow type.
"""

from typing import Any, Dict, Optional, Type

from .base import FlowMachine
from .flow_definition_flow import FlowDefinitionMachine
from .onboarding_flow import OnboardingFlowMachine
from .step_progress_flow import StepProgressMachine

FLOW_REGISTRY: Dict[str, Type[FlowMachine]] = {
    "flow_definition": FlowDefinitionMachine,
    "onboarding": OnboardingFlowMachine,
    "step_progress": StepProgressMachine,
}


def get_flow_machine(
    flow_type: str,
    record: Optional[Dict[str, Any]] = None,
    actor_id: Optional[str] = None,
    **kwargs
) -> FlowMachine:
    """
    Factory to instantiate state machine by flow type.

    Args:
        flow_type: Type of flow (flow_definition, onboarding, step_progress)
        record: DB record as dict
        actor_id: Caller identity for logging
        **kwargs: Additional context

    Returns:
        Instantiated state machine

    Raises:
        ValueError: If flow_type is not registered
    """
    if flow_type not in FLOW_REGISTRY:
        raise ValueError(
            f"Unknown flow type: {flow_type}. "
            f"Available: {list(FLOW_REGISTRY.keys())}"
        )

    return FLOW_REGISTRY[flow_type](record=record, actor_id=actor_id, **kwargs)
