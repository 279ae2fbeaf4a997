"""
State machines for the onboarding lifecycle.

This package provides state machines for flow definitions, client
onboardings and the per-step progress records they own.
"""

from .base import FlowMachine
from .flow_definition_flow import FlowDefinitionMachine
from .onboarding_flow import OnboardingFlowMachine
from .registry import FLOW_REGISTRY, get_flow_machine
from .step_progress_flow import StepProgressMachine

__all__ = [
    "FlowMachine",
    "FlowDefinitionMachine",
    "OnboardingFlowMachine",
    "StepProgressMachine",
    "get_flow_machine",
    "FLOW_REGISTRY",
]
