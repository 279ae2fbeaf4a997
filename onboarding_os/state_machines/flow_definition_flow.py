"""
Flow Definition State Machine.

Lifecycle of an onboarding_flows row: draft -> published, either of those ->
archived, archived -> draft.
"""

from statemachine import State

from .base import FlowMachine


class FlowDefinitionMachine(FlowMachine):
    """State machine for a provider's flow template."""

    draft = State(initial=True, value="draft")
    published = State(value="published")
    archived = State(value="archived")

    publish = draft.to(published)
    archive = draft.to(archived) | published.to(archived)
    restore = archived.to(draft)

    @property
    def is_assignable(self) -> bool:
        return self.status == self.published.value
