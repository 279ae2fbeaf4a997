from onboarding_os.services.flows.flow_service import (
    build_flow_response,
    build_step_rows,
    create_flow,
    delete_flow,
    get_flow,
    reorder_steps,
    transition_flow,
    update_flow,
)

__all__ = [
    "build_flow_response",
    "build_step_rows",
    "create_flow",
    "delete_flow",
    "get_flow",
    "reorder_steps",
    "transition_flow",
    "update_flow",
]
