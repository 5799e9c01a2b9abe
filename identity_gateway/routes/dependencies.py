"""Request-scoped access to the workflow engine built at startup."""

from fastapi import Request

from identity_gateway.errors import ConfigurationError
from identity_gateway.services.workflow import IdentityWorkflow


def get_workflow(request: Request) -> IdentityWorkflow:
    workflow = getattr(request.app.state, "workflow", None)
    if workflow is None:
        raise ConfigurationError("Identity workflow is not initialized")
    return workflow
