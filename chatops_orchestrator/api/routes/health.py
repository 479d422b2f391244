"""Health check and operation listing endpoints."""

from fastapi import APIRouter, Request

from ..schemas import HealthResponse, OperationInfo, OperationListResponse
from ... import __version__
from ...operations import OperationRegistry

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check if the API server is running and healthy.",
)
def health_check(request: Request) -> HealthResponse:
    """Return health status of the API server."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        model=request.app.state.processor.loop.model,
        operations=len(OperationRegistry.names()),
    )


@router.get(
    "/v1/operations",
    response_model=OperationListResponse,
    summary="List operations",
    description="List the operations the provider may call.",
)
def list_operations(request: Request) -> OperationListResponse:
    deduplicator = request.app.state.processor.loop.executor.deduplicator
    return OperationListResponse(
        data=[
            OperationInfo(
                name=op.name,
                description=op.description,
                parameters=op.parameters,
                required=op.required,
                single_execution=deduplicator.is_single_execution(op.name),
            )
            for op in OperationRegistry.all_operations().values()
        ]
    )
