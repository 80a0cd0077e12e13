"""API generation and endpoint registration."""

from tablewright.api.endpoints import (
    EndpointMatch,
    EndpointRegistration,
    EndpointRegistry,
    EndpointStats,
    RegisteredEndpoint,
    SyncResult,
    endpoint_id,
)
from tablewright.api.generator import (
    APIDocumentation,
    APIExample,
    APIGenerator,
    EndpointParameter,
    GeneratedAPI,
    GeneratedEndpoint,
    GeneratedType,
    RequestBodySchema,
    ResponseSchema,
    ValidationModels,
    example_value,
    pascal_case,
)

__all__ = [
    # Generation
    "APIGenerator",
    "GeneratedAPI",
    "GeneratedEndpoint",
    "GeneratedType",
    "EndpointParameter",
    "RequestBodySchema",
    "ResponseSchema",
    "APIDocumentation",
    "APIExample",
    "ValidationModels",
    "example_value",
    "pascal_case",
    # Registration
    "EndpointRegistry",
    "EndpointRegistration",
    "RegisteredEndpoint",
    "EndpointMatch",
    "EndpointStats",
    "SyncResult",
    "endpoint_id",
]
