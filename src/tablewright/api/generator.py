"""REST API generation from table schemas.

For every active table the generator produces five CRUD endpoint
descriptors, pydantic models for the request and response shapes,
heuristic examples and documentation. The same ``FieldRule`` objects the
request validator uses drive the generated models, so documented and
enforced constraints cannot drift apart.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, create_model

from tablewright.core.config import DEFAULT_BASE_PATH
from tablewright.core.types import (
    AUTO_TIMESTAMP_FIELDS,
    DataType,
    FieldSchema,
    RelationshipSchema,
    TableSchema,
)
from tablewright.schema.registry import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from tablewright.validation.request import FILTER_OPERATORS
from tablewright.validation.rules import FieldRule

logger = logging.getLogger(__name__)

REF_TEMPLATE = "#/components/schemas/{model}"
EXAMPLE_TIMESTAMP = "2024-01-15T10:30:00.000Z"
EXAMPLE_ID = "3f2c8a4e-5b1d-4c7e-9a2f-6d8e1b0c4a7f"
UUID_REGEX = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}$"

# User patterns are written for Python's re module
MODEL_CONFIG = ConfigDict(regex_engine="python-re")

ERROR_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "error": {"type": "string"},
        "message": {"type": "string"},
        "status_code": {"type": "integer"},
        "context": {"type": "object"},
    },
    "required": ["error", "message"],
}

VALIDATION_ERROR_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "error": {"type": "string"},
        "message": {"type": "string"},
        "errors": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "field": {"type": "string"},
                    "code": {"type": "string"},
                    "message": {"type": "string"},
                    "value": {},
                },
                "required": ["field", "code", "message"],
            },
        },
    },
    "required": ["error", "message", "errors"],
}


def pascal_case(name: str) -> str:
    """``order_items`` -> ``OrderItems``."""
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[^a-zA-Z0-9]+", name) if part)


def singular(name: str) -> str:
    if name.endswith("ies"):
        return name[:-3] + "y"
    if name.endswith("s") and not name.endswith("ss"):
        return name[:-1]
    return name


def schema_ref(name: str) -> dict[str, str]:
    return {"$ref": REF_TEMPLATE.format(model=name)}


def example_value(field: FieldSchema) -> Any:
    """Plausible sample value for a field, guessed from its name and type."""
    name = field.field_name.lower()
    match field.data_type:
        case DataType.TEXT:
            if field.is_primary_key:
                return EXAMPLE_ID
            if "email" in name:
                return "user@example.com"
            if "name" in name:
                return "Example Name"
            if "description" in name:
                return "Example description"
            return "example text"
        case DataType.NUMBER:
            if name == "id" or name.endswith("_id"):
                return 1
            if "price" in name or "amount" in name:
                return 99.99
            return 42
        case DataType.DATE:
            return EXAMPLE_TIMESTAMP
        case DataType.BOOLEAN:
            return "active" in name or "enabled" in name
    return None


# === Descriptors ===


class EndpointParameter(BaseModel):
    """A path or query parameter of a generated endpoint."""

    name: str
    location: Literal["path", "query"]
    data_type: str = "string"
    required: bool = False
    description: str = ""
    format: str | None = None
    enum: list[str] | None = None
    default: Any = None

    def to_openapi(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.data_type}
        if self.format:
            schema["format"] = self.format
        if self.enum:
            schema["enum"] = self.enum
        if self.default is not None:
            schema["default"] = self.default
        return {
            "name": self.name,
            "in": self.location,
            "required": self.required,
            "description": self.description,
            "schema": schema,
        }


class RequestBodySchema(BaseModel):
    content_type: str = "application/json"
    json_schema: dict[str, Any]
    required: bool = True

    def to_openapi(self) -> dict[str, Any]:
        return {
            "required": self.required,
            "content": {self.content_type: {"schema": self.json_schema}},
        }


class ResponseSchema(BaseModel):
    status_code: int
    description: str
    json_schema: dict[str, Any] | None = None

    def to_openapi(self) -> dict[str, Any]:
        response: dict[str, Any] = {"description": self.description}
        if self.json_schema is not None:
            response["content"] = {"application/json": {"schema": self.json_schema}}
        return response


class GeneratedEndpoint(BaseModel):
    """One CRUD endpoint of a table API."""

    method: Literal["GET", "POST", "PUT", "DELETE"]
    path: str
    handler: str
    description: str
    table_name: str
    parameters: list[EndpointParameter] = Field(default_factory=list)
    request_body: RequestBodySchema | None = None
    responses: list[ResponseSchema] = Field(default_factory=list)
    request_example: Any = None
    response_example: Any = None

    def to_openapi(self, tags: list[str] | None = None) -> dict[str, Any]:
        """OpenAPI operation object for this endpoint."""
        operation: dict[str, Any] = {
            "operationId": self.handler,
            "summary": self.description,
            "tags": tags or [self.table_name],
        }
        if self.parameters:
            operation["parameters"] = [p.to_openapi() for p in self.parameters]
        if self.request_body is not None:
            operation["requestBody"] = self.request_body.to_openapi()
        operation["responses"] = {str(r.status_code): r.to_openapi() for r in self.responses}
        return operation


class GeneratedType(BaseModel):
    """A named JSON Schema emitted for a table."""

    name: str
    kind: Literal["entity", "create", "update", "query", "list"]
    description: str
    json_schema: dict[str, Any]


class APIExample(BaseModel):
    title: str
    method: str
    path: str
    request: Any = None
    response: Any = None


class APIDocumentation(BaseModel):
    summary: str
    description: str
    tags: list[str]
    examples: list[APIExample] = Field(default_factory=list)


@dataclass
class ValidationModels:
    """Pydantic models enforcing a table's request shapes."""

    create: type[BaseModel]
    update: type[BaseModel]
    query: type[BaseModel]
    params: type[BaseModel]


class GeneratedAPI(BaseModel):
    """Everything generated for one table."""

    table_name: str
    type_prefix: str
    schema_hash: str
    endpoints: list[GeneratedEndpoint]
    types: list[GeneratedType]
    models: dict[str, type[BaseModel]]
    validation: ValidationModels
    documentation: APIDocumentation
    relationships: list[RelationshipSchema] = Field(default_factory=list)

    model_config = {"arbitrary_types_allowed": True}

    def get_type(self, kind: str) -> GeneratedType | None:
        for generated in self.types:
            if generated.kind == kind:
                return generated
        return None

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable summary; model classes are listed by name."""
        return {
            "table_name": self.table_name,
            "schema_hash": self.schema_hash,
            "endpoints": [e.model_dump(mode="json") for e in self.endpoints],
            "types": [t.model_dump(mode="json") for t in self.types],
            "models": sorted(self.models),
            "documentation": self.documentation.model_dump(mode="json"),
        }


# === Generator ===


class APIGenerator:
    """Generates CRUD API descriptors for designed tables.

    Example:
        generator = APIGenerator(document.tables, document.relationships)
        apis = generator.generate_all_apis()
        spec = generator.export_openapi()
    """

    def __init__(
        self,
        tables: Iterable[TableSchema],
        relationships: Iterable[RelationshipSchema] = (),
        base_path: str = DEFAULT_BASE_PATH,
    ) -> None:
        self._tables = list(tables)
        self._relationships = list(relationships)
        self._base_path = base_path.rstrip("/")
        self._apis: dict[str, GeneratedAPI] = {}

    @property
    def base_path(self) -> str:
        return self._base_path

    def generate_all_apis(self) -> dict[str, GeneratedAPI]:
        """Generate APIs for every active table, keyed by table name."""
        apis = {t.table_name: self.generate_table_api(t) for t in self._tables if t.is_active}
        logger.info(f"Generated APIs for {len(apis)} table(s)")
        return apis

    def get_generated_api(self, table_name: str) -> GeneratedAPI | None:
        return self._apis.get(table_name)

    def generate_table_api(self, table: TableSchema) -> GeneratedAPI:
        """Generate endpoints, models, examples and docs for one table."""
        prefix = pascal_case(table.table_name)
        models = self._build_models(table, prefix)
        types = self._build_types(table, prefix, models)
        endpoints = self._build_endpoints(table, prefix)
        api = GeneratedAPI(
            table_name=table.table_name,
            type_prefix=prefix,
            schema_hash=table.schema_hash(),
            endpoints=endpoints,
            types=types,
            models=models,
            validation=ValidationModels(
                create=models[f"Create{prefix}Request"],
                update=models[f"Update{prefix}Request"],
                query=models[f"{prefix}QueryParams"],
                params=models[f"{prefix}PathParams"],
            ),
            documentation=self._build_documentation(table, prefix, endpoints),
            relationships=self._related(table),
        )
        self._apis[table.table_name] = api
        logger.debug(f"Generated {len(endpoints)} endpoints for '{table.table_name}'")
        return api

    def _related(self, table: TableSchema) -> list[RelationshipSchema]:
        seen: set[tuple[str, str, str, str]] = set()
        related: list[RelationshipSchema] = []
        for rel in [*table.relationships, *self._relationships]:
            if rel.key in seen or table.table_name not in (rel.source_table, rel.target_table):
                continue
            seen.add(rel.key)
            related.append(rel)
        return related

    # === Models ===

    def _build_models(self, table: TableSchema, prefix: str) -> dict[str, type[BaseModel]]:
        pk = table.primary_key
        pk_name = pk.field_name if pk else None
        rules = {f.field_name: FieldRule.from_field(f) for f in table.fields}

        entity_fields = {
            f.field_name: rules[f.field_name].pydantic_field(
                optional=not (f.is_required or f.field_name == pk_name)
            )
            for f in table.fields
        }
        create_fields = {
            f.field_name: rules[f.field_name].pydantic_field(
                optional=not f.is_required
                or f.has_default
                or f.field_name in AUTO_TIMESTAMP_FIELDS
            )
            for f in table.fields
            if f.field_name != pk_name
        }
        update_fields = {
            f.field_name: rules[f.field_name].pydantic_field(optional=True)
            for f in table.fields
            if f.field_name != pk_name and not f.immutable
        }

        entity = create_model(f"{prefix}Entity", __config__=MODEL_CONFIG, **entity_fields)
        create = create_model(f"Create{prefix}Request", __config__=MODEL_CONFIG, **create_fields)
        update = create_model(f"Update{prefix}Request", __config__=MODEL_CONFIG, **update_fields)

        sort_type: Any = Literal[tuple(table.field_names)] if table.field_names else str
        query = create_model(
            f"{prefix}QueryParams",
            __config__=MODEL_CONFIG,
            page=(int, Field(default=1, ge=1, description="Page number")),
            limit=(
                int,
                Field(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT, description="Page size"),
            ),
            sort=(sort_type | None, Field(default=None, description="Field to sort by")),
            order=(
                Literal["asc", "desc"],
                Field(default=table.default_order, description="Sort direction"),
            ),
            search=(str | None, Field(default=None, description="Full-text search term")),
        )
        params = create_model(
            f"{prefix}PathParams",
            id=(str, Field(..., pattern=UUID_REGEX, description="Record identifier")),
        )
        list_response = create_model(
            f"{prefix}ListResponse",
            data=(list[entity], Field(default_factory=list)),  # type: ignore[valid-type]
            total=(int, Field(..., ge=0)),
            page=(int, Field(..., ge=1)),
            limit=(int, Field(..., ge=1)),
            total_pages=(int, Field(..., ge=0)),
        )
        return {m.__name__: m for m in (entity, create, update, query, params, list_response)}

    def _build_types(
        self, table: TableSchema, prefix: str, models: dict[str, type[BaseModel]]
    ) -> list[GeneratedType]:
        label = table.name
        specs: list[tuple[str, Literal["entity", "create", "update", "query", "list"], str]] = [
            (f"{prefix}Entity", "entity", f"A {label} record"),
            (f"Create{prefix}Request", "create", f"Payload to create a {label} record"),
            (f"Update{prefix}Request", "update", f"Partial update of a {label} record"),
            (f"{prefix}QueryParams", "query", f"List parameters for {label}"),
            (f"{prefix}ListResponse", "list", f"A page of {label} records"),
        ]
        types: list[GeneratedType] = []
        for name, kind, description in specs:
            json_schema = models[name].model_json_schema(ref_template=REF_TEMPLATE)
            # Nested models are exported as types of their own
            json_schema.pop("$defs", None)
            json_schema["description"] = description
            types.append(
                GeneratedType(name=name, kind=kind, description=description, json_schema=json_schema)
            )
        return types

    # === Endpoints ===

    def _build_endpoints(self, table: TableSchema, prefix: str) -> list[GeneratedEndpoint]:
        name = table.table_name
        collection = f"{self._base_path}/{name}"
        item = f"{collection}/{{id}}"
        id_param = EndpointParameter(
            name="id",
            location="path",
            required=True,
            format="uuid",
            description=f"{singular(table.name)} identifier",
        )
        entity_ref = schema_ref(f"{prefix}Entity")
        error = schema_ref("Error")
        validation_error = schema_ref("ValidationError")

        entity_example = {f.field_name: example_value(f) for f in table.fields}
        create_example = {
            f.field_name: example_value(f)
            for f in table.fields
            if not f.is_primary_key and f.field_name not in AUTO_TIMESTAMP_FIELDS
        }
        list_example = {
            "data": [entity_example],
            "total": 1,
            "page": 1,
            "limit": DEFAULT_PAGE_LIMIT,
            "total_pages": 1,
        }

        return [
            GeneratedEndpoint(
                method="GET",
                path=collection,
                handler=f"list{prefix}",
                description=f"List {table.name} records",
                table_name=name,
                parameters=self._list_parameters(table),
                responses=[
                    ResponseSchema(
                        status_code=200,
                        description="A page of records",
                        json_schema=schema_ref(f"{prefix}ListResponse"),
                    ),
                    ResponseSchema(status_code=400, description="Invalid request", json_schema=error),
                    ResponseSchema(
                        status_code=422,
                        description="Invalid query parameters",
                        json_schema=validation_error,
                    ),
                ],
                response_example=list_example,
            ),
            GeneratedEndpoint(
                method="GET",
                path=item,
                handler=f"get{prefix}ById",
                description=f"Get a {singular(table.name)} by id",
                table_name=name,
                parameters=[id_param],
                responses=[
                    ResponseSchema(status_code=200, description="The record", json_schema=entity_ref),
                    ResponseSchema(status_code=404, description="Record not found", json_schema=error),
                    ResponseSchema(
                        status_code=422, description="Invalid id", json_schema=validation_error
                    ),
                ],
                response_example=entity_example,
            ),
            GeneratedEndpoint(
                method="POST",
                path=collection,
                handler=f"create{prefix}",
                description=f"Create a {singular(table.name)}",
                table_name=name,
                request_body=RequestBodySchema(json_schema=schema_ref(f"Create{prefix}Request")),
                responses=[
                    ResponseSchema(
                        status_code=201, description="Record created", json_schema=entity_ref
                    ),
                    ResponseSchema(status_code=400, description="Invalid request", json_schema=error),
                    ResponseSchema(
                        status_code=422, description="Validation failed", json_schema=validation_error
                    ),
                ],
                request_example=create_example,
                response_example=entity_example,
            ),
            GeneratedEndpoint(
                method="PUT",
                path=item,
                handler=f"update{prefix}",
                description=f"Update a {singular(table.name)}",
                table_name=name,
                parameters=[id_param],
                request_body=RequestBodySchema(json_schema=schema_ref(f"Update{prefix}Request")),
                responses=[
                    ResponseSchema(
                        status_code=200, description="Record updated", json_schema=entity_ref
                    ),
                    ResponseSchema(status_code=404, description="Record not found", json_schema=error),
                    ResponseSchema(
                        status_code=422, description="Validation failed", json_schema=validation_error
                    ),
                ],
                request_example=create_example,
                response_example=entity_example,
            ),
            GeneratedEndpoint(
                method="DELETE",
                path=item,
                handler=f"delete{prefix}",
                description=f"Delete a {singular(table.name)}",
                table_name=name,
                parameters=[id_param],
                responses=[
                    ResponseSchema(status_code=204, description="Record deleted"),
                    ResponseSchema(status_code=404, description="Record not found", json_schema=error),
                    ResponseSchema(
                        status_code=409,
                        description="Record is referenced by other records",
                        json_schema=error,
                    ),
                ],
            ),
        ]

    def _list_parameters(self, table: TableSchema) -> list[EndpointParameter]:
        parameters = [
            EndpointParameter(
                name="page", location="query", data_type="integer", default=1, description="Page number"
            ),
            EndpointParameter(
                name="limit",
                location="query",
                data_type="integer",
                default=DEFAULT_PAGE_LIMIT,
                description=f"Page size (1-{MAX_PAGE_LIMIT})",
            ),
            EndpointParameter(
                name="sort",
                location="query",
                enum=table.field_names or None,
                description=f"Field to sort by (default {table.default_sort})",
            ),
            EndpointParameter(
                name="order",
                location="query",
                enum=["asc", "desc"],
                default=table.default_order,
                description="Sort direction",
            ),
            EndpointParameter(
                name="search",
                location="query",
                description=f"Search in {', '.join(table.searchable_fields or []) or 'no fields'}",
            ),
        ]
        other_operators = ", ".join(f"__{op}" for op in FILTER_OPERATORS if op != "eq")
        for field in table.fields:
            parameters.append(
                EndpointParameter(
                    name=f"{field.field_name}__eq",
                    location="query",
                    data_type=_OPENAPI_TYPES[DataType(field.data_type)],
                    description=(
                        f"Filter on {field.name}; also accepts {field.field_name} with "
                        f"{other_operators} (in/not_in take comma-separated values)"
                    ),
                )
            )
        return parameters

    # === Documentation ===

    def _build_documentation(
        self, table: TableSchema, prefix: str, endpoints: list[GeneratedEndpoint]
    ) -> APIDocumentation:
        related = sorted(
            {
                rel.target_table if rel.source_table == table.table_name else rel.source_table
                for rel in self._related(table)
            }
        )
        description = f"Create, read, update and delete {table.name} records."
        if related:
            description += f" Related tables: {', '.join(related)}."

        by_handler = {e.handler: e for e in endpoints}
        create = by_handler[f"create{prefix}"]
        listing = by_handler[f"list{prefix}"]
        return APIDocumentation(
            summary=f"{prefix} Management API",
            description=description,
            tags=[prefix, table.table_name],
            examples=[
                APIExample(
                    title=f"Create a {singular(table.name)}",
                    method=create.method,
                    path=create.path,
                    request=create.request_example,
                    response=create.response_example,
                ),
                APIExample(
                    title=f"List {table.name}",
                    method=listing.method,
                    path=f"{listing.path}?page=1&limit=10",
                    response=listing.response_example,
                ),
            ],
        )

    # === Export ===

    def export_openapi(
        self, title: str = "Tablewright Generated API", version: str = "1.0.0"
    ) -> dict[str, Any]:
        """OpenAPI 3.0.3 document covering every active table."""
        apis = self.generate_all_apis()
        paths: dict[str, dict[str, Any]] = {}
        schemas: dict[str, Any] = {
            "Error": ERROR_SCHEMA,
            "ValidationError": VALIDATION_ERROR_SCHEMA,
        }
        tags: list[dict[str, str]] = []
        for api in apis.values():
            tags.append({"name": api.type_prefix, "description": api.documentation.description})
            for endpoint in api.endpoints:
                paths.setdefault(endpoint.path, {})[endpoint.method.lower()] = endpoint.to_openapi(
                    [api.type_prefix]
                )
            for generated in api.types:
                schemas[generated.name] = generated.json_schema
        return {
            "openapi": "3.0.3",
            "info": {
                "title": title,
                "version": version,
                "description": "CRUD endpoints generated from designed tables",
            },
            "tags": tags,
            "paths": paths,
            "components": {"schemas": schemas},
        }

    def export_source(self, generated_at: datetime | None = None) -> str:
        """Python module with one set of pydantic models per active table."""
        stamp = (generated_at or datetime.now(UTC)).isoformat()
        lines = [
            '"""Pydantic models for the generated table APIs.',
            "",
            f"Generated by tablewright at {stamp}. Do not edit by hand.",
            '"""',
            "",
            "from __future__ import annotations",
            "",
            "from datetime import datetime",
            "from typing import Literal",
            "",
            "from pydantic import BaseModel, ConfigDict, Field",
        ]
        for table in self._tables:
            if table.is_active:
                lines.extend(_render_table(table))
        return "\n".join(lines) + "\n"


_OPENAPI_TYPES: dict[DataType, str] = {
    DataType.TEXT: "string",
    DataType.NUMBER: "number",
    DataType.DATE: "string",
    DataType.BOOLEAN: "boolean",
}


# === Source rendering ===


def _render_class(name: str, doc: str, fields: list[str]) -> list[str]:
    return [
        "",
        "",
        f"class {name}(BaseModel):",
        f'    """{doc}"""',
        "",
        '    model_config = ConfigDict(regex_engine="python-re")',
        *([""] + fields if fields else []),
    ]


def _render_field(rule: FieldRule, *, optional: bool) -> str:
    annotation = rule.python_type().__name__
    kwargs = "".join(f", {key}={value!r}" for key, value in rule.field_kwargs().items())
    if optional:
        return f"    {rule.field_name}: {annotation} | None = Field(None{kwargs})"
    return f"    {rule.field_name}: {annotation} = Field(...{kwargs})"


def _render_table(table: TableSchema) -> list[str]:
    prefix = pascal_case(table.table_name)
    pk = table.primary_key
    pk_name = pk.field_name if pk else None
    rules = {f.field_name: FieldRule.from_field(f) for f in table.fields}

    entity = [
        _render_field(rules[f.field_name], optional=not (f.is_required or f.field_name == pk_name))
        for f in table.fields
    ]
    create = [
        _render_field(
            rules[f.field_name],
            optional=not f.is_required or f.has_default or f.field_name in AUTO_TIMESTAMP_FIELDS,
        )
        for f in table.fields
        if f.field_name != pk_name
    ]
    update = [
        _render_field(rules[f.field_name], optional=True)
        for f in table.fields
        if f.field_name != pk_name and not f.immutable
    ]
    sort = (
        f"Literal[{', '.join(repr(n) for n in table.field_names)}]" if table.field_names else "str"
    )
    query = [
        '    page: int = Field(1, ge=1, description="Page number")',
        f'    limit: int = Field({DEFAULT_PAGE_LIMIT}, ge=1, le={MAX_PAGE_LIMIT}, description="Page size")',
        f'    sort: {sort} | None = Field(None, description="Field to sort by")',
        f'    order: Literal["asc", "desc"] = Field({table.default_order!r}, description="Sort direction")',
        '    search: str | None = Field(None, description="Full-text search term")',
    ]
    list_response = [
        f"    data: list[{prefix}Entity] = Field(default_factory=list)",
        "    total: int = Field(..., ge=0)",
        "    page: int = Field(..., ge=1)",
        "    limit: int = Field(..., ge=1)",
        "    total_pages: int = Field(..., ge=0)",
    ]
    return [
        "",
        "",
        f"# {prefix} Management API",
        *_render_class(f"{prefix}Entity", f"A {table.name} record.", entity)[1:],
        *_render_class(f"Create{prefix}Request", f"Payload to create a {table.name} record.", create),
        *_render_class(f"Update{prefix}Request", f"Partial update of a {table.name} record.", update),
        *_render_class(f"{prefix}QueryParams", f"List parameters for {table.name}.", query),
        *_render_class(f"{prefix}ListResponse", f"A page of {table.name} records.", list_response),
    ]
