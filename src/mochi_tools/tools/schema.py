"""Parameter schema introspection for custom tools.

The serializer never looks at pydantic internals directly. Instead every
parameter schema is wrapped in an object implementing the narrow
ParameterSchema interface:

- canonical_properties(): property name -> canonical PropertySchema, in
  declaration order
- is_key_required(name): whether the key must be present in parsed arguments

PydanticParameterSchema implements the interface for pydantic models by
normalising the model's JSON schema: $ref/allOf indirections are inlined,
titles and defaults are dropped, nullable unions collapse to their non-null
member type, and nested objects are closed with additionalProperties=False.
"""

from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel
from pydantic.json_schema import GenerateJsonSchema, JsonSchemaValue
from pydantic_core import core_schema

from mochi_tools.tools.errors import SchemaError

# Marks properties whose default comes from a default_factory, which pydantic
# leaves out of the generated schema.
_DEFAULT_FACTORY_KEY = "x-default-factory"

_DROPPED_KEYS = frozenset({"title", "default", "$defs", "$schema", _DEFAULT_FACTORY_KEY})


@runtime_checkable
class ParameterSchema(Protocol):
    """Capability interface the serializer uses to introspect a schema."""

    def canonical_properties(self) -> dict[str, dict[str, Any]]: ...

    def is_key_required(self, name: str) -> bool: ...


def is_parameters_model(value: Any) -> bool:
    """Return True if value is a pydantic model class."""
    return isinstance(value, type) and issubclass(value, BaseModel)


def is_parameter_schema(value: Any) -> bool:
    """Return True if value can be used as a tool's parameters."""
    return is_parameters_model(value) or isinstance(value, ParameterSchema)


def as_parameter_schema(value: Any) -> ParameterSchema:
    """Wrap a tool's parameters in the ParameterSchema interface.

    Raises:
        SchemaError: If value is neither a pydantic model class nor an object
            implementing ParameterSchema.
    """
    if is_parameters_model(value):
        return PydanticParameterSchema(value)
    if isinstance(value, ParameterSchema):
        return value
    raise SchemaError(f"Unsupported parameter schema: {value!r}")


class _MarkingJsonSchema(GenerateJsonSchema):
    """Schema generator that flags fields populated by a default_factory."""

    def default_schema(self, schema: core_schema.WithDefaultSchema) -> JsonSchemaValue:
        json_schema = super().default_schema(schema)
        if "default_factory" in schema:
            json_schema = {**json_schema, _DEFAULT_FACTORY_KEY: True}
        return json_schema


class PydanticParameterSchema:
    """ParameterSchema adapter for a pydantic model class.

    A key is required when pydantic itself requires it, or when the field has
    a non-None default or a default_factory (the key is always present after
    parsing). Fields declared as `x: T | None = None` are the only optional
    ones.
    """

    def __init__(self, model: type[BaseModel]) -> None:
        self.model = model
        self._schema = model.model_json_schema(schema_generator=_MarkingJsonSchema)
        self._defs: dict[str, Any] = self._schema.get("$defs", {})

    def canonical_properties(self) -> dict[str, dict[str, Any]]:
        return _canonical_properties(self._schema, self._defs, ())

    def is_key_required(self, name: str) -> bool:
        return _is_key_required(self._schema, name)


def _is_key_required(object_schema: dict[str, Any], name: str) -> bool:
    if name in object_schema.get("required", []):
        return True
    prop = object_schema.get("properties", {}).get(name)
    if not isinstance(prop, dict):
        return False
    return prop.get("default") is not None or bool(prop.get(_DEFAULT_FACTORY_KEY))


def _canonical_properties(
    object_schema: dict[str, Any], defs: dict[str, Any], seen: tuple[str, ...]
) -> dict[str, dict[str, Any]]:
    return {
        name: _normalize(prop, defs, seen)
        for name, prop in object_schema.get("properties", {}).items()
    }


def _resolve(
    schema: dict[str, Any], defs: dict[str, Any], seen: tuple[str, ...]
) -> tuple[dict[str, Any], tuple[str, ...]]:
    """Inline $ref and single-member allOf wrappers, keeping sibling keys."""
    ref = schema.get("$ref")
    if ref is None:
        all_of = schema.get("allOf")
        if isinstance(all_of, list) and len(all_of) == 1 and isinstance(all_of[0], dict):
            siblings = {k: v for k, v in schema.items() if k != "allOf"}
            return _resolve({**all_of[0], **siblings}, defs, seen)
        return schema, seen

    def_name = ref.rsplit("/", 1)[-1]
    if def_name in seen:
        raise SchemaError(f"Recursive schema reference '{ref}' is not supported")
    if def_name not in defs:
        raise SchemaError(f"Unresolvable schema reference '{ref}'")

    siblings = {k: v for k, v in schema.items() if k != "$ref"}
    return _resolve({**defs[def_name], **siblings}, defs, seen + (def_name,))


def _join_types(types: list[Any]) -> str | None:
    names = [t for t in types if isinstance(t, str) and t != "null"]
    return " | ".join(names) if names else None


def _normalize(schema: Any, defs: dict[str, Any], seen: tuple[str, ...]) -> Any:
    if not isinstance(schema, dict):
        return schema

    schema, seen = _resolve(schema, defs, seen)
    result = {k: v for k, v in schema.items() if k not in _DROPPED_KEYS}

    # Nullable / union types
    for union_key in ("anyOf", "oneOf"):
        if union_key not in result:
            continue
        members = [_normalize(m, defs, seen) for m in result.pop(union_key)]
        non_null = [m for m in members if isinstance(m, dict) and m.get("type") != "null"]
        if len(non_null) == 1:
            return {**non_null[0], **result}
        joined = _join_types([m.get("type") for m in non_null])
        if joined:
            result["type"] = joined
        return result

    if isinstance(result.get("type"), list):
        joined = _join_types(result["type"])
        if joined:
            result["type"] = joined
        else:
            del result["type"]

    if result.get("type") == "object":
        additional = result.get("additionalProperties")
        if "properties" in schema or additional is None:
            properties = _canonical_properties(schema, defs, seen)
            result["properties"] = properties
            result["required"] = [n for n in properties if _is_key_required(schema, n)]
            result["additionalProperties"] = False
        elif isinstance(additional, dict):
            result["additionalProperties"] = _normalize(additional, defs, seen)
    elif result.get("type") == "array":
        if "items" in result:
            result["items"] = _normalize(result["items"], defs, seen)
        if "prefixItems" in result:
            result["prefixItems"] = [_normalize(i, defs, seen) for i in result["prefixItems"]]

    return result
