"""JSON Schema helpers for tool definitions."""

from typing import Any

from jsonschema import Draft7Validator

TYPE_MAPPING = {
    "string": "string",
    "str": "string",
    "integer": "integer",
    "int": "integer",
    "number": "number",
    "float": "number",
    "boolean": "boolean",
    "bool": "boolean",
    "array": "array",
    "list": "array",
    "object": "object",
    "dict": "object",
}


def check_tool_schema(schema: dict[str, Any]) -> None:
    """
    Ensure a tool input schema is a well-formed JSON Schema object.

    Raises:
        jsonschema.SchemaError: If the schema itself is invalid
        ValueError: If the schema does not describe an object
    """
    Draft7Validator.check_schema(schema)
    if schema.get("type") != "object":
        raise ValueError("Tool input schema must describe an object")


def create_tool_schema(
    parameters: list[dict[str, Any]],
    required: list[str] | None = None
) -> dict[str, Any]:
    """
    Create a JSON Schema from a list of parameter definitions.

    Args:
        parameters: List of parameter definitions with name, type, description
        required: List of required parameter names; omitted parameters
            are optional

    Returns:
        JSON Schema dictionary
    """
    properties = {}

    for param in parameters:
        param_schema: dict[str, Any] = {
            "type": TYPE_MAPPING.get(param.get("type", "string"), "string"),
            "description": param.get("description", ""),
        }

        if "enum" in param:
            param_schema["enum"] = param["enum"]

        if "default" in param:
            param_schema["default"] = param["default"]

        if param_schema["type"] == "array" and "items" in param:
            param_schema["items"] = param["items"]

        properties[param["name"]] = param_schema

    schema: dict[str, Any] = {
        "type": "object",
        "properties": properties,
    }

    if required:
        unknown = set(required) - set(properties)
        if unknown:
            raise ValueError(f"Required parameters not declared: {', '.join(sorted(unknown))}")
        schema["required"] = list(required)

    return schema
