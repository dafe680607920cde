from typing import Any, Dict, List, Type, TypeVar

from pydantic import BaseModel, ValidationError as SchemaError

from common.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def _field_name(error: Dict[str, Any]) -> str:
    loc = [str(part) for part in error.get("loc", ()) if part != "body"]
    return ".".join(loc) or "body"


def describe_errors(errors: List[Dict[str, Any]]) -> str:
    """
    One message naming every offending field, missing ones first.
    """
    missing = [_field_name(e) for e in errors if e.get("type") == "missing"]
    invalid = [_field_name(e) for e in errors if e.get("type") != "missing"]
    parts = []
    if missing:
        parts.append("Missing required fields: " + ", ".join(dict.fromkeys(missing)))
    if invalid:
        parts.append("Invalid fields: " + ", ".join(dict.fromkeys(invalid)))
    return "; ".join(parts) or "Invalid request"


def validate_form(model: Type[ModelT], raw: Dict[str, Any]) -> ModelT:
    """
    Validate multipart form values against a request schema.

    Empty strings are treated as absent, the way browsers submit untouched inputs.
    """
    cleaned = {k: v for k, v in raw.items() if v is not None and not (isinstance(v, str) and not v.strip())}
    try:
        return model.model_validate(cleaned)
    except SchemaError as exc:
        errors = exc.errors(include_url=False, include_context=False, include_input=False)
        raise ValidationError(describe_errors(errors), details=errors) from exc
