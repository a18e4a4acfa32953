"""
core/validation.py -- Turn Pydantic validation failures into the error taxonomy.

Two entry points produce the same structured failure:

  parse_payload(Model, data)  -- explicit validation inside a handler, used
      where validation must run after the 404/403 checks (issue update,
      comment create) or where input is not a JSON body (query strings,
      HTML forms). Raw bytes are decoded as JSON here too, so a malformed
      body is just another 400.
  errors_to_details(errors)   -- used by api/main.py to render FastAPI's own
      RequestValidationError with the same {field, message} list.

Layer rule: core/ is the kernel. No imports from api/, web/, auth/, or tracker/.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from core.errors import ValidationError

M = TypeVar("M", bound=BaseModel)

# Location prefixes FastAPI adds to say where a value came from. The client
# already knows, so they are dropped from the field path.
_SOURCE_PREFIXES = {"body", "query", "path", "form"}


def errors_to_details(errors: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Map Pydantic error dicts to [{field, message}, ...].

    Only loc and msg are kept. Pydantic's ctx can hold exception objects that
    are not JSON-serializable, and input may echo secrets such as passwords.
    """
    details = []
    for err in errors:
        # A decode failure's loc holds a character offset, not a field name.
        if err.get("type") == "json_invalid":
            details.append({"field": None, "message": err.get("msg", "Invalid JSON")})
            continue
        loc = [str(part) for part in err.get("loc", ()) if part not in _SOURCE_PREFIXES]
        details.append(
            {
                "field": ".".join(loc) if loc else None,
                "message": err.get("msg", "Invalid value"),
            }
        )
    return details


def parse_payload(model: type[M], data: Any) -> M:
    """Validate data against model. Raises ValidationError listing every bad field.

    bytes and str are treated as an undecoded JSON body.
    """
    try:
        if isinstance(data, (bytes, bytearray, str)):
            return model.model_validate_json(data)
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(details=errors_to_details(exc.errors())) from exc
