"""
schemas/errors.py — Error body returned by every failing AutoQuote endpoint

Business Rules:
- `error` is the human-readable message (HTTPException detail, "Validation
  failed", the StateTransitionError text or the raw database message)
- `request_id` echoes the X-Request-ID header so a supplier or shop report
  can be matched to the log line
- `detail` is only set for 422 responses: one ValidationIssue per field

Called by: main.py exception handlers (HTTPException 4xx/5xx,
           RequestValidationError 422, StateTransitionError 409,
           SQLAlchemyError 500)
"""

from pydantic import BaseModel


class ValidationIssue(BaseModel):
    loc: list[str | int]
    msg: str
    type: str


class ErrorResponse(BaseModel):
    error: str
    status_code: int
    request_id: str = ""
    detail: list[ValidationIssue] | None = None
