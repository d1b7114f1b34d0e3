"""Response envelopes shared by every layout tool.

Success: ``{"ok": true, "data": ..., "warnings": [...]}`` (warnings only when present)
Failure: ``{"ok": false, "error": {"message", "code", "details"}}``
"""

from typing import Any, Dict, List, Optional

from ..core.errors import LayoutError


def is_success(result: Dict[str, Any]) -> bool:
    return bool(result.get("ok"))


def success_response(data: Any, warnings: Optional[List[str]] = None) -> Dict[str, Any]:
    envelope: Dict[str, Any] = {"ok": True, "data": data}
    if warnings:
        envelope["warnings"] = list(warnings)
    return envelope


def error_response(
    message: str,
    code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    error: Dict[str, Any] = {"message": message}
    if code:
        error["code"] = code
    if details:
        error["details"] = details
    return {"ok": False, "error": error}


def layout_error_response(error: LayoutError) -> Dict[str, Any]:
    """Failure envelope for a LayoutError; its context attributes become the details."""
    details = {
        key: value for key, value in vars(error).items()
        if not key.startswith("_") and value is not None
    }
    return error_response(str(error), code=error.code, details=details or None)
