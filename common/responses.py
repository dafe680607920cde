from typing import Any, Dict, List, Optional


def success_response(message: Optional[str] = None, warnings: Optional[List[str]] = None, **data: Any) -> Dict[str, Any]:
    """
    Standard success envelope: {"success": true, ...data}.
    Secondary effects that failed are listed under "warnings" (only when there are any).
    """
    payload: Dict[str, Any] = {"success": True}
    payload.update(data)
    if message:
        payload["message"] = message
    if warnings:
        payload["warnings"] = list(warnings)
    return payload


def error_response(message: str, details: Optional[Any] = None) -> Dict[str, Any]:
    """
    Standard error envelope.
    """
    payload: Dict[str, Any] = {"error": message}
    if details is not None:
        payload["details"] = details
    return payload
