from typing import Any, Dict, List, Sequence

from .models import ErrorRecord

TOP_SAMPLER_LIMIT = 5


def analyze_errors(errors: Sequence[ErrorRecord]) -> Dict[str, Any]:
    """Group failed requests by response code and by sampler label."""
    if not errors:
        return {
            "hasErrors": False,
            "totalErrors": 0,
            "errorsByType": {},
            "topErrorsBySampler": [],
        }

    errors_by_type: Dict[str, Dict[str, Any]] = {}
    errors_by_sampler: Dict[str, Dict[str, Any]] = {}

    for error in errors:
        error_type = error.response_code or "Unknown"

        if error_type not in errors_by_type:
            errors_by_type[error_type] = {
                "code": error_type,
                "count": 0,
                "message": error.response_message or "No message",
            }
        errors_by_type[error_type]["count"] += 1

        if error.label not in errors_by_sampler:
            errors_by_sampler[error.label] = {
                "sampler": error.label,
                "count": 0,
                "errorType": error_type,
                "message": error.failure_message or error.response_message or "",
            }
        errors_by_sampler[error.label]["count"] += 1

    # sorted() is stable, ties stay in first-seen order
    top: List[Dict[str, Any]] = sorted(
        errors_by_sampler.values(), key=lambda e: e["count"], reverse=True
    )[:TOP_SAMPLER_LIMIT]

    return {
        "hasErrors": True,
        "totalErrors": len(errors),
        "errorsByType": errors_by_type,
        "topErrorsBySampler": top,
    }
