from __future__ import annotations

from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

from contracts.errors import InvalidModelOutput
from contracts.report import AnalysisReport, Rating

from .response import diagnostic_snippet

_STR = {"type": "string"}
_RATING = {"type": "string", "enum": [r.value for r in Rating]}


def _object(properties: dict[str, Any]) -> dict[str, Any]:
    return {"type": "object", "required": sorted(properties), "properties": properties}


REPORT_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "AnalysisReport",
    **_object(
        {
            "executiveSummary": _object(
                {
                    "sopTitle": _STR,
                    "complexityScore": _STR,
                    "processEfficiencyRating": _STR,
                    "totalManualTouchpoints": {"type": "integer", "minimum": 0},
                    "automationPotentialScore": _STR,
                    "timeSavingsEstimate": _STR,
                    "errorReductionProjection": _STR,
                    "complianceRiskMitigation": _STR,
                    "implementationPriority": _STR,
                }
            ),
            "detailedAnalysis": _object(
                {
                    "currentState": _object(
                        {
                            "processBreakdown": {"type": "array", "items": _STR},
                            "manualTouchpointInventory": {"type": "array", "items": _STR},
                            "dataFlowMapping": _STR,
                            "bottleneckIdentification": _STR,
                        }
                    ),
                    "automationOpportunities": {
                        "type": "array",
                        "items": _object(
                            {
                                "opportunityCategory": _STR,
                                "sopReference": _object(
                                    {
                                        "stepIdentifier": _STR,
                                        "pageNumber": {"type": "integer", "minimum": 1},
                                    }
                                ),
                                "currentManualProcess": _STR,
                                "proposedAutomationSolution": _STR,
                                "technologyRequired": _STR,
                                "implementationComplexity": _RATING,
                                "roiPotential": _RATING,
                                "complianceImpact": _STR,
                                "timelineEstimate": _STR,
                            }
                        ),
                    },
                    "implementationRoadmap": {
                        "type": "array",
                        "items": _object({"phase": _STR, "description": _STR}),
                    },
                    "technicalRequirements": _object(
                        {
                            "platformRequirements": _STR,
                            "trainingRequirements": _STR,
                            "budgetEstimate": _STR,
                            "riskMitigation": _STR,
                        }
                    ),
                }
            ),
        }
    ),
}

_VALIDATOR = Draft202012Validator(REPORT_SCHEMA)


def _json_path(path: Any) -> str:
    out = "$"
    for part in path:
        out += f"[{part}]" if isinstance(part, int) else f".{part}"
    return out


def validate_report(payload: Any, page_count: int | None = None) -> AnalysisReport:
    """
    Validate a parsed model response and convert it to an `AnalysisReport`.

    Values are never coerced: a wrong type or enum is an `InvalidModelOutput`.
    With `page_count`, every cited `pageNumber` must also exist in the source document.
    """

    error = best_match(_VALIDATOR.iter_errors(payload))
    if error is not None:
        where = _json_path(error.absolute_path)
        raise InvalidModelOutput(
            f"Offline analysis produced invalid JSON schema: {where}: {error.message}",
            snippet=diagnostic_snippet(repr(error.instance)),
            detail={"path": where, "validator": error.validator},
        )

    report = AnalysisReport.from_dict(payload)
    if page_count is not None:
        out_of_range = sorted({p for p in report.cited_pages() if p > page_count})
        if out_of_range:
            raise InvalidModelOutput(
                f"Offline analysis cited pages that do not exist: {out_of_range} (document has {page_count} pages)",
                detail={"cited_pages": out_of_range, "page_count": page_count},
            )
    return report
