from __future__ import annotations

import copy
import unittest
from typing import Any

from contracts.errors import InvalidModelOutput
from contracts.report import Rating
from offline_analysis.report_schema import validate_report


def _report(page_number: Any = 2) -> dict[str, Any]:
    return {
        "executiveSummary": {
            "sopTitle": "Tablet Compression Line Clearance",
            "complexityScore": "7/10",
            "processEfficiencyRating": "Moderate",
            "totalManualTouchpoints": 14,
            "automationPotentialScore": "High",
            "timeSavingsEstimate": "35%",
            "errorReductionProjection": "60%",
            "complianceRiskMitigation": "Electronic signatures close data-integrity gaps",
            "implementationPriority": "High",
        },
        "detailedAnalysis": {
            "currentState": {
                "processBreakdown": ["Line clearance", "Verification"],
                "manualTouchpointInventory": ["Paper checklist"],
                "dataFlowMapping": "Paper -> QA review -> archive",
                "bottleneckIdentification": "QA sign-off queue",
            },
            "automationOpportunities": [
                {
                    "opportunityCategory": "Electronic Batch Record",
                    "sopReference": {"stepIdentifier": "5.2", "pageNumber": page_number},
                    "currentManualProcess": "Operator fills a paper checklist",
                    "proposedAutomationSolution": "MES-guided line clearance",
                    "technologyRequired": "MES",
                    "implementationComplexity": "Medium",
                    "roiPotential": "High",
                    "complianceImpact": "21 CFR Part 11 alignment",
                    "timelineEstimate": "6 months",
                }
            ],
            "implementationRoadmap": [{"phase": "Phase 1", "description": "Pilot on line 3"}],
            "technicalRequirements": {
                "platformRequirements": "MES",
                "trainingRequirements": "Operators, QA",
                "budgetEstimate": "$250k",
                "riskMitigation": "Parallel paper run during pilot",
            },
        },
    }


class TestReportSchema(unittest.TestCase):
    def test_valid_report_converts(self) -> None:
        report = validate_report(_report(), page_count=3)

        opp = report.detailed_analysis.automation_opportunities[0]
        self.assertEqual(opp.sop_reference.page_number, 2)
        self.assertEqual(opp.implementation_complexity, Rating.MEDIUM)
        self.assertEqual(report.to_dict(), _report())

    def test_rating_outside_enum_is_rejected(self) -> None:
        bad = _report()
        bad["detailedAnalysis"]["automationOpportunities"][0]["roiPotential"] = "Very High"

        with self.assertRaises(InvalidModelOutput) as ctx:
            validate_report(bad)
        self.assertIn("roiPotential", ctx.exception.message)

    def test_page_number_is_never_coerced(self) -> None:
        for page_number in ("2", 0, -1, 1.5, True):
            with self.subTest(page_number=page_number):
                with self.assertRaises(InvalidModelOutput):
                    validate_report(_report(page_number=page_number))

    def test_missing_required_field_is_rejected(self) -> None:
        bad = copy.deepcopy(_report())
        del bad["executiveSummary"]["sopTitle"]

        with self.assertRaises(InvalidModelOutput) as ctx:
            validate_report(bad)
        self.assertIn("sopTitle", ctx.exception.message)

    def test_negative_touchpoints_is_rejected(self) -> None:
        bad = _report()
        bad["executiveSummary"]["totalManualTouchpoints"] = -3
        with self.assertRaises(InvalidModelOutput):
            validate_report(bad)

    def test_page_beyond_document_is_rejected(self) -> None:
        with self.assertRaises(InvalidModelOutput) as ctx:
            validate_report(_report(page_number=4), page_count=3)
        self.assertEqual(ctx.exception.detail["cited_pages"], [4])


if __name__ == "__main__":
    unittest.main()
