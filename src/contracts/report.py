from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Rating(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


@dataclass(frozen=True, slots=True)
class SopReference:
    step_identifier: str
    page_number: int  # 1-indexed page of the source PDF

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "SopReference":
        return SopReference(step_identifier=str(d["stepIdentifier"]), page_number=int(d["pageNumber"]))

    def to_dict(self) -> dict[str, Any]:
        return {"stepIdentifier": self.step_identifier, "pageNumber": self.page_number}


@dataclass(frozen=True, slots=True)
class ExecutiveSummary:
    sop_title: str
    complexity_score: str
    process_efficiency_rating: str
    total_manual_touchpoints: int
    automation_potential_score: str
    time_savings_estimate: str
    error_reduction_projection: str
    compliance_risk_mitigation: str
    implementation_priority: str

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "ExecutiveSummary":
        return ExecutiveSummary(
            sop_title=str(d["sopTitle"]),
            complexity_score=str(d["complexityScore"]),
            process_efficiency_rating=str(d["processEfficiencyRating"]),
            total_manual_touchpoints=int(d["totalManualTouchpoints"]),
            automation_potential_score=str(d["automationPotentialScore"]),
            time_savings_estimate=str(d["timeSavingsEstimate"]),
            error_reduction_projection=str(d["errorReductionProjection"]),
            compliance_risk_mitigation=str(d["complianceRiskMitigation"]),
            implementation_priority=str(d["implementationPriority"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "sopTitle": self.sop_title,
            "complexityScore": self.complexity_score,
            "processEfficiencyRating": self.process_efficiency_rating,
            "totalManualTouchpoints": self.total_manual_touchpoints,
            "automationPotentialScore": self.automation_potential_score,
            "timeSavingsEstimate": self.time_savings_estimate,
            "errorReductionProjection": self.error_reduction_projection,
            "complianceRiskMitigation": self.compliance_risk_mitigation,
            "implementationPriority": self.implementation_priority,
        }


@dataclass(frozen=True, slots=True)
class CurrentState:
    process_breakdown: list[str]
    manual_touchpoint_inventory: list[str]
    data_flow_mapping: str
    bottleneck_identification: str

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "CurrentState":
        return CurrentState(
            process_breakdown=[str(x) for x in d["processBreakdown"]],
            manual_touchpoint_inventory=[str(x) for x in d["manualTouchpointInventory"]],
            data_flow_mapping=str(d["dataFlowMapping"]),
            bottleneck_identification=str(d["bottleneckIdentification"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "processBreakdown": list(self.process_breakdown),
            "manualTouchpointInventory": list(self.manual_touchpoint_inventory),
            "dataFlowMapping": self.data_flow_mapping,
            "bottleneckIdentification": self.bottleneck_identification,
        }


@dataclass(frozen=True, slots=True)
class AutomationOpportunity:
    opportunity_category: str
    sop_reference: SopReference
    current_manual_process: str
    proposed_automation_solution: str
    technology_required: str
    implementation_complexity: Rating
    roi_potential: Rating
    compliance_impact: str
    timeline_estimate: str

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "AutomationOpportunity":
        return AutomationOpportunity(
            opportunity_category=str(d["opportunityCategory"]),
            sop_reference=SopReference.from_dict(d["sopReference"]),
            current_manual_process=str(d["currentManualProcess"]),
            proposed_automation_solution=str(d["proposedAutomationSolution"]),
            technology_required=str(d["technologyRequired"]),
            implementation_complexity=Rating(d["implementationComplexity"]),
            roi_potential=Rating(d["roiPotential"]),
            compliance_impact=str(d["complianceImpact"]),
            timeline_estimate=str(d["timelineEstimate"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "opportunityCategory": self.opportunity_category,
            "sopReference": self.sop_reference.to_dict(),
            "currentManualProcess": self.current_manual_process,
            "proposedAutomationSolution": self.proposed_automation_solution,
            "technologyRequired": self.technology_required,
            "implementationComplexity": self.implementation_complexity.value,
            "roiPotential": self.roi_potential.value,
            "complianceImpact": self.compliance_impact,
            "timelineEstimate": self.timeline_estimate,
        }


@dataclass(frozen=True, slots=True)
class ImplementationPhase:
    phase: str
    description: str

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "ImplementationPhase":
        return ImplementationPhase(phase=str(d["phase"]), description=str(d["description"]))

    def to_dict(self) -> dict[str, Any]:
        return {"phase": self.phase, "description": self.description}


@dataclass(frozen=True, slots=True)
class TechnicalRequirements:
    platform_requirements: str
    training_requirements: str
    budget_estimate: str
    risk_mitigation: str

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "TechnicalRequirements":
        return TechnicalRequirements(
            platform_requirements=str(d["platformRequirements"]),
            training_requirements=str(d["trainingRequirements"]),
            budget_estimate=str(d["budgetEstimate"]),
            risk_mitigation=str(d["riskMitigation"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "platformRequirements": self.platform_requirements,
            "trainingRequirements": self.training_requirements,
            "budgetEstimate": self.budget_estimate,
            "riskMitigation": self.risk_mitigation,
        }


@dataclass(frozen=True, slots=True)
class DetailedAnalysis:
    current_state: CurrentState
    automation_opportunities: list[AutomationOpportunity]
    implementation_roadmap: list[ImplementationPhase]
    technical_requirements: TechnicalRequirements

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "DetailedAnalysis":
        return DetailedAnalysis(
            current_state=CurrentState.from_dict(d["currentState"]),
            automation_opportunities=[AutomationOpportunity.from_dict(o) for o in d["automationOpportunities"]],
            implementation_roadmap=[ImplementationPhase.from_dict(p) for p in d["implementationRoadmap"]],
            technical_requirements=TechnicalRequirements.from_dict(d["technicalRequirements"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentState": self.current_state.to_dict(),
            "automationOpportunities": [o.to_dict() for o in self.automation_opportunities],
            "implementationRoadmap": [p.to_dict() for p in self.implementation_roadmap],
            "technicalRequirements": self.technical_requirements.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class AnalysisReport:
    """
    Validated automation-opportunity report handed to the report renderer.

    Build instances only from payloads that passed `offline_analysis.report_schema.validate_report`;
    `from_dict` does not re-check enum domains or page bounds.
    """

    executive_summary: ExecutiveSummary
    detailed_analysis: DetailedAnalysis

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "AnalysisReport":
        return AnalysisReport(
            executive_summary=ExecutiveSummary.from_dict(d["executiveSummary"]),
            detailed_analysis=DetailedAnalysis.from_dict(d["detailedAnalysis"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "executiveSummary": self.executive_summary.to_dict(),
            "detailedAnalysis": self.detailed_analysis.to_dict(),
        }

    def cited_pages(self) -> list[int]:
        return sorted({o.sop_reference.page_number for o in self.detailed_analysis.automation_opportunities})
