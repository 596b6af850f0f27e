from __future__ import annotations

from .contracts import Page

# No tokenizer is available offline; 4 chars/token is a conservative estimate
# for English prose with the bundled GGUF model. Changing it changes every
# truncation decision.
CHARS_PER_TOKEN = 4
SAFETY_MARGIN_TOKENS = 256
MIN_PROMPT_TOKENS = 512

HEAD_SHARE = 0.7
TRUNCATION_MARKER = "[TRUNCATED]"
_MARKER_BLOCK = f"\n\n{TRUNCATION_MARKER}\n\n"

PROMPT_HEADER = "\n".join(
    [
        "You are an Expert Pharmaceutical Manufacturing Process Optimization Specialist.",
        "",
        "Task: Analyze the following SOP (PDF text extracted per page) and return ONLY a single JSON object.",
        "Requirements:",
        "- Output MUST be valid JSON (no markdown, no commentary).",
        "- Output MUST match the JSON template below (same keys and structure).",
        "- Use proper JSON types: strings MUST be quoted, numbers MUST be numbers.",
        "- Every automation opportunity MUST include sopReference.stepIdentifier and "
        "sopReference.pageNumber (the N of the --- PAGE N --- marker it comes from).",
        "",
        "JSON template (fill in values; arrays may be empty if not applicable):",
        "{",
        '  "executiveSummary": {',
        '    "sopTitle": "",',
        '    "complexityScore": "",',
        '    "processEfficiencyRating": "",',
        '    "totalManualTouchpoints": 0,',
        '    "automationPotentialScore": "",',
        '    "timeSavingsEstimate": "",',
        '    "errorReductionProjection": "",',
        '    "complianceRiskMitigation": "",',
        '    "implementationPriority": ""',
        "  },",
        '  "detailedAnalysis": {',
        '    "currentState": {',
        '      "processBreakdown": [],',
        '      "manualTouchpointInventory": [],',
        '      "dataFlowMapping": "",',
        '      "bottleneckIdentification": ""',
        "    },",
        '    "automationOpportunities": [',
        "      {",
        '        "opportunityCategory": "",',
        '        "sopReference": { "stepIdentifier": "", "pageNumber": 1 },',
        '        "currentManualProcess": "",',
        '        "proposedAutomationSolution": "",',
        '        "technologyRequired": "",',
        '        "implementationComplexity": "Low",',
        '        "roiPotential": "Low",',
        '        "complianceImpact": "",',
        '        "timelineEstimate": ""',
        "      }",
        "    ],",
        '    "implementationRoadmap": [',
        '      { "phase": "", "description": "" }',
        "    ],",
        '    "technicalRequirements": {',
        '      "platformRequirements": "",',
        '      "trainingRequirements": "",',
        '      "budgetEstimate": "",',
        '      "riskMitigation": ""',
        "    }",
        "  }",
        "}",
        "",
        "SOP content (page-delimited):",
    ]
)


def page_marker(page_number: int) -> str:
    return f"--- PAGE {page_number} ---"


def prompt_char_budget(ctx_size: int, predict_tokens: int) -> int:
    max_prompt_tokens = max(MIN_PROMPT_TOKENS, ctx_size - predict_tokens - SAFETY_MARGIN_TOKENS)
    return max_prompt_tokens * CHARS_PER_TOKEN


def _page_body(page: Page) -> str:
    # The marker must only ever mean "the prompt was cut here".
    text = page.text.replace(TRUNCATION_MARKER, "(TRUNCATED)")
    return f"\n{page_marker(page.page_number)}\n{text}"


def build_prompt(pages: list[Page], ctx_size: int = 4096, predict_tokens: int = 1536) -> str:
    """
    Instruction header followed by page-delimited SOP text, bounded by the
    context window.

    When the assembled prompt is over budget the first 70% and the last 30% of
    the available characters are kept verbatim with `[TRUNCATED]` between them.
    The result never exceeds `prompt_char_budget(ctx_size, predict_tokens)`.
    """

    full = PROMPT_HEADER + "".join(_page_body(p) for p in pages)
    budget = prompt_char_budget(ctx_size, predict_tokens)
    if len(full) <= budget:
        return full

    available = budget - len(_MARKER_BLOCK)
    head_len = int(available * HEAD_SHARE)
    tail_len = available - head_len
    tail = full[-tail_len:] if tail_len > 0 else ""
    return full[:head_len] + _MARKER_BLOCK + tail
