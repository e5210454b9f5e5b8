# validator.py

from typing import Callable, List
from models import (
    AnalysisSummary,
    CodeInfo,
    CostAnalysisResult,
    ExtractedCode,
    Flag,
    LineItem,
    LineItemActions,
    TypicalCost,
    Variance,
)

# --- Policy constants ---
# The coding service proposed the code; nobody adjudicated it independently.
EXTRACTED_CODE_CONFIDENCE = 0.9
EXTRACTED_CODE_SYSTEM = "SNOMED"

# Line items carry a short family label; the coding service names a specific release of it.
CODE_SYSTEM_FAMILIES = (
    ("SNOMED", "SNOMED"),
    ("ICD10", "ICD10"),
    ("ICD-10", "ICD10"),
    ("HCPCS", "HCPCS"),
    ("CPT", "CPT"),
)

# Simplifying assumptions, not real adjudication: the median typical cost is the
# fair price, and insurance covers a flat share of it.
INSURANCE_COVERAGE_RATE = 0.7
PATIENT_RESPONSIBILITY_RATE = 0.3

# Overcharge severity tiers, as a percentage above the typical maximum. Boundaries fall to the lower tier.
HIGH_SEVERITY_THRESHOLD = 50.0
MEDIUM_SEVERITY_THRESHOLD = 20.0


def classify_variance(billed_amount: float, typical_cost: TypicalCost) -> Variance:
    """Places a billed amount relative to its typical cost range. Amounts exactly at a bound are 'within'."""
    if billed_amount > typical_cost.max:
        return "above"
    if billed_amount < typical_cost.min:
        return "below"
    return "within"


def code_system_label(system_name: str) -> str:
    """Maps a coding-service system name such as SNOMED_CT_US_LITE to its line-item label."""
    upper = (system_name or "").upper()
    for prefix, label in CODE_SYSTEM_FAMILIES:
        if upper.startswith(prefix):
            return label
    return "Custom"


def build_line_item(
    extracted: ExtractedCode, result: CostAnalysisResult, code_system: str = EXTRACTED_CODE_SYSTEM
) -> LineItem:
    """Folds one extracted code and its cost analysis into an immutable line item."""
    variance = classify_variance(result.billed_amount, result.typical_cost)
    return LineItem(
        raw_description=extracted.description,
        normalized_description=extracted.description,
        code=CodeInfo(
            system=code_system,
            value=extracted.code,
            confidence=EXTRACTED_CODE_CONFIDENCE,
            status="verified",
        ),
        units=result.units,
        billed_amount=result.billed_amount,
        typical_cost=result.typical_cost,
        variance=variance,
        actions=LineItemActions(
            flaggable=True,
            negotiable=True,
            correctable=variance != "within",
        ),
        source=result.source,
    )


def overcharge_severity(overcharge_percentage: float) -> str:
    if overcharge_percentage > HIGH_SEVERITY_THRESHOLD:
        return "high"
    if overcharge_percentage > MEDIUM_SEVERITY_THRESHOLD:
        return "med"
    return "low"


# --- RULE 1: Overcharge against the typical maximum ---
def check_overcharges(line_items: List[LineItem]) -> List[Flag]:
    """Flags every line item billed above the top of its typical cost range."""
    flags = []
    for item in line_items:
        if item.variance != "above":
            continue

        typical_max = item.typical_cost.max
        overcharge_amount = item.billed_amount - typical_max
        # A zero maximum means any charge at all is an overcharge; report it at the top tier.
        overcharge_percentage = (overcharge_amount / typical_max) * 100 if typical_max > 0 else 100.0

        flags.append(Flag(
            item_id=item.id,
            type="overcharge",
            severity=overcharge_severity(overcharge_percentage),
            rationale=(
                f"Billed amount ${item.billed_amount:,.2f} exceeds typical maximum of ${typical_max:,.2f} "
                f"by ${overcharge_amount:,.2f} ({overcharge_percentage:.1f}%)"
            ),
        ))
    return flags


# codeMismatch, unbundled and duplicate flags have no rule yet; new rules register here.
VALIDATION_RULES: List[Callable[[List[LineItem]], List[Flag]]] = [
    check_overcharges,
]


# --- Main Orchestrator ---
def run_validations(line_items: List[LineItem]) -> List[Flag]:
    """Runs all configured validation rules and returns a list of flags."""
    all_flags = []
    for rule in VALIDATION_RULES:
        all_flags.extend(rule(line_items))
    return all_flags


def calculate_summary(line_items: List[LineItem]) -> AnalysisSummary:
    """Rolls the final line items up into billing totals and the assumed insurance split."""
    billed_total = sum(item.billed_amount for item in line_items)
    estimated_fair_total = sum(item.typical_cost.median for item in line_items)

    return AnalysisSummary(
        billed_total=billed_total,
        estimated_fair_total=estimated_fair_total,
        estimated_insurance_covered=estimated_fair_total * INSURANCE_COVERAGE_RATE,
        patient_responsibility=estimated_fair_total * PATIENT_RESPONSIBILITY_RATE,
        potential_savings=max(0.0, billed_total - estimated_fair_total),
    )
