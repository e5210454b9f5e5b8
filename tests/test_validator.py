import pytest
from pydantic import ValidationError

from models import CostAnalysisResult, ExtractedCode, TypicalCost
from validator import (
    EXTRACTED_CODE_CONFIDENCE,
    INSURANCE_COVERAGE_RATE,
    PATIENT_RESPONSIBILITY_RATE,
    build_line_item,
    calculate_summary,
    check_overcharges,
    classify_variance,
    code_system_label,
    overcharge_severity,
    run_validations,
)

RANGE = TypicalCost(min=180, median=220, max=260)


def make_item(billed: float, low: float = 180, median: float = 220, high: float = 260, code: str = "99213"):
    result = CostAnalysisResult(
        units=1,
        billed_amount=billed,
        typical_cost=TypicalCost(min=low, median=median, max=high),
    )
    return build_line_item(ExtractedCode(code=code, description=f"Service {code}"), result)


@pytest.mark.parametrize(
    "billed, expected",
    [
        (285, "above"),
        (260.01, "above"),
        (260, "within"),
        (220, "within"),
        (180, "within"),
        (179.99, "below"),
        (0, "below"),
    ],
)
def test_classify_variance_boundaries(billed: float, expected: str) -> None:
    assert classify_variance(billed, RANGE) == expected


def test_typical_cost_rejects_out_of_order_range() -> None:
    with pytest.raises(ValidationError):
        TypicalCost(min=300, median=220, max=260)


@pytest.mark.parametrize("billed, correctable", [(285, True), (220, False), (100, True)])
def test_correctable_iff_not_within(billed: float, correctable: bool) -> None:
    item = make_item(billed)

    assert item.actions.correctable is correctable
    assert item.actions.flaggable is True
    assert item.actions.negotiable is True


def test_line_item_assembly() -> None:
    first = make_item(285)
    second = make_item(285)

    assert first.id != second.id
    assert first.code.value == "99213"
    assert first.code.status == "verified"
    assert first.code.confidence == EXTRACTED_CODE_CONFIDENCE
    assert first.raw_description == first.normalized_description == "Service 99213"
    assert first.source == "analysis"
    assert first.insurer.allowed_amount is None


@pytest.mark.parametrize(
    "percentage, severity",
    [(0.0, "low"), (20.0, "low"), (20.1, "med"), (50.0, "med"), (50.1, "high"), (300.0, "high")],
)
def test_severity_tiers(percentage: float, severity: str) -> None:
    assert overcharge_severity(percentage) == severity


@pytest.mark.parametrize("billed, severity", [(120, "low"), (120.1, "med"), (150, "med"), (150.1, "high")])
def test_severity_from_billed_amounts(billed: float, severity: str) -> None:
    flags = check_overcharges([make_item(billed, low=50, median=80, high=100)])

    assert len(flags) == 1
    assert flags[0].severity == severity


def test_office_visit_overcharge_rationale() -> None:
    item = make_item(285)

    flags = run_validations([item])

    assert len(flags) == 1
    flag = flags[0]
    assert flag.item_id == item.id
    assert flag.type == "overcharge"
    assert flag.severity == "low"
    assert flag.rationale == "Billed amount $285.00 exceeds typical maximum of $260.00 by $25.00 (9.6%)"


def test_flags_only_for_items_above_range() -> None:
    items = [make_item(285), make_item(220), make_item(100), make_item(900, code="99214")]

    flags = run_validations(items)

    above_ids = {item.id for item in items if item.variance == "above"}
    assert {flag.item_id for flag in flags} == above_ids
    assert len(flags) == len(above_ids) == 2
    for flag in flags:
        item = next(i for i in items if i.id == flag.item_id)
        assert item.billed_amount - item.typical_cost.max >= 0


def test_summary_totals_and_split() -> None:
    items = [make_item(285), make_item(100), make_item(500, low=200, median=350, high=600)]

    summary = calculate_summary(items)

    assert summary.billed_total == pytest.approx(885)
    assert summary.estimated_fair_total == pytest.approx(220 + 220 + 350)
    assert summary.estimated_insurance_covered == pytest.approx(790 * INSURANCE_COVERAGE_RATE)
    assert summary.patient_responsibility == pytest.approx(790 * PATIENT_RESPONSIBILITY_RATE)
    assert summary.estimated_insurance_covered + summary.patient_responsibility == pytest.approx(summary.estimated_fair_total)
    assert summary.potential_savings == pytest.approx(885 - 790)


def test_summary_savings_never_negative() -> None:
    summary = calculate_summary([make_item(100)])

    assert summary.billed_total - summary.estimated_fair_total < 0
    assert summary.potential_savings == 0


def test_summary_of_no_items_is_all_zero() -> None:
    summary = calculate_summary([])

    assert summary.billed_total == 0
    assert summary.estimated_fair_total == 0
    assert summary.potential_savings == 0


def test_line_items_serialize_with_camel_case_keys() -> None:
    payload = make_item(285).model_dump(by_alias=True)

    assert payload["billedAmount"] == 285
    assert payload["typicalCost"] == {"min": 180, "median": 220, "max": 260}
    assert payload["actions"]["correctable"] is True
    assert "rawDescription" in payload


@pytest.mark.parametrize(
    "system_name, label",
    [
        ("SNOMED_CT_US_LITE", "SNOMED"),
        ("snomed_ct", "SNOMED"),
        ("ICD10CM", "ICD10"),
        ("ICD-10-PCS", "ICD10"),
        ("CPT", "CPT"),
        ("HCPCS", "HCPCS"),
        ("LOINC", "Custom"),
    ],
)
def test_code_system_label_follows_the_queried_system(system_name: str, label: str) -> None:
    assert code_system_label(system_name) == label


def test_line_item_carries_given_code_system() -> None:
    result = CostAnalysisResult(units=1, billed_amount=100, typical_cost=RANGE)

    item = build_line_item(ExtractedCode(code="I10", description="Hypertension"), result, code_system="ICD10")

    assert item.code.system == "ICD10"
