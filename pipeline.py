# pipeline.py
"""
Bill analysis pipeline.

Stages run strictly in order, and per-item work inside a stage runs one item
at a time:

    normalize -> extract codes -> analyze cost per code -> classify & flag -> summarize

Failures in normalization, in a single description's extraction, or in a
single code's cost analysis are recovered locally and reported as
diagnostics. Only empty input and a coding-service authentication failure
abort a run.
"""

import logging
import random
from typing import List, Optional

from coding_service import CodingService
from cost_analyzer import CostAnalyzer, FallbackSynthesizer
from extraction import BillNormalizer, CodeExtractor
from llm_service import LLMService
from models import AnalysisData, Diagnostic, LineItem
from reference_store import CostReferenceStore
from validator import build_line_item, calculate_summary, code_system_label, run_validations

logger = logging.getLogger(__name__)


class InvalidBillError(ValueError):
    """The bill text is empty or unreadable."""


def load_bill_text(path: str) -> str:
    """Reads an itemized bill from disk."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidBillError(f"Could not load medical bill file at {path}: {e}") from e
    if not text.strip():
        raise InvalidBillError(f"Medical bill file at {path} is empty.")
    return text


class BillAnalysisPipeline:
    def __init__(
        self,
        llm: LLMService,
        coding: CodingService,
        store: CostReferenceStore,
        rng: Optional[random.Random] = None,
    ):
        self.coding = coding
        self.normalizer = BillNormalizer(llm)
        self.extractor = CodeExtractor(coding)
        self.cost_analyzer = CostAnalyzer(
            llm,
            reference_table=store.reference_table,
            fallback=FallbackSynthesizer(store.archetypes, rng=rng),
        )

    @classmethod
    def from_settings(cls, store: Optional[CostReferenceStore] = None) -> "BillAnalysisPipeline":
        """Builds a pipeline with fresh collaborator clients, so no session state leaks between runs."""
        return cls(LLMService(), CodingService(), store or CostReferenceStore())

    async def analyze(self, bill_text: str, force_fallback: bool = False) -> AnalysisData:
        """Runs the full analysis. Always returns a complete result for non-empty bill text."""
        if bill_text is None or not bill_text.strip():
            raise InvalidBillError("Bill text is empty.")

        logger.info("=== Starting medical bill analysis (%d characters) ===", len(bill_text))
        diagnostics: List[Diagnostic] = []

        descriptions, normalize_diagnostics = await self.normalizer.normalize(bill_text)
        diagnostics.extend(normalize_diagnostics)

        codes, extract_diagnostics = await self.extractor.extract(descriptions)
        diagnostics.extend(extract_diagnostics)

        code_system = code_system_label(self.coding.system.name)
        line_items: List[LineItem] = []
        for extracted in codes:
            logger.info("Processing code: %s - %s", extracted.code, extracted.description)
            result, fallback_reason = await self.cost_analyzer.analyze_with_reason(
                extracted, bill_text, force_fallback=force_fallback
            )
            if fallback_reason:
                diagnostics.append(Diagnostic(stage="cost_analysis", item=extracted.code, detail=fallback_reason))

            item = build_line_item(extracted, result, code_system=code_system)
            line_items.append(item)
            logger.info("  Units: %d, Billed: $%.2f, Variance: %s", item.units, item.billed_amount, item.variance)

        flags = run_validations(line_items)
        summary = calculate_summary(line_items)

        logger.info(
            "=== Analysis complete: billed $%.2f, fair $%.2f, savings $%.2f, %d flags, %d recovered failures ===",
            summary.billed_total, summary.estimated_fair_total, summary.potential_savings,
            len(flags), len(diagnostics),
        )
        return AnalysisData(
            summary=summary,
            line_items=line_items,
            flags=flags,
            coding_system=self.coding.system,
            diagnostics=diagnostics,
        )
