# cost_analyzer.py

import logging
import math
import random
from typing import List, Optional, Tuple

from fastapi import HTTPException
from pydantic import ValidationError

from llm_service import LLMService
from models import CostAnalysisResult, ExtractedCode, FallbackArchetype, TypicalCost
from prompts import SYSTEM_PROMPT, get_cost_analysis_prompt
from response_parser import ParseFailure, extract_json_object

logger = logging.getLogger(__name__)

# An archetype is "close" to the target when its billed amount is within this relative distance.
SIMILAR_AMOUNT_TOLERANCE = 0.5


class CostAnalysisError(Exception):
    """The model's reply could not be turned into a usable cost analysis."""

    def __init__(self, message: str, billed_amount: Optional[float] = None):
        super().__init__(message)
        self.billed_amount = billed_amount


class FallbackSynthesizer:
    """Produces plausible cost figures from the archetype corpus when real analysis is unavailable."""

    def __init__(self, archetypes: List[FallbackArchetype], rng: Optional[random.Random] = None):
        if not archetypes:
            raise ValueError("FallbackSynthesizer needs at least one archetype.")
        self.archetypes = list(archetypes)
        self.rng = rng or random.Random()

    def synthesize(self, target_amount: Optional[float] = None) -> CostAnalysisResult:
        """
        Picks a random archetype. With a target amount, an archetype billed within
        50% of the target wins; failing that, the random pick is rescaled so its
        billed amount equals the target and its cost range keeps its proportions.
        """
        chosen = self.rng.choice(self.archetypes)

        if target_amount:
            similar = next(
                (a for a in self.archetypes
                 if abs(a.billed_amount - target_amount) / target_amount < SIMILAR_AMOUNT_TOLERANCE),
                None,
            )
            if similar is not None:
                chosen = similar
            else:
                ratio = target_amount / chosen.billed_amount
                chosen = FallbackArchetype(
                    service_type=chosen.service_type,
                    units=chosen.units,
                    billed_amount=target_amount,
                    typical_cost=TypicalCost(
                        min=round(chosen.typical_cost.min * ratio),
                        median=round(chosen.typical_cost.median * ratio),
                        max=round(chosen.typical_cost.max * ratio),
                    ),
                )

        logger.info(
            "Using fallback response: %s (Units: %d, Billed: $%.2f)",
            chosen.service_type, chosen.units, chosen.billed_amount,
        )
        return CostAnalysisResult(
            units=chosen.units,
            billed_amount=chosen.billed_amount,
            typical_cost=chosen.typical_cost,
            source="fallback",
        )


class CostAnalyzer:
    """Reconciles one extracted code against the bill and the reference cost table."""

    def __init__(self, llm: LLMService, reference_table: str, fallback: FallbackSynthesizer):
        self.llm = llm
        self.reference_table = reference_table
        self.fallback = fallback

    async def analyze(self, code: ExtractedCode, bill_text: str, force_fallback: bool = False) -> CostAnalysisResult:
        """Never fails: any problem with the real analysis yields a fallback result instead of zeros."""
        result, _ = await self.analyze_with_reason(code, bill_text, force_fallback=force_fallback)
        return result

    async def analyze_with_reason(
        self, code: ExtractedCode, bill_text: str, force_fallback: bool = False
    ) -> Tuple[CostAnalysisResult, Optional[str]]:
        """Like analyze(), but also returns why the fallback was used (None when the analysis succeeded)."""
        if force_fallback:
            logger.info("Forcing fallback for code %s", code.code)
            return self.fallback.synthesize(), None

        try:
            logger.info("Analyzing code %s with LLM...", code.code)
            return await self._analyze_with_llm(code, bill_text), None
        except HTTPException as e:
            reason = f"LLM call failed: {e.detail}"
            target = None
        except CostAnalysisError as e:
            reason = str(e)
            target = e.billed_amount

        logger.warning("Cost analysis for code %s failed (%s). Using fallback data.", code.code, reason)
        return self.fallback.synthesize(target), reason

    async def _analyze_with_llm(self, code: ExtractedCode, bill_text: str) -> CostAnalysisResult:
        prompt = get_cost_analysis_prompt(code.code, code.description, bill_text, self.reference_table)
        response = await self.llm.chat(prompt, system_prompt=SYSTEM_PROMPT)

        parsed = extract_json_object(response.content)
        if isinstance(parsed, ParseFailure):
            raise CostAnalysisError(f"No JSON object in LLM reply: {parsed.reason}")

        try:
            result = CostAnalysisResult.model_validate(parsed.value)
        except ValidationError as e:
            raise CostAnalysisError(
                f"Malformed cost analysis ({e.error_count()} validation errors)",
                billed_amount=_usable_amount(parsed.value.get("billedAmount")),
            )

        if result.typical_cost.max <= 0:
            # An all-zero range means the model could not determine costs; a placeholder is more useful.
            raise CostAnalysisError("LLM returned no typical cost", billed_amount=_usable_amount(result.billed_amount))

        return result.model_copy(update={"source": "analysis"})


def _usable_amount(value) -> Optional[float]:
    """A billed amount read from a rejected reply, if it is a positive number."""
    if isinstance(value, bool):
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    return amount if math.isfinite(amount) and amount > 0 else None
