# extraction.py
"""
The first two pipeline stages: rewording the bill as plain-English service
descriptions, then asking the coding service for codes for each description.
"""

import logging
from typing import List, Tuple

from fastapi import HTTPException

from coding_service import CodingService
from llm_service import LLMService
from models import Diagnostic, ExtractedCode
from prompts import SYSTEM_PROMPT, get_normalization_prompt
from response_parser import ParseFailure, extract_json_array

logger = logging.getLogger(__name__)


def _preview(text: str, limit: int = 50) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class BillNormalizer:
    """Turns raw bill text into one short description per billed service."""

    def __init__(self, llm: LLMService):
        self.llm = llm

    async def normalize(self, bill_text: str) -> Tuple[List[str], List[Diagnostic]]:
        """
        Returns the descriptions, or the bill text itself as the only description
        when the model's reply cannot be used. Downstream stages always get at least one entry.
        """
        try:
            response = await self.llm.chat(get_normalization_prompt(bill_text), system_prompt=SYSTEM_PROMPT)
        except HTTPException as e:
            return self._degrade(bill_text, f"LLM call failed: {e.detail}")

        parsed = extract_json_array(response.content)
        if isinstance(parsed, ParseFailure):
            return self._degrade(bill_text, f"No JSON array in LLM reply: {parsed.reason}")

        descriptions = [str(entry).strip() for entry in parsed.value if entry is not None]
        descriptions = [d for d in descriptions if d]
        if not descriptions:
            return self._degrade(bill_text, "LLM returned an empty description list")

        logger.info("Generated %d natural language descriptions", len(descriptions))
        return descriptions, []

    @staticmethod
    def _degrade(bill_text: str, reason: str) -> Tuple[List[str], List[Diagnostic]]:
        logger.warning("Bill normalization failed (%s). Using the original bill text as the only description.", reason)
        diagnostic = Diagnostic(stage="normalization", item=_preview(bill_text), detail=reason)
        return [bill_text], [diagnostic]


class CodeExtractor:
    """Maps each description to zero or more medical codes, isolating failures per description."""

    def __init__(self, coding: CodingService):
        self.coding = coding

    async def extract(self, descriptions: List[str]) -> Tuple[List[ExtractedCode], List[Diagnostic]]:
        # Authentication is not isolated: if it fails, no description can succeed.
        await self.coding.ensure_authenticated()

        all_codes: List[ExtractedCode] = []
        diagnostics: List[Diagnostic] = []
        for index, description in enumerate(descriptions, start=1):
            logger.info("Processing description %d/%d: %r", index, len(descriptions), _preview(description))
            try:
                codes = await self.coding.extract_codes(description)
            except HTTPException as e:
                logger.error("Code extraction failed for description %d: %s", index, e.detail)
                diagnostics.append(Diagnostic(stage="extraction", item=description, detail=str(e.detail)))
                continue
            all_codes.extend(codes)

        logger.info("Total medical codes extracted: %d", len(all_codes))
        return all_codes, diagnostics
