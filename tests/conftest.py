"""
Shared fixtures for the pipeline tests.

The two remote collaborators are replaced with small in-memory stand-ins so
the pipeline stages can be exercised without any network access.
"""

import json
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest
from fastapi import HTTPException

from models import ChatResponse, CodingSystem, ExtractedCode
from reference_store import CostReferenceStore

OFFICE_VISIT_BILL = (
    "CITY CLINIC - ITEMIZED STATEMENT\n"
    "03/14/2025  Office Visit  1  $285.00\n"
    "Reference: typical $180-220-260\n"
)

GENERIC_ARCHETYPE_RECORD = {
    "serviceType": "generic",
    "units": 1,
    "billedAmount": 500,
    "typicalCost": {"min": 200, "median": 350, "max": 600},
}

Reply = Union[str, Exception]


class StubLLM:
    """Answers normalization prompts with one reply and cost prompts with a per-code reply."""

    def __init__(self, normalization: Reply = "[]", cost_replies: Optional[Dict[str, Reply]] = None, default_cost: Reply = "no json here"):
        self.normalization = normalization
        self.cost_replies = cost_replies or {}
        self.default_cost = default_cost
        self.prompts: List[str] = []

    async def chat(self, prompt: str, system_prompt: Optional[str] = None, temperature: Optional[float] = None) -> ChatResponse:
        self.prompts.append(prompt)
        match = re.search(r"MEDICAL CODE: (\S+)", prompt)
        reply = self.cost_replies.get(match.group(1), self.default_cost) if match else self.normalization
        if isinstance(reply, Exception):
            raise reply
        return ChatResponse(content=reply, model="stub-model")


class StubCoding:
    """Returns canned codes per description; an Exception value is raised instead."""

    def __init__(self, codes_by_text: Dict[str, Union[List[ExtractedCode], Exception]], auth_error: Optional[Exception] = None):
        self.codes_by_text = codes_by_text
        self.auth_error = auth_error
        self.system = CodingSystem(name="SNOMED_CT_US_LITE", version="20240901")
        self.auth_calls = 0
        self.extract_calls: List[str] = []

    async def ensure_authenticated(self) -> None:
        self.auth_calls += 1
        if self.auth_error is not None:
            raise self.auth_error

    async def extract_codes(self, text: str) -> List[ExtractedCode]:
        self.extract_calls.append(text)
        result = self.codes_by_text.get(text, [])
        if isinstance(result, Exception):
            raise result
        return result


def upstream_error(detail: str = "Coding service returned an error: 500.") -> HTTPException:
    return HTTPException(status_code=502, detail=detail)


@pytest.fixture
def mappings_file(tmp_path: Path) -> Path:
    path = tmp_path / "mappings.txt"
    path.write_text("99213 | Office visit, established patient | 180 | 220 | 260\n", encoding="utf-8")
    return path


@pytest.fixture
def single_archetype_file(tmp_path: Path) -> Path:
    path = tmp_path / "fallback-data.json"
    path.write_text(json.dumps({"fallbackResponses": [GENERIC_ARCHETYPE_RECORD]}), encoding="utf-8")
    return path


@pytest.fixture
def store(mappings_file: Path, single_archetype_file: Path) -> CostReferenceStore:
    return CostReferenceStore(mappings_path=str(mappings_file), fallback_path=str(single_archetype_file))


@pytest.fixture
def office_visit_code() -> ExtractedCode:
    return ExtractedCode(code="99213", description="Office or outpatient visit, established patient", rationale="Office visit billed")
