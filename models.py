from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional
import uuid

Variance = Literal["above", "within", "below"]
Severity = Literal["low", "med", "high"]
# Only "overcharge" has a generator today; the other flag types are reserved for future rule sets.
FlagType = Literal["overcharge", "codeMismatch", "unbundled", "duplicate"]
CostSource = Literal["analysis", "fallback"]


class CamelModel(BaseModel):
    """Base for every model that travels over the API: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False)


# =====================================================================================
# Domain entities
# =====================================================================================

class TypicalCost(CamelModel):
    """A reference cost range for a single service."""
    min: float = Field(..., ge=0, description="Lowest typical cost for the service.")
    median: float = Field(..., ge=0, description="Median typical cost; used as the fair price.")
    max: float = Field(..., ge=0, description="Highest typical cost for the service.")

    @model_validator(mode="after")
    def check_ordering(self) -> "TypicalCost":
        if not (self.min <= self.median <= self.max):
            raise ValueError(
                f"typical cost must satisfy min <= median <= max, got {self.min}/{self.median}/{self.max}"
            )
        return self


class CodeInfo(CamelModel):
    system: Literal["CPT", "HCPCS", "ICD10", "SNOMED", "Custom"]
    value: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    status: Literal["verified", "suggested", "uncertain"]


class SuggestedCode(CamelModel):
    system: str
    value: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    rationale: str


class InsurerInfo(CamelModel):
    allowed_amount: Optional[float] = None
    covered_amount: Optional[float] = None
    patient_responsibility: Optional[float] = None


class LineItemActions(CamelModel):
    flaggable: bool = True
    negotiable: bool = True
    correctable: bool = False


class LineItem(CamelModel):
    """One billed service with its code and fair-cost comparison. Immutable once built."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False, frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Opaque unique identifier.")
    raw_description: str
    normalized_description: str
    code: Optional[CodeInfo] = None
    suggested_code: Optional[SuggestedCode] = None
    units: int = Field(..., ge=0)
    billed_amount: float = Field(..., ge=0)
    typical_cost: TypicalCost
    insurer: InsurerInfo = Field(default_factory=InsurerInfo)
    variance: Variance
    actions: LineItemActions
    source: CostSource = Field("analysis", description="Whether the cost figures came from analysis or a fallback archetype.")


class Flag(CamelModel):
    """A billing anomaly attached to a line item."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False, frozen=True)

    item_id: str
    type: FlagType
    severity: Severity
    rationale: str


class AnalysisSummary(CamelModel):
    billed_total: float
    estimated_fair_total: float
    estimated_insurance_covered: float
    patient_responsibility: float
    potential_savings: float


class Diagnostic(CamelModel):
    """A failure that the pipeline recovered from locally."""
    stage: Literal["normalization", "extraction", "cost_analysis"]
    item: str = Field(..., description="The description or code that failed.")
    detail: str


class CodingSystem(BaseModel):
    name: str
    version: str


class AnalysisData(CamelModel):
    """The complete result of one pipeline run."""
    summary: AnalysisSummary
    line_items: List[LineItem] = Field(default_factory=list)
    flags: List[Flag] = Field(default_factory=list)
    coding_system: Optional[CodingSystem] = None
    diagnostics: List[Diagnostic] = Field(default_factory=list)


# =====================================================================================
# Transient pipeline records
# =====================================================================================

class ExtractedCode(BaseModel):
    """A code returned by the coding collaborator for one description."""
    code: str
    description: str
    rationale: Optional[str] = None


class FallbackArchetype(CamelModel):
    """A precomputed plausible cost record used when real analysis is unavailable."""
    service_type: str = "generic"
    units: int = Field(..., ge=0)
    billed_amount: float = Field(..., gt=0)
    typical_cost: TypicalCost


class CostAnalysisResult(CamelModel):
    units: int = Field(..., ge=0)
    billed_amount: float = Field(..., ge=0)
    typical_cost: TypicalCost
    source: CostSource = "analysis"


# =====================================================================================
# Collaborator payloads
# =====================================================================================

class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    model: str
    messages: List[ChatMessage]
    max_completion_tokens: int = 4000
    temperature: Optional[float] = None


class ChatUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    content: str
    model: str
    usage: Optional[ChatUsage] = None


class CodeExtractConfig(BaseModel):
    chunking_method: str = "none"
    max_codes_per_chunk: int = 20
    code_similarity_filter: float = 0.9
    include_rationale: bool = True


class CodeExtractRequest(BaseModel):
    text: str
    system: CodingSystem
    config: CodeExtractConfig = Field(default_factory=CodeExtractConfig)


class CodeExtractResponse(BaseModel):
    # Required: a reply without a codes field is a contract violation.
    codes: List[ExtractedCode]


# =====================================================================================
# API payloads
# =====================================================================================

class AnalyzeRequest(CamelModel):
    """Request body for the analysis endpoint."""
    bill_text: Optional[str] = Field(None, description="Raw itemized bill text. Falls back to the configured default bill.")
    force_fallback: bool = Field(False, description="Skip cost analysis and use fallback archetypes (testing aid).")
