"""Request and response models for the HL7 explainer gateway."""

from typing import Dict, Optional

from pydantic import BaseModel, Field


class ExplainRequest(BaseModel):
    """Incoming /explain body.

    ``hl7`` is optional at the schema level so a missing field is reported as
    a 400 by the gateway rather than a schema error.
    """

    hl7: Optional[str] = Field(
        default=None, description="Raw HL7 message text to explain"
    )


class ExplainResponse(BaseModel):
    """Successful explanation envelope."""

    explanation: str


class ErrorResponse(BaseModel):
    """Error response envelope."""

    error: str


class StatsResponse(BaseModel):
    """Usage snapshot returned by /stats."""

    total_requests: int = Field(serialization_alias="totalRequests")
    failures: int
    total_tokens: int = Field(serialization_alias="totalTokens")
    country_counts: Dict[str, int] = Field(
        default_factory=dict, serialization_alias="countryCounts"
    )
    estimated_cost_usd: float = Field(serialization_alias="estimatedCostUSD")
