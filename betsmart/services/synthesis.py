"""
Remote qualitative synthesis ("debate") client.

The synthesis endpoint receives the component predictions of a consensus
and returns a short moderated verdict:

    {
      "finalPick": "home" | "away" | "draw" | "skip",
      "adjustedConfidence": 40-95,
      "reasoning": "...",
      "biasesIdentified": ["..."],
      "agreementLevel": "unanimous" | "strong" | "split" | "contested",
      "riskFlag": "..."            (optional)
    }

The call is best-effort: one attempt with an explicit timeout, no retries.
Every transport error, non-2xx status and malformed body is raised as
:class:`SynthesisError`; the ensemble layer turns that into a local-only
result.
"""

import asyncio
import logging
import os
from typing import Any, Dict, List, Literal, Optional

import requests
from pydantic import BaseModel, Field, ValidationError

from betsmart.core.errors import SynthesisError
from betsmart.core.interfaces import SynthesisClient, SynthesisResult

logger = logging.getLogger(__name__)

SYNTHESIS_URL = os.getenv("SYNTHESIS_URL")
SYNTHESIS_API_KEY = os.getenv("SYNTHESIS_API_KEY")
DEFAULT_TIMEOUT_SECONDS = float(os.getenv("SYNTHESIS_TIMEOUT_SECONDS", "8"))


class SynthesisResponse(BaseModel):
    """Wire shape of a synthesis response body."""

    final_pick: Literal["home", "away", "draw", "skip"] = Field(..., alias="finalPick")
    adjusted_confidence: float = Field(..., ge=0, le=100, alias="adjustedConfidence")
    reasoning: str = Field(..., min_length=1)
    biases_identified: List[str] = Field(default_factory=list, alias="biasesIdentified")
    agreement_level: Optional[Literal["unanimous", "strong", "split", "contested"]] = Field(
        None, alias="agreementLevel"
    )
    risk_flag: Optional[str] = Field(None, alias="riskFlag")

    model_config = {"populate_by_name": True}

    def to_result(self) -> SynthesisResult:
        return SynthesisResult(
            final_pick=self.final_pick,
            adjusted_confidence=self.adjusted_confidence,
            reasoning=self.reasoning,
            biases_identified=tuple(self.biases_identified),
            agreement_level=self.agreement_level,
            risk_flag=self.risk_flag or None,
        )


class HttpSynthesisClient(SynthesisClient):
    """POSTs the synthesis payload as JSON with ``requests``."""

    client_name = "http"

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.url = url or SYNTHESIS_URL
        if not self.url:
            raise ValueError("SYNTHESIS_URL not set in environment")
        self.api_key = api_key or SYNTHESIS_API_KEY
        self.timeout = timeout if timeout is not None else DEFAULT_TIMEOUT_SECONDS

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = requests.post(
                self.url, json=payload, headers=self._headers(), timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as e:
            raise SynthesisError(f"Synthesis request failed: {e}") from e
        except ValueError as e:
            raise SynthesisError(f"Synthesis response is not JSON: {e}") from e

        if not isinstance(body, dict):
            raise SynthesisError(
                f"Synthesis response must be a JSON object, got {type(body).__name__}"
            )
        return body

    async def synthesize(self, payload: Dict[str, Any]) -> SynthesisResult:
        body = await asyncio.to_thread(self._post, payload)
        try:
            parsed = SynthesisResponse.model_validate(body)
        except ValidationError as e:
            raise SynthesisError(
                f"Malformed synthesis response ({e.error_count()} errors)"
            ) from e

        logger.info(
            "Synthesis for %s: pick=%s confidence=%.1f",
            payload.get("matchTitle", "?"),
            parsed.final_pick,
            parsed.adjusted_confidence,
        )
        return parsed.to_result()


def client_from_env() -> Optional[HttpSynthesisClient]:
    """Build a client when ``SYNTHESIS_URL`` is configured, else ``None``."""
    if not os.getenv("SYNTHESIS_URL"):
        return None
    return HttpSynthesisClient(url=os.getenv("SYNTHESIS_URL"))
