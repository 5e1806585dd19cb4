from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Tuple

import httpx
from openai import OpenAI

from estimate_engine import SelectionState
from pricing_catalog import PricingCatalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Proposal:
    summary: str
    technical_challenges: Tuple[str, ...] = ()
    recommended_stack: Tuple[str, ...] = ()
    timeline_estimation: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "technicalChallenges": list(self.technical_challenges),
            "recommendedStack": list(self.recommended_stack),
            "timelineEstimation": self.timeline_estimation,
        }


# Shown whenever the remote service cannot be used at all.
FALLBACK_PROPOSAL = Proposal(
    summary="システム要件に基づき、最適なプランをご提案します。",
    technical_challenges=("詳細要件の定義", "スケーラビリティの確保"),
    recommended_stack=("React", "TypeScript", "Node.js"),
    timeline_estimation="要相談",
)

NO_FEATURES_PLACEHOLDER = "基本機能のみ"

PROPOSAL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
        "technicalChallenges": {"type": "array", "items": {"type": "string"}},
        "recommendedStack": {"type": "array", "items": {"type": "string"}},
        "timelineEstimation": {"type": "string"},
    },
    "required": ["summary", "technicalChallenges", "recommendedStack", "timelineEstimation"],
    "additionalProperties": False,
}

DEFAULT_MODEL = "gpt-5-mini"
DEFAULT_TIMEOUT_S = 20.0
MIN_TIMEOUT_S = 15.0
MAX_TIMEOUT_S = 30.0


def _truthy(value: str, *, default: bool) -> bool:
    v = str(value or "").strip().lower()
    if not v:
        return default
    return v in {"1", "true", "yes", "y", "on"}


def _clamp_timeout(value: str) -> float:
    try:
        f = float(value)
    except (TypeError, ValueError):
        return DEFAULT_TIMEOUT_S
    if f != f:  # NaN
        return DEFAULT_TIMEOUT_S
    return max(MIN_TIMEOUT_S, min(MAX_TIMEOUT_S, f))


@dataclass(frozen=True)
class ProposalConfig:
    api_key: str = ""
    model: str = DEFAULT_MODEL
    timeout_s: float = DEFAULT_TIMEOUT_S
    enabled: bool = True

    @property
    def usable(self) -> bool:
        return self.enabled and bool(self.api_key.strip())

    @classmethod
    def from_env(cls, getter: Callable[[str], str]) -> "ProposalConfig":
        """
        Build the config from a key -> string reader (Streamlit secrets, env, or a test dict).

        Missing values never raise; a missing API key just means every request falls back.
        """
        return cls(
            api_key=str(getter("OPENAI_API_KEY") or "").strip(),
            model=str(getter("PROPOSAL_MODEL") or "").strip() or DEFAULT_MODEL,
            timeout_s=_clamp_timeout(getter("PROPOSAL_TIMEOUT_S")),
            enabled=_truthy(getter("PROPOSAL_AI_ENABLED"), default=True),
        )


def build_proposal_prompt(state: SelectionState, catalog: PricingCatalog) -> tuple[str, str]:
    """
    Build the (system, user) prompt pair describing the visitor's selections.
    """
    category_label = catalog.category_label(state.category)
    scale_label = catalog.scale_label(state.scale)
    feature_labels = "、".join(catalog.feature_labels(state.selected_features))
    design_text = (
        "Yes (Client provides assets)" if state.design_provided else "No (Need to create from scratch)"
    )

    system = (
        "You are a senior system architect.\n"
        "You MUST output ONLY a single JSON object (no markdown, no commentary).\n"
        "Keep the tone professional, encouraging, and trustworthy. Japanese language ONLY.\n"
    )
    user = (
        "Create a professional, concise project proposal summary for a potential client.\n\n"
        "Project Parameters:\n"
        f"- Type: {category_label}\n"
        f"- Scale: {scale_label}\n"
        f"- Design Provided: {design_text}\n"
        f"- Key Features: {feature_labels or NO_FEATURES_PLACEHOLDER}\n"
        f"- Maintenance Required: {'Yes' if state.wants_maintenance else 'No'}\n\n"
        "Return JSON with shape:\n"
        f"{json.dumps(PROPOSAL_SCHEMA, indent=2)}\n\n"
        "- summary: a professional summary of the project vision (max 2 sentences)\n"
        "- technicalChallenges: 2-3 short items\n"
        "- recommendedStack: 3-5 technologies\n"
        "- timelineEstimation: estimated duration (e.g. 2-3ヶ月)\n"
    )
    return system, user


_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def _extract_json_object(text: str) -> Optional[dict[str, Any]]:
    """
    Parse the text as JSON, or failing that the first {...} span inside it.
    """
    t = (text or "").strip()
    if not t:
        return None
    try:
        payload = json.loads(t)
        return payload if isinstance(payload, dict) else None
    except json.JSONDecodeError:
        pass

    m = _JSON_OBJECT_RE.search(t)
    if not m:
        return None
    try:
        payload = json.loads(m.group(0))
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


def _string_list(value: Any) -> Optional[Tuple[str, ...]]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        return None
    return tuple(v.strip() for v in value if v.strip())


def parse_proposal_text(text: str) -> Proposal:
    """
    Turn the model's text into a Proposal.

    Text that is not a conforming JSON object becomes a degraded Proposal carrying
    the raw text as its summary; parse problems are never raised.
    """
    payload = _extract_json_object(text)
    if payload is not None:
        summary = payload.get("summary")
        challenges = _string_list(payload.get("technicalChallenges"))
        stack = _string_list(payload.get("recommendedStack"))
        timeline = payload.get("timelineEstimation", "")
        if (
            isinstance(summary, str)
            and summary.strip()
            and challenges is not None
            and stack is not None
            and isinstance(timeline, str)
        ):
            return Proposal(
                summary=summary.strip(),
                technical_challenges=challenges,
                recommended_stack=stack,
                timeline_estimation=timeline.strip(),
            )

    logger.warning("Proposal response did not match the schema; using raw text (%d chars)", len(text or ""))
    return Proposal(summary=text, technical_challenges=(), recommended_stack=(), timeline_estimation="")


ProposalTransport = Callable[[str, str], str]


@dataclass
class OpenAIProposalTransport:
    """
    Sends the prompt to the OpenAI Responses API with a structured-output schema.

    Returns the response text; any transport or service failure propagates to the caller.
    """

    config: ProposalConfig
    _client: Optional[OpenAI] = field(default=None, init=False, repr=False)

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                api_key=self.config.api_key,
                timeout=httpx.Timeout(self.config.timeout_s, connect=5.0),
                max_retries=0,
            )
        return self._client

    def __call__(self, system: str, user: str) -> str:
        resp = self._get_client().responses.create(
            model=self.config.model,
            input=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            text={
                "format": {
                    "type": "json_schema",
                    "name": "project_proposal",
                    "schema": PROPOSAL_SCHEMA,
                    "strict": True,
                }
            },
        )
        return (resp.output_text or "").strip()


class ProposalGenerator:
    """
    Produces a Proposal for a finished selection, degrading instead of failing:

    - conforming JSON -> structured Proposal
    - any other text -> Proposal with the raw text as summary
    - no key, timeout, network/auth/service error, empty reply -> FALLBACK_PROPOSAL
    """

    def __init__(
        self,
        config: ProposalConfig,
        catalog: PricingCatalog,
        transport: Optional[ProposalTransport] = None,
    ) -> None:
        self.config = config
        self.catalog = catalog
        self._transport = transport

    @property
    def transport(self) -> ProposalTransport:
        if self._transport is None:
            self._transport = OpenAIProposalTransport(self.config)
        return self._transport

    def generate(self, state: SelectionState) -> Proposal:
        if not self.config.usable:
            logger.warning("Proposal generation unavailable (AI disabled or OPENAI_API_KEY missing); using fallback")
            return FALLBACK_PROPOSAL

        system, user = build_proposal_prompt(state, self.catalog)
        try:
            text = self.transport(system, user)
        except Exception as exc:
            logger.warning("Proposal request failed (%s: %s); using fallback", type(exc).__name__, exc)
            return FALLBACK_PROPOSAL

        if not isinstance(text, str) or not text.strip():
            logger.warning("Proposal service returned an empty response; using fallback")
            return FALLBACK_PROPOSAL

        logger.info("Proposal generated with model %s", self.config.model)
        return parse_proposal_text(text)
