from __future__ import annotations

import json
import unittest
from types import SimpleNamespace
from typing import Any, Optional

import httpx
from openai import OpenAI

import ai_proposal
from ai_proposal import (
    FALLBACK_PROPOSAL,
    NO_FEATURES_PLACEHOLDER,
    PROPOSAL_SCHEMA,
    OpenAIProposalTransport,
    Proposal,
    ProposalConfig,
    ProposalGenerator,
    build_proposal_prompt,
    parse_proposal_text,
)
from estimate_engine import SelectionState
from pricing_catalog import ProjectCategory, ScaleTier, load_default_catalog


class _RecordingTransport:
    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def __call__(self, system: str, user: str) -> str:
        self.calls.append((system, user))
        if self.error is not None:
            raise self.error
        return self.reply


_CONFIG = ProposalConfig(api_key="sk-test", model="test-model", timeout_s=20.0)

_GOOD_REPLY = json.dumps(
    {
        "summary": "業務効率化のためのWebシステムを構築します。",
        "technicalChallenges": ["決済の安全性", "認証基盤"],
        "recommendedStack": ["Next.js", "PostgreSQL"],
        "timelineEstimation": "2-3ヶ月",
    },
    ensure_ascii=False,
)


class TestProposalPrompt(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = load_default_catalog()

    def test_prompt_lists_labels_and_flags(self) -> None:
        state = SelectionState(
            ProjectCategory.WEB,
            ScaleTier.MEDIUM,
            selected_features=("auth", "payment"),
            design_provided=False,
            wants_maintenance=True,
        )
        _, user = build_proposal_prompt(state, self.catalog)
        self.assertIn("Type: Web System", user)
        self.assertIn("Scale: 中規模 (10~30画面)", user)
        self.assertIn("会員管理・認証、決済・サブスク", user)
        self.assertIn("No (Need to create from scratch)", user)
        self.assertIn("Maintenance Required: Yes", user)

    def test_prompt_uses_placeholder_without_features(self) -> None:
        _, user = build_proposal_prompt(SelectionState.default(self.catalog), self.catalog)
        self.assertIn(f"Key Features: {NO_FEATURES_PLACEHOLDER}", user)
        self.assertIn("Yes (Client provides assets)", user)


class TestParseProposalText(unittest.TestCase):
    def test_conforming_json(self) -> None:
        proposal = parse_proposal_text(_GOOD_REPLY)
        self.assertEqual(proposal.summary, "業務効率化のためのWebシステムを構築します。")
        self.assertEqual(proposal.recommended_stack, ("Next.js", "PostgreSQL"))
        self.assertEqual(proposal.technical_challenges, ("決済の安全性", "認証基盤"))
        self.assertEqual(proposal.timeline_estimation, "2-3ヶ月")

    def test_json_inside_markdown_fence(self) -> None:
        proposal = parse_proposal_text(f"```json\n{_GOOD_REPLY}\n```")
        self.assertEqual(proposal.timeline_estimation, "2-3ヶ月")

    def test_plain_text_becomes_summary(self) -> None:
        raw = "申し訳ありませんが、JSONでは回答できません。"
        proposal = parse_proposal_text(raw)
        self.assertEqual(proposal, Proposal(summary=raw))
        self.assertEqual(proposal.technical_challenges, ())
        self.assertEqual(proposal.recommended_stack, ())
        self.assertEqual(proposal.timeline_estimation, "")

    def test_wrong_field_types_fall_back_to_raw_text(self) -> None:
        raw = json.dumps({"summary": "概要", "recommendedStack": "React"})
        proposal = parse_proposal_text(raw)
        self.assertEqual(proposal.summary, raw)
        self.assertEqual(proposal.recommended_stack, ())

    def test_json_array_is_not_a_proposal(self) -> None:
        raw = '["a", "b"]'
        self.assertEqual(parse_proposal_text(raw).summary, raw)


class TestProposalGenerator(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = load_default_catalog()
        self.state = SelectionState(ProjectCategory.APP, ScaleTier.SMALL, selected_features=("ai",))

    def test_structured_success(self) -> None:
        transport = _RecordingTransport(reply=_GOOD_REPLY)
        generator = ProposalGenerator(_CONFIG, self.catalog, transport=transport)
        proposal = generator.generate(self.state)
        self.assertEqual(proposal.recommended_stack, ("Next.js", "PostgreSQL"))
        self.assertEqual(len(transport.calls), 1)
        self.assertIn("Native App", transport.calls[0][1])

    def test_non_conforming_text_yields_raw_summary(self) -> None:
        transport = _RecordingTransport(reply="not json at all")
        proposal = ProposalGenerator(_CONFIG, self.catalog, transport=transport).generate(self.state)
        self.assertEqual(proposal.summary, "not json at all")
        self.assertEqual(proposal.technical_challenges, ())
        self.assertEqual(proposal.recommended_stack, ())

    def test_transport_failure_yields_fallback(self) -> None:
        for error in (
            RuntimeError("service unavailable"),
            httpx.ConnectError("connection refused"),
            httpx.ReadTimeout("timed out"),
        ):
            transport = _RecordingTransport(error=error)
            with self.assertLogs("ai_proposal", level="WARNING"):
                proposal = ProposalGenerator(_CONFIG, self.catalog, transport=transport).generate(self.state)
            self.assertIs(proposal, FALLBACK_PROPOSAL)
            self.assertTrue(proposal.summary)

    def test_missing_key_never_calls_transport(self) -> None:
        transport = _RecordingTransport(reply=_GOOD_REPLY)
        generator = ProposalGenerator(ProposalConfig(api_key=""), self.catalog, transport=transport)
        self.assertIs(generator.generate(self.state), FALLBACK_PROPOSAL)
        self.assertEqual(transport.calls, [])

    def test_disabled_config_uses_fallback(self) -> None:
        transport = _RecordingTransport(reply=_GOOD_REPLY)
        config = ProposalConfig(api_key="sk-test", enabled=False)
        self.assertIs(ProposalGenerator(config, self.catalog, transport=transport).generate(self.state), FALLBACK_PROPOSAL)
        self.assertEqual(transport.calls, [])

    def test_empty_reply_is_treated_as_service_failure(self) -> None:
        transport = _RecordingTransport(reply="   ")
        proposal = ProposalGenerator(_CONFIG, self.catalog, transport=transport).generate(self.state)
        self.assertIs(proposal, FALLBACK_PROPOSAL)


class _FakeResponses:
    def __init__(self, output_text: Optional[str]) -> None:
        self.output_text = output_text
        self.calls: list[dict[str, Any]] = []

    def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        return SimpleNamespace(output_text=self.output_text)


class _FakeOpenAIClient:
    def __init__(self, init_kwargs: dict[str, Any], output_text: Optional[str]) -> None:
        self.init_kwargs = init_kwargs
        self.responses = _FakeResponses(output_text)


class TestOpenAIProposalTransport(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = load_default_catalog()
        self.state = SelectionState.default(self.catalog)
        self.output_text: Optional[str] = _GOOD_REPLY
        self.clients: list[_FakeOpenAIClient] = []

        def _factory(**kwargs: Any) -> _FakeOpenAIClient:
            client = _FakeOpenAIClient(kwargs, self.output_text)
            self.clients.append(client)
            return client

        original = ai_proposal.OpenAI
        ai_proposal.OpenAI = _factory  # type: ignore[assignment]
        self.addCleanup(setattr, ai_proposal, "OpenAI", original)

    def test_client_is_bounded_and_never_retries(self) -> None:
        config = ProposalConfig(api_key="sk-test", model="test-model", timeout_s=17.0)
        OpenAIProposalTransport(config)("sys", "usr")
        self.assertEqual(len(self.clients), 1)
        init = self.clients[0].init_kwargs
        self.assertEqual(init["api_key"], "sk-test")
        self.assertEqual(init["max_retries"], 0)
        timeout = init["timeout"]
        self.assertIsInstance(timeout, httpx.Timeout)
        self.assertEqual(timeout.read, 17.0)
        self.assertEqual(timeout.connect, 5.0)

    def test_request_carries_prompt_and_schema_format(self) -> None:
        transport = OpenAIProposalTransport(_CONFIG)
        text = transport("system prompt", "user prompt")
        self.assertEqual(json.loads(text)["summary"], "業務効率化のためのWebシステムを構築します。")

        call = self.clients[0].responses.calls[0]
        self.assertEqual(call["model"], "test-model")
        self.assertEqual(
            call["input"],
            [
                {"role": "system", "content": "system prompt"},
                {"role": "user", "content": "user prompt"},
            ],
        )
        fmt = call["text"]["format"]
        self.assertEqual(fmt["type"], "json_schema")
        self.assertEqual(fmt["name"], "project_proposal")
        self.assertIs(fmt["schema"], PROPOSAL_SCHEMA)
        self.assertTrue(fmt["strict"])

    def test_client_is_reused_across_requests(self) -> None:
        transport = OpenAIProposalTransport(_CONFIG)
        transport("a", "b")
        transport("c", "d")
        self.assertEqual(len(self.clients), 1)
        self.assertEqual(len(self.clients[0].responses.calls), 2)

    def test_missing_output_text_becomes_empty_and_falls_back(self) -> None:
        self.output_text = None
        self.assertEqual(OpenAIProposalTransport(_CONFIG)("s", "u"), "")

        with self.assertLogs("ai_proposal", level="WARNING"):
            proposal = ProposalGenerator(_CONFIG, self.catalog).generate(self.state)
        self.assertIs(proposal, FALLBACK_PROPOSAL)
        self.assertEqual(len(self.clients[-1].responses.calls), 1)

    def test_default_transport_parses_structured_reply(self) -> None:
        proposal = ProposalGenerator(_CONFIG, self.catalog).generate(self.state)
        self.assertEqual(proposal.recommended_stack, ("Next.js", "PostgreSQL"))


class TestInstalledOpenAIClient(unittest.TestCase):
    def test_client_exposes_responses_api(self) -> None:
        # Building the client does not touch the network.
        client = OpenAI(api_key="sk-test", max_retries=0)
        self.assertTrue(callable(getattr(getattr(client, "responses", None), "create", None)))


class TestProposalConfig(unittest.TestCase):
    def test_from_env_defaults(self) -> None:
        config = ProposalConfig.from_env(lambda key: "")
        self.assertEqual(config.api_key, "")
        self.assertEqual(config.model, "gpt-5-mini")
        self.assertEqual(config.timeout_s, 20.0)
        self.assertTrue(config.enabled)
        self.assertFalse(config.usable)

    def test_from_env_reads_values_and_bounds_timeout(self) -> None:
        values = {
            "OPENAI_API_KEY": " sk-live ",
            "PROPOSAL_MODEL": "gpt-4.1-mini",
            "PROPOSAL_TIMEOUT_S": "300",
            "PROPOSAL_AI_ENABLED": "yes",
        }
        config = ProposalConfig.from_env(lambda key: values.get(key, ""))
        self.assertEqual(config.api_key, "sk-live")
        self.assertEqual(config.model, "gpt-4.1-mini")
        self.assertEqual(config.timeout_s, 30.0)
        self.assertTrue(config.usable)

        short = ProposalConfig.from_env(lambda key: {"PROPOSAL_TIMEOUT_S": "1"}.get(key, ""))
        self.assertEqual(short.timeout_s, 15.0)
        garbage = ProposalConfig.from_env(lambda key: {"PROPOSAL_TIMEOUT_S": "soon"}.get(key, ""))
        self.assertEqual(garbage.timeout_s, 20.0)

    def test_from_env_can_disable(self) -> None:
        config = ProposalConfig.from_env(
            lambda key: {"OPENAI_API_KEY": "sk", "PROPOSAL_AI_ENABLED": "off"}.get(key, "")
        )
        self.assertFalse(config.usable)


if __name__ == "__main__":
    unittest.main()
