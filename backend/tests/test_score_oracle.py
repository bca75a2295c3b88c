"""
Tests for the score oracles: weighting, rounding, heuristic rules, LLM parsing and fallback.
"""
import asyncio
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

from app.errors import ScoringFailed
from app.models import SCORE_KEYS
from app.services.llm_service import LLMService
from app.services.scoring import (
    AssetInput,
    CombinationComponents,
    HeuristicScoreOracle,
    LLMScoreOracle,
    TargetingContext,
    compose_result,
    get_score_oracle,
)
from app.services.scoring.heuristic import score_heuristically
from app.services.scoring.llm import parse_llm_response
from app.services.scoring.rules import (
    audience_stage,
    detect_stage,
    score_clarity,
    score_fit,
    score_hook,
)


def _components(**overrides):
    values = dict(
        asset=AssetInput(
            id="a1",
            type="image",
            filename="sleep-mask-closeup.jpg",
            metadata={"width": 1080, "height": 1080},
        ),
        headline="Sleep better tonight",
        body="Our sleep mask blocks 100% of light.",
        description=None,
        cta_type="SHOP_NOW",
        targeting=TargetingContext(age_min=25, age_max=40, interests=["Yoga"], locations=["US"]),
    )
    values.update(overrides)
    return CombinationComponents(**values)


class TestComposeResult:
    def test_weighted_overall_rounds_half_up(self):
        result = compose_result({"hook": 80, "alignment": 60, "fit": 70, "clarity": 90, "match": 50})
        # 20 + 12 + 14 + 13.5 + 10 = 69.5
        assert result.overall_score == 70
        assert result.predicted_ctr == 7.0

    @pytest.mark.parametrize("scores, expected", [
        # 10 + 8 + 10.4 + 8.7 + 10.4 = 47.5; float addition gives 47.49999999999999
        ((40, 40, 52, 58, 52), 48),
        # 10 + 8 + 10.4 + 8.7 + 13.4 = 50.5
        ((40, 40, 52, 58, 67), 51),
        ((0, 0, 0, 0, 1), 0),
    ])
    def test_exact_half_totals_round_up(self, scores, expected):
        result = compose_result(dict(zip(SCORE_KEYS, scores)))
        assert result.overall_score == expected

    def test_fractional_sub_scores_are_weighted_unrounded(self):
        # 15.5 + 11.92 + 12 + 9 + 12 = 60.42; rounding alignment to 60 first would give 60.5 -> 61
        result = compose_result({"hook": 62, "alignment": 59.6, "fit": 60, "clarity": 60, "match": 60})
        assert result.overall_score == 60
        assert result.scores["alignment"] == 60
        assert result.predicted_ctr == 6.0

    def test_sub_scores_are_clamped(self):
        result = compose_result({"hook": 150, "alignment": -20, "fit": 100, "clarity": 100, "match": 100})
        assert result.scores["hook"] == 100
        assert result.scores["alignment"] == 0
        assert result.overall_score == 80
        assert result.predicted_ctr == 8.0

    def test_missing_keys_count_as_zero(self):
        result = compose_result({})
        assert result.scores == {"hook": 0, "alignment": 0, "fit": 0, "clarity": 0, "match": 0}
        assert result.overall_score == 0
        assert result.predicted_ctr == 0.0


class TestRules:
    def test_hook_rewards_short_vertical_video(self):
        video = AssetInput(id="v", type="video", filename="clip.mp4", metadata={"duration": 12, "width": 1080, "height": 1920})
        wide = AssetInput(id="i", type="image", filename="banner.jpg", metadata={"width": 2000, "height": 500})
        assert score_hook(video) == 95
        assert score_hook(wide) == 60

    def test_fit_bonuses(self):
        assert score_fit(TargetingContext()) == 50
        assert score_fit(TargetingContext(age_min=25, age_max=34, interests=["Yoga"], locations=["US"])) == 80
        assert score_fit(TargetingContext(age_min=18, age_max=65)) == 50

    def test_clarity_needs_action_verb(self):
        assert score_clarity("SHOP_NOW") == 95
        assert score_clarity("LEARN_MORE") == 90
        assert score_clarity("NO_BUTTON") == 55
        assert score_clarity("") == 30

    def test_stage_detection(self):
        assert detect_stage("20% off today, free shipping") == "BOFU"
        assert detect_stage("See how it works in our guide") == "MOFU"
        assert detect_stage("Why most people sleep badly") == "TOFU"
        assert detect_stage("") == "TOFU"

    def test_behaviours_warm_up_tofu_audience(self):
        assert audience_stage("LEARN_MORE", TargetingContext()) == "TOFU"
        assert audience_stage("LEARN_MORE", TargetingContext(behaviors=["Engaged shoppers"])) == "MOFU"
        assert audience_stage("SHOP_NOW", TargetingContext(behaviors=["Engaged shoppers"])) == "BOFU"


class TestHeuristicScoreOracle:
    def test_known_combination(self):
        result = asyncio.run(HeuristicScoreOracle().score(_components()))

        assert result.scores == {"hook": 80, "alignment": 77, "fit": 80, "clarity": 95, "match": 40}
        assert result.overall_score == 74
        assert result.predicted_ctr == 7.4

    def test_rescoring_is_deterministic(self):
        oracle = HeuristicScoreOracle()
        first = asyncio.run(oracle.score(_components()))
        second = asyncio.run(oracle.score(_components()))
        assert (first.overall_score, first.predicted_ctr, first.scores) == (
            second.overall_score,
            second.predicted_ctr,
            second.scores,
        )

    def test_scores_stay_in_range(self):
        result = asyncio.run(HeuristicScoreOracle().score(_components(headline="", body="", cta_type="")))
        assert all(0 <= v <= 100 for v in result.scores.values())
        assert 0 <= result.overall_score <= 100
        assert 0 <= result.predicted_ctr <= 10

    @pytest.mark.parametrize("missing", ["asset", "headline", "body"])
    def test_missing_component_raises_scoring_failed(self, missing):
        with pytest.raises(ScoringFailed) as exc_info:
            asyncio.run(HeuristicScoreOracle().score(_components(**{missing: None})))
        assert missing in str(exc_info.value)


class TestParseLLMResponse:
    def test_plain_json(self):
        parsed = parse_llm_response('{"hook": 55.5, "alignment": 70, "match": 80, "rationale": "ok"}')
        assert parsed == {"hook": 55.5, "alignment": 70.0, "match": 80.0, "rationale": "ok"}

    def test_strips_code_fence_and_clamps(self):
        parsed = parse_llm_response('```json\n{"hook": 120, "alignment": -5}\n```')
        assert parsed["hook"] == 100.0
        assert parsed["alignment"] == 0.0
        assert "match" not in parsed

    @pytest.mark.parametrize(
        "content",
        ["", "   ", "not json", "[1, 2, 3]", '{"hook": true}', '{"hook": "high"}', '{"fit": 90}'],
    )
    def test_unusable_replies(self, content):
        assert parse_llm_response(content) is None


class TestLLMScoreOracle:
    def test_llm_scores_override_heuristic_keys(self):
        llm_service = AsyncMock()
        llm_service.execute_prompt.return_value = {
            "content": '```json\n{"hook": 90, "alignment": 120, "match": "x"}\n```',
            "tokens_used": 42,
            "model": "gpt-4o-mini",
        }

        result = asyncio.run(LLMScoreOracle(llm_service).score(_components()))

        assert result.scores == {"hook": 90, "alignment": 100, "fit": 80, "clarity": 95, "match": 40}
        assert result.overall_score == 81
        llm_service.execute_prompt.assert_awaited_once()
        assert llm_service.execute_prompt.call_args.kwargs["model"] == "gpt-4o-mini"

    def test_llm_error_falls_back_to_heuristic(self):
        llm_service = AsyncMock()
        llm_service.execute_prompt.side_effect = RuntimeError("rate limited")

        result = asyncio.run(LLMScoreOracle(llm_service).score(_components()))

        expected = score_heuristically(_components())
        assert result.scores == expected.scores
        assert result.overall_score == expected.overall_score

    def test_unparseable_reply_falls_back_to_heuristic(self):
        llm_service = AsyncMock()
        llm_service.execute_prompt.return_value = {"content": "I think it's great!"}

        result = asyncio.run(LLMScoreOracle(llm_service).score(_components()))

        assert result.overall_score == 74

    def test_missing_component_never_calls_llm(self):
        llm_service = AsyncMock()
        with pytest.raises(ScoringFailed):
            asyncio.run(LLMScoreOracle(llm_service).score(_components(body=None)))
        llm_service.execute_prompt.assert_not_called()

    def test_timeout_cancels_the_llm_call(self):
        calls = {"started": 0, "cancelled": 0}

        async def slow_prompt(**kwargs):
            calls["started"] += 1
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                calls["cancelled"] += 1
                raise

        llm_service = Mock()
        llm_service.execute_prompt = slow_prompt
        oracle = LLMScoreOracle(llm_service)

        async def score_with_timeout():
            await asyncio.wait_for(oracle.score(_components()), timeout=0.05)

        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(score_with_timeout())

        assert calls == {"started": 1, "cancelled": 1}


class TestLLMService:
    def test_openai_uses_async_client_without_retries(self):
        client = Mock()
        client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content='{"hook": 70}'))],
            usage=SimpleNamespace(total_tokens=12),
        ))
        service = LLMService(openai_api_key="sk-test", timeout=20)

        with patch("openai.AsyncOpenAI", return_value=client) as client_cls:
            result = asyncio.run(service.execute_prompt("system", "user", model="gpt-4o-mini"))

        assert result == {"content": '{"hook": 70}', "tokens_used": 12, "model": "gpt-4o-mini"}
        assert client_cls.call_args.kwargs["max_retries"] == 0
        client.chat.completions.create.assert_awaited_once()

    def test_claude_models_route_to_anthropic(self):
        client = Mock()
        client.messages.create = AsyncMock(return_value=SimpleNamespace(
            content=[SimpleNamespace(type="text", text='{"match": 55}')],
            usage=SimpleNamespace(input_tokens=10, output_tokens=5),
        ))
        service = LLMService(anthropic_api_key="sk-ant-test")

        with patch("anthropic.AsyncAnthropic", return_value=client):
            result = asyncio.run(service.execute_prompt("system", "", model="claude-3-5-haiku-latest"))

        assert result["content"] == '{"match": 55}'
        assert result["tokens_used"] == 15
        sent = client.messages.create.call_args.kwargs
        assert sent["system"] == "system"
        assert sent["messages"][0]["content"][0]["text"] == "Please proceed."

    def test_unconfigured_provider_raises(self):
        with pytest.raises(RuntimeError):
            asyncio.run(LLMService().execute_prompt("system", "user", model="gpt-4o-mini"))


class TestGetScoreOracle:
    def test_heuristic_by_default(self):
        settings = SimpleNamespace(score_oracle="heuristic", score_oracle_model="gpt-4o-mini")
        assert isinstance(get_score_oracle(settings), HeuristicScoreOracle)

    def test_llm_when_configured(self):
        settings = SimpleNamespace(score_oracle="llm", score_oracle_model="claude-3-5-haiku-latest")
        llm_service = Mock()
        llm_service.is_configured.return_value = True

        oracle = get_score_oracle(settings, llm_service)

        assert isinstance(oracle, LLMScoreOracle)
        assert oracle.model == "claude-3-5-haiku-latest"

    def test_llm_without_key_degrades_to_heuristic(self):
        settings = SimpleNamespace(score_oracle="llm", score_oracle_model="gpt-4o-mini")
        llm_service = Mock()
        llm_service.is_configured.return_value = False

        assert isinstance(get_score_oracle(settings, llm_service), HeuristicScoreOracle)
        assert isinstance(get_score_oracle(settings, None), HeuristicScoreOracle)
