"""Tests for pricing, metadata records and ledger roll-ups."""

import pytest
from pydantic import ValidationError

from signline.costs import (
    GEMINI_2_0_FLASH_LIVE,
    GEMINI_2_5_FLASH,
    GEMINI_3_FLASH,
    LLMInferenceMetadata,
    ModelPricing,
    StreamingCostMetadata,
    calculate_cost,
    estimate_streaming_cost,
    get_model_pricing,
    ledger_totals,
    print_cost_summary,
)


class TestCalculateCost:

    def test_known_model(self):
        assert calculate_cost(1000, 200, GEMINI_3_FLASH) == pytest.approx(0.0011)

    def test_unknown_model_uses_default_price(self):
        assert calculate_cost(1_000_000, 1_000_000, "some-future-model") == pytest.approx(0.75)

    def test_models_prefix_is_ignored(self):
        assert get_model_pricing(f"models/{GEMINI_3_FLASH}") == get_model_pricing(GEMINI_3_FLASH)

    def test_cached_tokens_add_cached_price(self):
        base = calculate_cost(0, 0, GEMINI_2_5_FLASH)
        cached = calculate_cost(0, 0, GEMINI_2_5_FLASH, cached_input_tokens=1_000_000)
        assert base == 0
        assert cached == pytest.approx(0.075)

    def test_cached_tokens_ignored_without_cached_price(self):
        assert calculate_cost(0, 0, GEMINI_3_FLASH, cached_input_tokens=1_000_000) == 0


class TestMetadata:

    def test_inference_metadata_is_frozen(self):
        meta = LLMInferenceMetadata(model=GEMINI_3_FLASH, agent_name="validation_agent")
        with pytest.raises(ValidationError):
            meta.cost = 1.0

    def test_recompute_cost_with_new_price_table(self):
        meta = LLMInferenceMetadata(
            input_tokens=1000,
            output_tokens=1000,
            model=GEMINI_3_FLASH,
            agent_name="scoring_agent",
            cost=calculate_cost(1000, 1000, GEMINI_3_FLASH),
        )
        cheaper = {GEMINI_3_FLASH: ModelPricing(input=1e-7, output=1e-7)}
        assert meta.recompute_cost(cheaper) == pytest.approx(0.0002)
        assert meta.recompute_cost() == pytest.approx(meta.cost)

    def test_serializes_camel_case(self):
        meta = LLMInferenceMetadata(model=GEMINI_3_FLASH, agent_name="feedback_agent", latency_ms=12)
        wire = meta.to_wire()
        assert wire["agentName"] == "feedback_agent"
        assert wire["latencyMs"] == 12


class TestLedger:

    def test_streaming_estimate(self):
        entry = estimate_streaming_cost(10, "HELLO", 3000)
        assert entry.model == GEMINI_2_0_FLASH_LIVE
        assert entry.estimated_input_tokens == 2580
        assert entry.estimated_output_tokens == 5
        assert entry.estimated_cost == pytest.approx(0.00026)

    def test_totals_include_streaming_entries(self):
        ledger = {
            "validation_feedback_0": LLMInferenceMetadata(
                input_tokens=1000, output_tokens=200, cost=0.0011,
                model=GEMINI_3_FLASH, agent_name="validation_feedback_agent",
            ),
            "live_stream_0": StreamingCostMetadata(
                model=GEMINI_2_0_FLASH_LIVE,
                session_duration_ms=3000,
                estimated_input_tokens=2580,
                estimated_output_tokens=5,
                estimated_cost=0.00026,
                frame_count=10,
            ),
        }
        totals = ledger_totals(ledger)
        assert totals.cost == pytest.approx(0.00136)
        assert totals.input_tokens == 3580
        assert totals.output_tokens == 205

    def test_totals_do_not_depend_on_order(self):
        entries = [
            LLMInferenceMetadata(cost=c, model=GEMINI_3_FLASH, agent_name="a")
            for c in (0.1, 0.2, 0.3, 1e-9)
        ]
        forward = ledger_totals({str(i): e for i, e in enumerate(entries)})
        backward = ledger_totals({str(i): e for i, e in enumerate(reversed(entries))})
        assert forward.cost == backward.cost

    def test_empty_ledger(self):
        assert ledger_totals({}) == (0.0, 0, 0)

    def test_print_cost_summary(self, capsys):
        ledger = {"live_stream_0": estimate_streaming_cost(4, "HI", 1200)}
        print_cost_summary(0.5, ledger)
        out = capsys.readouterr().out
        assert "FINAL COST SUMMARY" in out
        assert "Total Cost: $0.5000" in out
        assert "live_stream_0" in out
        assert "4 frames" in out
