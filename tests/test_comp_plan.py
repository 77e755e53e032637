"""Tests for the deferred compensation calculator."""

import pytest

from sprint_engine.core.errors import InvalidCompPlanError, SprintNotFoundError
from sprint_engine.models import CompPlanInputs, MilestoneMissOutcome, UpfrontPaymentTiming
from sprint_engine.services.comp_plan import CompPlanService, compute_outputs, parse_inputs


class TestComputeOutputs:
    """Money splits are computed once from the inputs."""

    def test_three_way_split_sums_to_total(self):
        inputs = CompPlanInputs(total_project_value=20000, upfront_payment=0.4, equity_split=0.25)
        outputs = compute_outputs(inputs)

        assert outputs.upfront_amount == pytest.approx(8000)
        assert outputs.equity_amount == pytest.approx(3000)
        assert outputs.deferred_amount == pytest.approx(9000)
        assert outputs.upfront_amount + outputs.equity_amount + outputs.deferred_amount == pytest.approx(20000)
        assert outputs.remaining_on_completion == pytest.approx(12000)

    def test_falls_back_to_sprint_price(self):
        outputs = compute_outputs(CompPlanInputs(upfront_payment=0.5), total_project_value=8750)
        assert outputs.total_project_value == 8750
        assert outputs.upfront_amount == pytest.approx(4375)

    def test_milestone_bonus(self):
        inputs = CompPlanInputs.model_validate({
            "total_project_value": 10000,
            "upfront_payment": 0,
            "milestones": [
                {"summary": "Seed round", "date": "2025-09-01", "multiplier": 2},
                {"summary": "1k users", "date": "", "multiplier": 1.5},
            ],
        })
        outputs = compute_outputs(inputs)

        assert outputs.deferred_amount == pytest.approx(10000)
        assert outputs.milestone_bonus_amount == pytest.approx(35000)
        assert inputs.milestones[1].target_date is None


class TestParseInputs:

    def test_out_of_range_fraction(self):
        with pytest.raises(InvalidCompPlanError) as exc_info:
            parse_inputs({"upfront_payment": 1.5})

        assert exc_info.value.status_code == 400
        assert exc_info.value.details[0]["field"] == "upfront_payment"

    def test_non_positive_multiplier(self):
        with pytest.raises(InvalidCompPlanError):
            parse_inputs({"milestones": [{"summary": "x", "multiplier": 0}]})

    def test_not_an_object(self):
        with pytest.raises(InvalidCompPlanError):
            parse_inputs(["upfront_payment", 0.4])

    def test_lenient_enums(self):
        inputs = parse_inputs({
            "milestone_miss_outcome": "Reduced-50",
            "upfront_payment_timing": "net-15",
        })
        assert inputs.milestone_miss_outcome == MilestoneMissOutcome.REDUCED_50
        assert inputs.upfront_payment_timing == UpfrontPaymentTiming.NET_15

        fallback = parse_inputs({"milestone_miss_outcome": "vanish"})
        assert fallback.milestone_miss_outcome == MilestoneMissOutcome.RENEGOTIATE


class TestCompPlanService:

    async def test_create_plan_uses_sprint_price(self, fake_db, sample_sprint):
        sprint_id = fake_db.seed_sprint(sample_sprint)
        service = CompPlanService(db=fake_db)

        plan = await service.create_plan(sprint_id, {"upfront_payment": 0.4, "equity_split": 0.5})

        assert plan.id is not None
        assert plan.label == "Acme Launch Sprint"
        assert plan.outputs.total_project_value == 8750
        assert plan.outputs.upfront_amount == pytest.approx(3500)
        assert plan.outputs.equity_amount == pytest.approx(2625)
        assert (await fake_db.get_latest_comp_plan(sprint_id)).id == plan.id

    async def test_latest_plan_first(self, fake_db, sample_sprint):
        sprint_id = fake_db.seed_sprint(sample_sprint)
        service = CompPlanService(db=fake_db)

        await service.create_plan(sprint_id, {"upfront_payment": 0.4}, label="First")
        await service.create_plan(sprint_id, {"upfront_payment": 0.6}, label="Second")

        plans = await service.list_plans(sprint_id)
        assert [plan.label for plan in plans] == ["Second", "First"]

    async def test_unknown_sprint(self, fake_db):
        with pytest.raises(SprintNotFoundError):
            await CompPlanService(db=fake_db).create_plan("sprint-missing", {})
