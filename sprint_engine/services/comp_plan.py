"""Deferred compensation calculator - inputs to money amounts, computed once."""

import logging
from typing import Any, List, Optional

from pydantic import ValidationError

from sprint_engine.core.database import db_service
from sprint_engine.core.errors import InvalidCompPlanError, PersistenceError, SprintNotFoundError
from sprint_engine.models import CompPlanInputs, CompPlanOutputs, DeferredCompPlan

logger = logging.getLogger(__name__)


def compute_outputs(inputs: CompPlanInputs, total_project_value: Optional[float] = None) -> CompPlanOutputs:
    """
    Split the project value into upfront, equity and deferred portions.

    The three portions always sum to the total:
    ``up + (1 - up) * split + (1 - up) * (1 - split) == 1``.

    Args:
        inputs: Validated calculator inputs
        total_project_value: Used when the inputs carry no explicit total

    Returns:
        CompPlanOutputs that the agreement composer uses verbatim
    """
    total = inputs.total_project_value
    if total is None:
        total = total_project_value or 0.0

    remainder = 1.0 - inputs.upfront_payment
    upfront = inputs.upfront_payment * total
    equity = remainder * inputs.equity_split * total
    deferred = remainder * (1.0 - inputs.equity_split) * total
    multiplier_sum = sum(m.multiplier for m in inputs.milestones if m.multiplier > 0)

    return CompPlanOutputs(
        upfront_amount=upfront,
        equity_amount=equity,
        deferred_amount=deferred,
        milestone_bonus_amount=deferred * multiplier_sum,
        remaining_on_completion=total - upfront,
        total_project_value=total,
    )


def parse_inputs(raw: Any) -> CompPlanInputs:
    """Validate raw calculator inputs, mapping validation failures to InvalidCompPlanError."""
    if isinstance(raw, CompPlanInputs):
        return raw
    if not isinstance(raw, dict):
        raise InvalidCompPlanError("inputs must be an object")
    try:
        return CompPlanInputs.model_validate(raw)
    except ValidationError as e:
        raise InvalidCompPlanError(
            "Invalid compensation plan inputs",
            details=[
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ],
        )


class CompPlanService:
    """Saves and lists deferred compensation plans for a sprint."""

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db or db_service

    async def create_plan(
        self,
        sprint_id: str,
        raw_inputs: Any,
        label: Optional[str] = None
    ) -> DeferredCompPlan:
        """
        Validate inputs, compute outputs against the sprint price and save.

        Raises:
            SprintNotFoundError: Unknown sprint
            InvalidCompPlanError: Inputs out of range
            PersistenceError: Insert failed
        """
        inputs = parse_inputs(raw_inputs)

        sprint = await self.db.get_sprint_draft(sprint_id, with_lines=False)
        if sprint is None:
            raise SprintNotFoundError(f"Sprint not found: {sprint_id}")

        outputs = compute_outputs(inputs, sprint.total_fixed_price)
        plan = DeferredCompPlan(
            sprint_id=sprint_id,
            label=label or sprint.title,
            inputs=inputs,
            outputs=outputs,
        )

        plan_id = await self.db.save_comp_plan(plan)
        if not plan_id:
            raise PersistenceError(f"Could not save comp plan for sprint {sprint_id}")

        logger.info(
            f"Comp plan {plan_id} for sprint {sprint_id}: "
            f"upfront ${outputs.upfront_amount:,.2f}, equity ${outputs.equity_amount:,.2f}, "
            f"deferred ${outputs.deferred_amount:,.2f}"
        )
        return plan.model_copy(update={"id": plan_id})

    async def list_plans(self, sprint_id: str) -> List[DeferredCompPlan]:
        sprint = await self.db.get_sprint_draft(sprint_id, with_lines=False)
        if sprint is None:
            raise SprintNotFoundError(f"Sprint not found: {sprint_id}")
        return await self.db.list_comp_plans(sprint_id)


# Singleton instance
comp_plan_service = CompPlanService()
