"""
Sprint Builder - Persists sprint drafts and their deliverable lines.

Every mutation reloads the full line set and recomputes the sprint
totals through the Totals Engine; totals are never patched in place.
"""

import logging
from typing import Any, Dict, List, Optional

from sprint_engine.core.database import db_service
from sprint_engine.core.errors import (
    DeliverableNotFoundError,
    PersistenceError,
    SprintLockedError,
    SprintNotFoundError,
)
from sprint_engine.models import (
    RecommendedDeliverable,
    SprintDeliverableLine,
    SprintDraft,
    SprintStatus,
    SprintTotals,
)
from sprint_engine.services import pricing

logger = logging.getLogger(__name__)


class SprintBuilder:
    """Creates sprint drafts from recommendations and applies line edits."""

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db or db_service

    # ===========================================
    # Creation
    # ===========================================

    async def build_lines(
        self,
        package_id: Optional[str],
        deliverables: List[RecommendedDeliverable]
    ) -> List[SprintDeliverableLine]:
        """
        Priced lines for a recommendation.

        A package wins over individual deliverables. Package lines use the
        package's quantities at normal complexity.
        """
        if package_id:
            package = await self.db.get_active_package(package_id)
            if package is None:
                logger.warning(f"Package {package_id} is no longer active - no lines built")
                return []
            linked = await self.db.get_active_deliverables(
                [link.deliverable_id for link in package.deliverables]
            )
            return pricing.package_lines(package, linked)

        catalog = await self.db.get_active_deliverables([d.deliverable_id for d in deliverables])
        merged: Dict[str, SprintDeliverableLine] = {}
        for recommended in deliverables:
            deliverable = catalog.get(recommended.deliverable_id)
            if deliverable is None:
                continue
            existing = merged.get(deliverable.id)
            quantity = recommended.quantity + (existing.quantity if existing else 0)
            merged[deliverable.id] = pricing.line_from_deliverable(deliverable, quantity)
        return list(merged.values())

    async def create_from_recommendation(
        self,
        document_id: Optional[str],
        ai_response_id: Optional[str],
        title: str,
        draft: Dict[str, Any],
        package_id: Optional[str] = None,
        deliverables: Optional[List[RecommendedDeliverable]] = None,
        project_name: Optional[str] = None
    ) -> SprintDraft:
        """
        Persist a new draft with its lines and aggregate totals.

        Raises:
            PersistenceError: The draft or its lines could not be written
        """
        lines = await self.build_lines(package_id, deliverables or [])
        totals = pricing.aggregate(lines)

        sprint = SprintDraft(
            document_id=document_id,
            ai_response_id=ai_response_id,
            title=title,
            status=SprintStatus.DRAFT,
            sprint_package_id=package_id,
            draft=draft,
            project_name=project_name,
            **pricing.totals_to_columns(totals),
        )

        sprint_id = await self.db.create_sprint_draft(sprint)
        if not sprint_id:
            raise PersistenceError("Could not create sprint draft")

        if not await self.db.insert_sprint_lines(sprint_id, lines):
            # Totals on the draft row must never outlive its lines
            if not await self.db.delete_sprint_draft(sprint_id):
                logger.error(f"Could not roll back sprint draft {sprint_id} after line insert failure")
            raise PersistenceError(
                "Sprint deliverables could not be saved; draft discarded",
                details={"sprint_draft_id": sprint_id},
            )

        logger.info(
            f"Created sprint {sprint_id}: {len(lines)} line(s), "
            f"{totals.total_points} pts, ${totals.total_price:,.2f}"
        )
        return sprint.model_copy(update={
            "id": sprint_id,
            "lines": [line.model_copy(update={"sprint_draft_id": sprint_id}) for line in lines],
        })

    # ===========================================
    # Line Edits
    # ===========================================

    async def load_sprint(self, sprint_id: str) -> SprintDraft:
        sprint = await self.db.get_sprint_draft(sprint_id)
        if sprint is None:
            raise SprintNotFoundError(f"Sprint not found: {sprint_id}")
        return sprint

    async def load_editable(self, sprint_id: str) -> SprintDraft:
        """Only drafts may have their lines edited."""
        sprint = await self.load_sprint(sprint_id)
        if sprint.status != SprintStatus.DRAFT:
            raise SprintLockedError(
                "Can only edit drafts",
                details={"sprint_id": sprint_id, "status": sprint.status.value},
            )
        return sprint

    @staticmethod
    def _find_line(sprint: SprintDraft, deliverable_id: str) -> SprintDeliverableLine:
        for line in sprint.lines:
            if line.deliverable_id == deliverable_id:
                return line
        raise DeliverableNotFoundError(
            f"Deliverable {deliverable_id} is not part of sprint {sprint.id}",
            details={"sprint_id": sprint.id, "deliverable_id": deliverable_id},
        )

    async def add_line(
        self,
        sprint_id: str,
        deliverable_id: str,
        complexity: Any = 1.0,
        quantity: Any = 1
    ) -> SprintDraft:
        """
        Add an active catalog deliverable to a draft.

        Adding a deliverable that is already on the sprint leaves the
        existing line untouched.
        """
        complexity_score = pricing.validate_complexity(complexity)
        quantity = pricing.validate_quantity(quantity)

        sprint = await self.load_editable(sprint_id)
        deliverable = await self.db.get_active_deliverable(deliverable_id)
        if deliverable is None:
            raise DeliverableNotFoundError(
                "Deliverable not found or inactive",
                details={"deliverable_id": deliverable_id},
            )

        line = pricing.line_from_deliverable(deliverable, quantity, complexity_score)
        if not await self.db.insert_sprint_lines(sprint_id, [line]):
            raise PersistenceError(f"Could not add {deliverable_id} to sprint {sprint_id}")

        draft = dict(sprint.draft or {})
        recommended = [
            d for d in draft.get("deliverables") or []
            if not (isinstance(d, dict) and _entry_id(d) == deliverable.id)
        ]
        recommended.append({"deliverableId": deliverable.id, "name": deliverable.name, "reason": "Added by user"})
        draft["deliverables"] = recommended

        return await self.recalculate(sprint_id, extra_updates={"draft": draft})

    async def remove_line(self, sprint_id: str, deliverable_id: str) -> SprintDraft:
        sprint = await self.load_editable(sprint_id)
        self._find_line(sprint, deliverable_id)

        if not await self.db.delete_sprint_line(sprint_id, deliverable_id):
            raise PersistenceError(f"Could not remove {deliverable_id} from sprint {sprint_id}")

        draft = dict(sprint.draft or {})
        if isinstance(draft.get("deliverables"), list):
            draft["deliverables"] = [
                d for d in draft["deliverables"]
                if not (isinstance(d, dict) and _entry_id(d) == deliverable_id)
            ]

        return await self.recalculate(sprint_id, extra_updates={"draft": draft})

    async def set_complexity(self, sprint_id: str, deliverable_id: str, complexity: Any) -> SprintDraft:
        """Re-price one line at a new complexity multiplier."""
        complexity_score = pricing.validate_complexity(complexity)

        sprint = await self.load_editable(sprint_id)
        line = self._find_line(sprint, deliverable_id)

        repriced = pricing.apply_line_totals(line.model_copy(update={"complexity_score": complexity_score}))
        updated = await self.db.update_sprint_line(line.id, {
            "complexity_score": repriced.complexity_score,
            "custom_points": repriced.custom_points,
            "custom_hours": repriced.custom_hours,
            "custom_price": repriced.custom_price,
        })
        if not updated:
            raise PersistenceError(f"Could not update complexity for {deliverable_id}")

        logger.info(
            f"Sprint {sprint_id}: {deliverable_id} set to "
            f"{pricing.complexity_label(complexity_score)} ({complexity_score})"
        )
        return await self.recalculate(sprint_id)

    async def update_scope(
        self,
        sprint_id: str,
        deliverable_id: str,
        custom_scope: Optional[str] = None,
        notes: Optional[str] = None
    ) -> SprintDraft:
        """Edit a line's scope override and notes. Totals are unaffected."""
        sprint = await self.load_editable(sprint_id)
        line = self._find_line(sprint, deliverable_id)

        updates: Dict[str, Any] = {}
        if custom_scope is not None:
            updates["custom_scope"] = custom_scope
        if notes is not None:
            updates["notes"] = notes
        if not updates:
            return sprint

        if not await self.db.update_sprint_line(line.id, updates):
            raise PersistenceError(f"Could not update scope for {deliverable_id}")
        await self.db.update_sprint_draft(sprint_id, {})
        logger.info(f"Sprint {sprint_id}: updated {list(updates.keys())} for {deliverable_id}")
        return await self.load_sprint(sprint_id)

    # ===========================================
    # Totals
    # ===========================================

    async def recalculate(
        self,
        sprint_id: str,
        extra_updates: Optional[Dict[str, Any]] = None
    ) -> SprintDraft:
        """
        Recompute every line and the sprint totals from the stored lines.

        Lines whose ``custom_*`` values disagree with their base, quantity
        and complexity are rewritten.
        """
        sprint = await self.load_sprint(sprint_id)

        repriced: List[SprintDeliverableLine] = []
        for line in sprint.lines:
            fresh = pricing.apply_line_totals(line)
            if (fresh.custom_points, fresh.custom_hours, fresh.custom_price) != (
                line.custom_points, line.custom_hours, line.custom_price
            ):
                await self.db.update_sprint_line(line.id, {
                    "custom_points": fresh.custom_points,
                    "custom_hours": fresh.custom_hours,
                    "custom_price": fresh.custom_price,
                })
            repriced.append(fresh)

        totals: SprintTotals = pricing.aggregate(repriced)
        updates = pricing.totals_to_columns(totals)
        if extra_updates:
            updates.update(extra_updates)

        if not await self.db.update_sprint_draft(sprint_id, dict(updates)):
            raise PersistenceError(f"Could not update totals for sprint {sprint_id}")

        logger.info(
            f"Recalculated sprint {sprint_id}: {totals.count} unit(s), "
            f"{totals.total_points} pts, {totals.total_hours}h, ${totals.total_price:,.2f}"
        )
        return sprint.model_copy(update={**updates, "lines": repriced})


def _entry_id(entry: Dict[str, Any]) -> Optional[str]:
    """Deliverable id of a stored recommendation entry (``deliverableId`` or ``id``)."""
    value = entry.get("deliverableId") or entry.get("id")
    return value if isinstance(value, str) else None


# Singleton instance
sprint_builder = SprintBuilder()
