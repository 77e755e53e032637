"""Supabase database service - catalog store, sprint drafts and audit rows."""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from supabase import Client, create_client
from supabase.lib.client_options import ClientOptions

from sprint_engine.core.config import get_settings
from sprint_engine.models import (
    AIResponseRecord,
    CatalogDeliverable,
    CatalogPackage,
    DeferredCompPlan,
    SprintDeliverableLine,
    SprintDraft,
)

logger = logging.getLogger(__name__)


class DatabaseService:
    """
    Service for Supabase database operations.

    Reads the deliverable/package catalog and reads/writes sprint drafts,
    sprint lines, model-response audit rows and compensation plans.
    Uses the sync Supabase client behind an async interface for
    consistency with the rest of the application.
    """

    DOCUMENTS = "documents"
    DELIVERABLES = "deliverables"
    PACKAGES = "sprint_packages"
    PACKAGE_LINKS = "sprint_package_deliverables"
    SPRINTS = "sprint_drafts"
    SPRINT_LINES = "sprint_deliverables"
    AI_RESPONSES = "ai_responses"
    COMP_PLANS = "deferred_comp_plans"
    APP_SETTINGS = "app_settings"

    def __init__(self):
        """Initialize Supabase client."""
        self._client: Optional[Client] = None

    @property
    def client(self) -> Client:
        """Lazy initialization of Supabase client."""
        if self._client is None:
            settings = get_settings()
            if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
                raise ValueError("Supabase credentials not configured")

            self._client = create_client(
                settings.SUPABASE_URL,
                settings.SUPABASE_KEY,
                options=ClientOptions(
                    postgrest_client_timeout=30,
                    storage_client_timeout=30
                )
            )
            logger.info("Supabase client initialized")
        return self._client

    @staticmethod
    def _now() -> str:
        return datetime.utcnow().isoformat()

    # ===========================================
    # Intake Documents
    # ===========================================

    async def create_document(self, content: Dict[str, Any], filename: str = "intake") -> Optional[str]:
        """Store a raw intake submission."""
        try:
            response = self.client.table(self.DOCUMENTS).insert({
                "content": content,
                "filename": filename,
                "created_at": self._now(),
            }).execute()

            if response.data:
                document_id = response.data[0].get("id")
                logger.info(f"Stored intake document: {document_id}")
                return document_id

            logger.error("Document insert returned no data")
            return None

        except Exception as e:
            logger.error(f"Failed to store document: {e}")
            return None

    async def get_document(self, document_id: str) -> Optional[Dict[str, Any]]:
        """Fetch an intake document by ID."""
        try:
            response = (
                self.client.table(self.DOCUMENTS)
                .select("id, content, created_at")
                .eq("id", document_id)
                .single()
                .execute()
            )
            return response.data or None

        except Exception as e:
            logger.error(f"Failed to get document {document_id}: {e}")
            return None

    async def get_prompt_overrides(self) -> Dict[str, str]:
        """Studio-edited prompt overrides keyed by setting name."""
        try:
            response = (
                self.client.table(self.APP_SETTINGS)
                .select("key, value")
                .in_("key", ["sprint_system_prompt", "sprint_user_prompt"])
                .execute()
            )
            return {
                row["key"]: row["value"]
                for row in response.data or []
                if isinstance(row.get("value"), str) and row["value"].strip()
            }

        except Exception as e:
            logger.warning(f"Prompt overrides unavailable, using defaults: {e}")
            return {}

    # ===========================================
    # Catalog Reads
    # ===========================================

    async def list_active_deliverables(self, limit: int = 50) -> List[CatalogDeliverable]:
        """All active deliverables ordered by name."""
        try:
            response = (
                self.client.table(self.DELIVERABLES)
                .select("*")
                .eq("active", True)
                .order("name")
                .limit(limit)
                .execute()
            )
            return [CatalogDeliverable(**row) for row in response.data or []]

        except Exception as e:
            logger.error(f"Failed to list active deliverables: {e}")
            return []

    async def get_active_deliverables(self, deliverable_ids: Iterable[str]) -> Dict[str, CatalogDeliverable]:
        """Active deliverables for the given IDs, keyed by ID. Unknown IDs are absent."""
        ids = sorted({d for d in deliverable_ids if d})
        if not ids:
            return {}
        try:
            response = (
                self.client.table(self.DELIVERABLES)
                .select("*")
                .in_("id", ids)
                .eq("active", True)
                .execute()
            )
            return {row["id"]: CatalogDeliverable(**row) for row in response.data or []}

        except Exception as e:
            logger.error(f"Failed to fetch deliverables {ids}: {e}")
            return {}

    async def get_active_deliverable(self, deliverable_id: str) -> Optional[CatalogDeliverable]:
        found = await self.get_active_deliverables([deliverable_id])
        return found.get(deliverable_id)

    async def list_active_packages(self, limit: int = 20) -> List[CatalogPackage]:
        """Active packages with their deliverable links, featured first then by sort order."""
        try:
            response = (
                self.client.table(self.PACKAGES)
                .select(f"*, deliverables:{self.PACKAGE_LINKS}(deliverable_id, quantity, sort_order)")
                .eq("active", True)
                .order("featured", desc=True)
                .order("sort_order")
                .limit(limit)
                .execute()
            )
            return [CatalogPackage(**row) for row in response.data or []]

        except Exception as e:
            logger.error(f"Failed to list active packages: {e}")
            return []

    async def get_active_package(self, package_id: str) -> Optional[CatalogPackage]:
        """One active package with its links, or None."""
        try:
            response = (
                self.client.table(self.PACKAGES)
                .select(f"*, deliverables:{self.PACKAGE_LINKS}(deliverable_id, quantity, sort_order)")
                .eq("id", package_id)
                .eq("active", True)
                .limit(1)
                .execute()
            )
            if response.data:
                return CatalogPackage(**response.data[0])
            return None

        except Exception as e:
            logger.error(f"Failed to get package {package_id}: {e}")
            return None

    # ===========================================
    # Model Response Audit
    # ===========================================

    async def create_ai_response(self, record: AIResponseRecord) -> Optional[str]:
        """Persist a raw model response and its usage."""
        try:
            data = record.model_dump(mode="json", exclude_none=True, exclude={"id", "created_at"})
            data["created_at"] = self._now()

            response = self.client.table(self.AI_RESPONSES).insert(data).execute()

            if response.data:
                response_id = response.data[0].get("id")
                logger.info(f"Stored model response: {response_id}")
                return response_id

            logger.error("Model response insert returned no data")
            return None

        except Exception as e:
            logger.error(f"Failed to store model response: {e}")
            return None

    async def update_ai_response(self, response_id: str, updates: Dict[str, Any]) -> bool:
        try:
            response = (
                self.client.table(self.AI_RESPONSES)
                .update(updates)
                .eq("id", response_id)
                .execute()
            )
            return bool(response.data)

        except Exception as e:
            logger.error(f"Failed to update model response {response_id}: {e}")
            return False

    async def get_ai_response(self, response_id: str) -> Optional[AIResponseRecord]:
        try:
            response = (
                self.client.table(self.AI_RESPONSES)
                .select("*")
                .eq("id", response_id)
                .single()
                .execute()
            )
            if response.data:
                return AIResponseRecord(**response.data)
            return None

        except Exception as e:
            logger.error(f"Failed to get model response {response_id}: {e}")
            return None

    # ===========================================
    # Sprint Drafts
    # ===========================================

    async def create_sprint_draft(self, sprint: SprintDraft) -> Optional[str]:
        """Insert a sprint draft row (lines are written separately)."""
        try:
            data = sprint.model_dump(
                mode="json",
                exclude_none=True,
                exclude={"id", "lines", "created_at", "updated_at"},
            )
            data["created_at"] = self._now()
            data["updated_at"] = data["created_at"]

            response = self.client.table(self.SPRINTS).insert(data).execute()

            if response.data:
                sprint_id = response.data[0].get("id")
                logger.info(f"Created sprint draft: {sprint_id}")
                return sprint_id

            logger.error("Sprint draft insert returned no data")
            return None

        except Exception as e:
            logger.error(f"Failed to create sprint draft: {e}")
            return None

    async def get_sprint_draft(self, sprint_id: str, with_lines: bool = True) -> Optional[SprintDraft]:
        """Fetch a sprint draft, optionally with its lines."""
        try:
            response = (
                self.client.table(self.SPRINTS)
                .select("*")
                .eq("id", sprint_id)
                .single()
                .execute()
            )
            if not response.data:
                logger.warning(f"Sprint not found: {sprint_id}")
                return None

            sprint = SprintDraft(**response.data)
            if with_lines:
                sprint.lines = await self.list_sprint_lines(sprint_id)
            return sprint

        except Exception as e:
            logger.error(f"Failed to get sprint {sprint_id}: {e}")
            return None

    async def update_sprint_draft(self, sprint_id: str, updates: Dict[str, Any]) -> bool:
        """Update a sprint draft with partial data."""
        try:
            updates["updated_at"] = self._now()

            response = (
                self.client.table(self.SPRINTS)
                .update(updates)
                .eq("id", sprint_id)
                .execute()
            )

            if response.data:
                logger.info(f"Updated sprint {sprint_id}: {list(updates.keys())}")
                return True

            logger.warning(f"Update returned no data for sprint {sprint_id}")
            return False

        except Exception as e:
            logger.error(f"Failed to update sprint {sprint_id}: {e}")
            return False

    async def delete_sprint_draft(self, sprint_id: str) -> bool:
        """Delete a sprint draft and any lines already written for it."""
        try:
            self.client.table(self.SPRINT_LINES).delete().eq("sprint_draft_id", sprint_id).execute()
            response = self.client.table(self.SPRINTS).delete().eq("id", sprint_id).execute()

            if response.data:
                logger.info(f"Deleted sprint draft: {sprint_id}")
                return True

            logger.warning(f"Delete returned no data for sprint {sprint_id}")
            return False

        except Exception as e:
            logger.error(f"Failed to delete sprint {sprint_id}: {e}")
            return False

    # ===========================================
    # Sprint Lines
    # ===========================================

    async def list_sprint_lines(self, sprint_id: str) -> List[SprintDeliverableLine]:
        try:
            response = (
                self.client.table(self.SPRINT_LINES)
                .select("*")
                .eq("sprint_draft_id", sprint_id)
                .order("created_at")
                .execute()
            )
            return [SprintDeliverableLine(**row) for row in response.data or []]

        except Exception as e:
            logger.error(f"Failed to list lines for sprint {sprint_id}: {e}")
            return []

    async def insert_sprint_lines(self, sprint_id: str, lines: List[SprintDeliverableLine]) -> bool:
        """Insert lines; a deliverable already on the sprint is left untouched."""
        if not lines:
            return True
        try:
            now = self._now()
            rows = []
            for line in lines:
                row = line.model_dump(mode="json", exclude_none=True, exclude={"id", "created_at"})
                row["sprint_draft_id"] = sprint_id
                row["created_at"] = now
                rows.append(row)

            response = (
                self.client.table(self.SPRINT_LINES)
                .upsert(rows, on_conflict="sprint_draft_id,deliverable_id", ignore_duplicates=True)
                .execute()
            )
            logger.info(f"Inserted {len(response.data or [])} line(s) into sprint {sprint_id}")
            return True

        except Exception as e:
            logger.error(f"Failed to insert lines for sprint {sprint_id}: {e}")
            return False

    async def update_sprint_line(self, line_id: str, updates: Dict[str, Any]) -> bool:
        try:
            response = (
                self.client.table(self.SPRINT_LINES)
                .update(updates)
                .eq("id", line_id)
                .execute()
            )
            return bool(response.data)

        except Exception as e:
            logger.error(f"Failed to update sprint line {line_id}: {e}")
            return False

    async def delete_sprint_line(self, sprint_id: str, deliverable_id: str) -> bool:
        try:
            response = (
                self.client.table(self.SPRINT_LINES)
                .delete()
                .eq("sprint_draft_id", sprint_id)
                .eq("deliverable_id", deliverable_id)
                .execute()
            )
            return bool(response.data)

        except Exception as e:
            logger.error(f"Failed to delete {deliverable_id} from sprint {sprint_id}: {e}")
            return False

    # ===========================================
    # Compensation Plans
    # ===========================================

    async def save_comp_plan(self, plan: DeferredCompPlan) -> Optional[str]:
        try:
            data = plan.model_dump(mode="json", exclude_none=True, exclude={"id", "created_at"})
            data["created_at"] = self._now()

            response = self.client.table(self.COMP_PLANS).insert(data).execute()

            if response.data:
                plan_id = response.data[0].get("id")
                logger.info(f"Saved comp plan {plan_id} for sprint {plan.sprint_id}")
                return plan_id

            logger.error("Comp plan insert returned no data")
            return None

        except Exception as e:
            logger.error(f"Failed to save comp plan for sprint {plan.sprint_id}: {e}")
            return None

    async def list_comp_plans(self, sprint_id: str) -> List[DeferredCompPlan]:
        """Plans for a sprint, newest first."""
        try:
            response = (
                self.client.table(self.COMP_PLANS)
                .select("*")
                .eq("sprint_id", sprint_id)
                .order("created_at", desc=True)
                .execute()
            )
            return [DeferredCompPlan(**row) for row in response.data or []]

        except Exception as e:
            logger.error(f"Failed to list comp plans for sprint {sprint_id}: {e}")
            return []

    async def get_latest_comp_plan(self, sprint_id: str) -> Optional[DeferredCompPlan]:
        plans = await self.list_comp_plans(sprint_id)
        return plans[0] if plans else None

    # ===========================================
    # Health Check
    # ===========================================

    async def health_check(self) -> bool:
        """Check database connectivity."""
        try:
            self.client.table(self.DELIVERABLES).select("id").limit(1).execute()
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False


# Singleton instance
db_service = DatabaseService()
