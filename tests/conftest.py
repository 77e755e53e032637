"""Pytest fixtures and configuration for Sprint Proposal Engine tests."""

import os
from typing import Any, Dict, Generator, Iterable, List, Optional

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing app
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-key")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("GOOGLE_CREDENTIALS_PATH", "./credentials/missing-test-account.json")
os.environ.setdefault("BASE_URL", "https://studio.test")
os.environ.setdefault("DEBUG", "true")

from sprint_engine.models import (  # noqa: E402
    AIResponseRecord,
    CatalogDeliverable,
    CatalogPackage,
    CompletionResponse,
    AIUsage,
    DeferredCompPlan,
    PackageDeliverableLink,
    SprintDeliverableLine,
    SprintDraft,
)


# ===========================================
# Sample Data Fixtures
# ===========================================

@pytest.fixture
def sample_typeform_payload() -> Dict[str, Any]:
    """Sample form-provider webhook payload."""
    return {
        "event_id": "evt_test_123",
        "event_type": "form_response",
        "form_response": {
            "form_id": "frm_test",
            "token": "tok_test",
            "submitted_at": "2025-03-01T10:00:00Z",
            "definition": {
                "fields": [
                    {"id": "f1", "ref": "project", "title": "What is your project or company name?"},
                    {"id": "f2", "ref": "first", "title": "First name"},
                    {"id": "f3", "ref": "last", "title": "Last name"},
                    {"id": "f4", "ref": "email", "title": "Email address"},
                    {"id": "f5", "ref": "about", "title": "Describe your project"},
                    {"id": "f6", "ref": "stage", "title": "What stage is your product at?"},
                    {"id": "f7", "ref": "priorities", "title": "Which deliverables do you prioritize?"},
                    {"id": "f8", "ref": "timeline", "title": "What is your timeline?"},
                ]
            },
            "answers": [
                {"type": "text", "text": "Acme Robotics", "field": {"id": "f1", "type": "short_text"}},
                {"type": "text", "text": "Dana", "field": {"id": "f2", "type": "short_text"}},
                {"type": "text", "text": " Lee ", "field": {"id": "f3", "type": "short_text"}},
                {"type": "email", "email": "dana@acme.io", "field": {"id": "f4", "type": "email"}},
                {
                    "type": "text",
                    "text": "Fleet dashboard for warehouse robots",
                    "field": {"id": "f5", "type": "long_text"},
                },
                {"type": "choice", "choice": {"label": "Prototype"}, "field": {"id": "f6", "type": "multiple_choice"}},
                {
                    "type": "choices",
                    "choices": {"labels": ["Brand Identity", "Landing Page"]},
                    "field": {"id": "f7", "type": "multiple_choice"},
                },
                {"type": "choice", "choice": {"label": "ASAP"}, "field": {"id": "f8", "type": "multiple_choice"}},
            ],
        },
    }


@pytest.fixture
def catalog_deliverables() -> List[CatalogDeliverable]:
    """Three active deliverables and one retired one."""
    return [
        CatalogDeliverable(
            id="d-brand",
            name="Brand Identity",
            category="Branding",
            description="New companies without a visual identity",
            scope="Logo\nColor palette",
            fixed_hours=30,
            fixed_price=5250,
            point_estimate=3,
        ),
        CatalogDeliverable(
            id="d-landing",
            name="Landing Page",
            category="Web",
            scope="One responsive marketing page",
            fixed_hours=20,
            fixed_price=3500,
            point_estimate=2,
        ),
        CatalogDeliverable(
            id="d-proto",
            name="Clickable Prototype",
            category="Product",
            scope="Figma prototype of the core flow",
            point_estimate=5,
        ),
        CatalogDeliverable(
            id="d-old",
            name="Legacy Audit",
            point_estimate=1,
            active=False,
        ),
    ]


@pytest.fixture
def catalog_package() -> CatalogPackage:
    """Package linking two active deliverables and a retired one."""
    return CatalogPackage(
        id="p-launch",
        name="Launch Sprint",
        slug="launch-sprint",
        tagline="Everything to go live",
        category="Launch",
        featured=True,
        deliverables=[
            PackageDeliverableLink(deliverable_id="d-landing", quantity=2, sort_order=1),
            PackageDeliverableLink(deliverable_id="d-brand", quantity=1, sort_order=0),
            PackageDeliverableLink(deliverable_id="d-old", quantity=1, sort_order=2),
        ],
    )


@pytest.fixture
def sample_lines() -> List[SprintDeliverableLine]:
    """Two priced lines for a 5-point sprint."""
    return [
        SprintDeliverableLine(
            id="line-1",
            sprint_draft_id="sprint-1",
            deliverable_id="d-brand",
            deliverable_name="Brand Identity",
            deliverable_scope="Logo\nColor palette",
            base_points=3,
            base_hours=30,
            base_price=5250,
            custom_points=3,
            custom_hours=30,
            custom_price=5250,
        ),
        SprintDeliverableLine(
            id="line-2",
            sprint_draft_id="sprint-1",
            deliverable_id="d-landing",
            deliverable_name="Landing Page",
            deliverable_scope="One responsive marketing page",
            base_points=2,
            base_hours=20,
            base_price=3500,
            custom_points=2,
            custom_hours=20,
            custom_price=3500,
        ),
    ]


@pytest.fixture
def sample_sprint(sample_lines) -> SprintDraft:
    """Draft sprint carrying totals for ``sample_lines``."""
    return SprintDraft(
        id="sprint-1",
        document_id="doc-1",
        ai_response_id="air-1",
        title="Acme Launch Sprint",
        project_name="Acme Robotics",
        draft={
            "title": "Acme Launch Sprint",
            "deliverables": [
                {"id": "d-brand", "quantity": 1, "reason": "No identity yet"},
                {"id": "d-landing", "quantity": 1, "reason": "Needs a web presence"},
            ],
        },
        total_estimate_points=5,
        total_fixed_hours=50,
        total_fixed_price=8750,
        deliverable_count=2,
        lines=sample_lines,
    )


@pytest.fixture
def completion_factory():
    """Build provider completions with a given message body."""
    def _make(content: str) -> CompletionResponse:
        return CompletionResponse(
            content=content,
            model="gpt-4o-mini",
            provider_response_id="chatcmpl-test",
            finish_reason="stop",
            usage=AIUsage(prompt_tokens=1200, completion_tokens=300, total_tokens=1500),
        )
    return _make


# ===========================================
# In-Memory Catalog Store
# ===========================================

class FakeDatabase:
    """Dict-backed stand-in for DatabaseService with the same async interface."""

    def __init__(
        self,
        deliverables: Iterable[CatalogDeliverable] = (),
        packages: Iterable[CatalogPackage] = (),
    ):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.deliverables = {d.id: d for d in deliverables}
        self.packages = {p.id: p for p in packages}
        self.ai_responses: Dict[str, Dict[str, Any]] = {}
        self.sprints: Dict[str, Dict[str, Any]] = {}
        self.lines: Dict[str, SprintDeliverableLine] = {}
        self.comp_plans: List[DeferredCompPlan] = []
        self.prompt_overrides: Dict[str, str] = {}
        self.fail_writes = False
        self._counter = 100

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"

    # Intake documents
    async def create_document(self, content, filename="intake"):
        if self.fail_writes:
            return None
        document_id = self._next_id("doc")
        self.documents[document_id] = {"id": document_id, "content": content}
        return document_id

    async def get_document(self, document_id):
        return self.documents.get(document_id)

    async def get_prompt_overrides(self):
        return dict(self.prompt_overrides)

    # Catalog
    async def list_active_deliverables(self, limit=50):
        active = [d for d in self.deliverables.values() if d.active]
        return sorted(active, key=lambda d: d.name)[:limit]

    async def get_active_deliverables(self, deliverable_ids):
        return {
            d: self.deliverables[d]
            for d in set(deliverable_ids)
            if d in self.deliverables and self.deliverables[d].active
        }

    async def get_active_deliverable(self, deliverable_id):
        return (await self.get_active_deliverables([deliverable_id])).get(deliverable_id)

    async def list_active_packages(self, limit=20):
        active = [p for p in self.packages.values() if p.active]
        return sorted(active, key=lambda p: (not p.featured, p.sort_order))[:limit]

    async def get_active_package(self, package_id):
        package = self.packages.get(package_id)
        return package if package is not None and package.active else None

    # Audit
    async def create_ai_response(self, record: AIResponseRecord):
        if self.fail_writes:
            return None
        response_id = self._next_id("air")
        self.ai_responses[response_id] = record.model_dump() | {"id": response_id}
        return response_id

    async def update_ai_response(self, response_id, updates):
        if response_id not in self.ai_responses:
            return False
        self.ai_responses[response_id].update(updates)
        return True

    async def get_ai_response(self, response_id):
        row = self.ai_responses.get(response_id)
        return AIResponseRecord(**row) if row else None

    # Sprints
    async def create_sprint_draft(self, sprint: SprintDraft):
        if self.fail_writes:
            return None
        sprint_id = self._next_id("sprint")
        self.sprints[sprint_id] = sprint.model_dump(exclude={"lines"}) | {"id": sprint_id}
        return sprint_id

    async def get_sprint_draft(self, sprint_id, with_lines=True):
        row = self.sprints.get(sprint_id)
        if row is None:
            return None
        sprint = SprintDraft(**row)
        if with_lines:
            sprint.lines = await self.list_sprint_lines(sprint_id)
        return sprint

    async def update_sprint_draft(self, sprint_id, updates):
        if self.fail_writes or sprint_id not in self.sprints:
            return False
        self.sprints[sprint_id].update(updates)
        return True

    async def delete_sprint_draft(self, sprint_id):
        if sprint_id not in self.sprints:
            return False
        del self.sprints[sprint_id]
        for line_id, line in list(self.lines.items()):
            if line.sprint_draft_id == sprint_id:
                del self.lines[line_id]
        return True

    async def list_sprint_lines(self, sprint_id):
        return [line for line in self.lines.values() if line.sprint_draft_id == sprint_id]

    async def insert_sprint_lines(self, sprint_id, lines):
        if self.fail_writes:
            return False
        existing = {line.deliverable_id for line in await self.list_sprint_lines(sprint_id)}
        for line in lines:
            if line.deliverable_id in existing:
                continue
            line_id = self._next_id("line")
            self.lines[line_id] = line.model_copy(update={"id": line_id, "sprint_draft_id": sprint_id})
            existing.add(line.deliverable_id)
        return True

    async def update_sprint_line(self, line_id, updates):
        if self.fail_writes or line_id not in self.lines:
            return False
        self.lines[line_id] = self.lines[line_id].model_copy(update=updates)
        return True

    async def delete_sprint_line(self, sprint_id, deliverable_id):
        for line_id, line in list(self.lines.items()):
            if line.sprint_draft_id == sprint_id and line.deliverable_id == deliverable_id:
                del self.lines[line_id]
                return True
        return False

    # Compensation plans
    async def save_comp_plan(self, plan: DeferredCompPlan):
        if self.fail_writes:
            return None
        plan_id = self._next_id("plan")
        self.comp_plans.insert(0, plan.model_copy(update={"id": plan_id}))
        return plan_id

    async def list_comp_plans(self, sprint_id):
        return [plan for plan in self.comp_plans if plan.sprint_id == sprint_id]

    async def get_latest_comp_plan(self, sprint_id) -> Optional[DeferredCompPlan]:
        plans = await self.list_comp_plans(sprint_id)
        return plans[0] if plans else None

    async def health_check(self):
        return True

    # Test helpers
    def seed_sprint(self, sprint: SprintDraft) -> str:
        """Store a sprint and its lines under the sprint's own id."""
        self.sprints[sprint.id] = sprint.model_dump(exclude={"lines"})
        for line in sprint.lines:
            self.lines[line.id] = line.model_copy(update={"sprint_draft_id": sprint.id})
        return sprint.id


@pytest.fixture
def fake_db(catalog_deliverables, catalog_package) -> FakeDatabase:
    """In-memory store seeded with the sample catalog."""
    return FakeDatabase(catalog_deliverables, [catalog_package])


# ===========================================
# Client Fixtures
# ===========================================

@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Test client; individual tests patch the service singletons they exercise."""
    from sprint_engine.main import app
    with TestClient(app) as test_client:
        yield test_client


# ===========================================
# Pytest Configuration
# ===========================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
