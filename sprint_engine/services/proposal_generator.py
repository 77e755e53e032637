"""Proposal Generator - Intake document to priced sprint draft."""

import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from sprint_engine.core.config import get_settings, resolve_model
from sprint_engine.core.database import db_service
from sprint_engine.core.errors import (
    ConfigurationError,
    DocumentNotFoundError,
    DocumentTooLargeError,
    InvalidQuantityError,
    PersistenceError,
    UnusableModelOutputError,
)
from sprint_engine.intelligence import (
    DEFAULT_SPRINT_SYSTEM_PROMPT,
    DEFAULT_SPRINT_USER_PROMPT,
    build_catalog_block,
    build_client_context,
    compose_user_prompt,
)
from sprint_engine.integrations.openai_client import openai_service
from sprint_engine.models import (
    AIResponseRecord,
    AIResponseStatus,
    ClientProfile,
    CompletionResponse,
    GenerationResult,
    RecommendedDeliverable,
    SprintRecommendation,
)
from sprint_engine.services.intake import normalize_submission
from sprint_engine.services.notifications import notification_hook
from sprint_engine.services.pricing import validate_quantity
from sprint_engine.services.sprint_builder import sprint_builder

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 255
GENERIC_TITLE = "Sprint Plan"


def serialized_size(content: Any) -> int:
    """Length of the compact JSON form of a document."""
    return len(json.dumps(content, separators=(",", ":"), ensure_ascii=False, default=str))


def parse_model_output(raw: str) -> Dict[str, Any]:
    """
    Parse the model's text as a single JSON object.

    Raises:
        ValueError: Not JSON, or JSON that is not an object
    """
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"AI did not return valid JSON: {e}")
    if not isinstance(parsed, dict):
        raise ValueError(f"AI response is not a JSON object (got {type(parsed).__name__})")
    return parsed


def resolve_title(model_title: Any, profile: Optional[ClientProfile]) -> str:
    """Model title, then project name, then contact name, then the generic title."""
    if isinstance(model_title, str) and model_title.strip():
        return model_title.strip()[:MAX_TITLE_LENGTH]
    if profile is not None:
        if profile.project_name:
            return f"Sprint Plan for {profile.project_name}"[:MAX_TITLE_LENGTH]
        contact = profile.contact_name()
        if contact:
            return f"Sprint Plan for {contact}"[:MAX_TITLE_LENGTH]
    return GENERIC_TITLE


def _entry_id(entry: Dict[str, Any]) -> Optional[str]:
    for key in ("id", "deliverableId", "deliverable_id"):
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _entry_quantity(entry: Dict[str, Any]) -> int:
    """Model-supplied quantity, or one when absent or unusable."""
    if entry.get("quantity") is None:
        return 1
    try:
        return validate_quantity(entry["quantity"])
    except InvalidQuantityError:
        return 1


class ProposalGenerator:
    """
    Orchestrates one proposal-generation attempt.

    Steps:
    1. Load the intake document
    2. Check provider credentials
    3. Resolve the model against the allow-list
    4. Reject oversized documents
    5. Load prompts and ground them in the active catalog
    6. Normalize the intake into a client-context block
    7. Call the model
    8. Store the raw response for audit
    9. Parse the JSON output
    10. Validate catalog references
    11. Resolve the title
    12. Flag empty recommendations for review
    13. Persist the sprint draft and lines
    14. Notify the client (best effort)
    """

    def __init__(self, db=None, llm=None, builder=None, notifier=None):
        """Initialize generator with injectable collaborators."""
        self._db = db
        self._llm = llm
        self._builder = builder
        self._notifier = notifier
        self._settings = None

    @property
    def settings(self):
        """Lazy load settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def db(self):
        return self._db or db_service

    @property
    def llm(self):
        return self._llm or openai_service

    @property
    def builder(self):
        return self._builder or sprint_builder

    @property
    def notifier(self):
        return self._notifier or notification_hook

    # ===========================================
    # Entry Points
    # ===========================================

    async def process_intake(self, submission: Dict[str, Any], model: Optional[str] = None) -> GenerationResult:
        """Store a raw form submission, then generate its sprint."""
        if not self.llm.is_configured():
            raise ConfigurationError("OPENAI_API_KEY is not configured")

        document_id = await self.db.create_document(submission)
        if not document_id:
            raise PersistenceError("Could not store intake document")
        return await self.generate(document_id, model=model)

    async def generate(
        self,
        document_id: str,
        model: Optional[str] = None,
        idempotency_key: Optional[str] = None
    ) -> GenerationResult:
        """
        Generate a sprint draft for a stored intake document.

        Args:
            document_id: Intake document ID
            model: Requested model; off-list values fall back to the default
            idempotency_key: One token per logical attempt; generated when absent

        Returns:
            GenerationResult for the new draft

        Raises:
            DocumentNotFoundError, ConfigurationError, DocumentTooLargeError,
            UpstreamError subclasses, UnusableModelOutputError, PersistenceError
        """
        logger.info(f"Generating sprint for document {document_id}")

        # Step 1: Load document
        document = await self.db.get_document(document_id)
        if not document:
            raise DocumentNotFoundError(f"Document not found: {document_id}")
        content = document.get("content")

        # Step 2: Credentials (nothing written yet)
        if not self.llm.is_configured():
            raise ConfigurationError("OPENAI_API_KEY is not configured")

        # Step 3: Model allow-list
        requested = model or self.settings.OPENAI_MODEL
        resolved_model = resolve_model(requested, self.settings.OPENAI_MODEL)
        if resolved_model != requested:
            logger.warning(f"Model {requested!r} not allowed; falling back to {resolved_model}")

        # Step 4: Size guard (no external call for oversized input)
        size = serialized_size(content)
        if size > self.settings.MAX_DOCUMENT_CHARS:
            logger.warning(f"Document {document_id} too large for AI request: {size} chars")
            raise DocumentTooLargeError(
                "Document too large to send to the language model",
                details={"size": size, "limit": self.settings.MAX_DOCUMENT_CHARS},
            )

        # Step 5-6: Prompts, catalog grounding, client context
        profile = normalize_submission(content)
        if profile.is_empty():
            logger.warning(f"No client details recognized in document {document_id}; prompt is not personalized")
        messages = await self.build_messages(content, profile)

        # Step 7: Model call
        idempotency_key = idempotency_key or str(uuid.uuid4())
        completion = await self.llm.create_chat_completion(resolved_model, messages, idempotency_key)

        # Step 8: Audit row before anything else
        ai_response_id = await self.store_response(document_id, resolved_model, idempotency_key, completion)

        # Step 9: Parse
        try:
            parsed = parse_model_output(completion.content)
        except ValueError as e:
            logger.error(f"Unusable model output for document {document_id}: {e}")
            await self.db.update_ai_response(ai_response_id, {
                "status": AIResponseStatus.PARSE_ERROR.value,
                "error": str(e),
            })
            raise UnusableModelOutputError(
                str(e),
                ai_response_id=ai_response_id,
                details={"preview": completion.content[:300]},
            )

        # Step 10: Catalog validation
        recommendation = await self.validate_recommendation(parsed)
        await self.db.update_ai_response(ai_response_id, {
            "status": AIResponseStatus.ACCEPTED.value,
            "response_json": recommendation.draft,
        })

        # Step 11: Title
        title = resolve_title(parsed.get("title") or parsed.get("sprintTitle"), profile)

        # Step 12: Empty recommendation is kept as a draft for studio review
        needs_review = recommendation.is_empty
        if needs_review:
            logger.warning(
                f"No catalog item survived validation for document {document_id}; "
                f"creating an empty draft for review"
            )

        # Step 13: Persist draft and lines
        sprint = await self.builder.create_from_recommendation(
            document_id=document_id,
            ai_response_id=ai_response_id,
            title=title,
            draft=recommendation.draft,
            package_id=recommendation.sprint_package_id,
            deliverables=[] if recommendation.sprint_package_id else recommendation.deliverables,
            project_name=profile.project_name,
        )

        # Step 14: Post-commit notification (never raises)
        sprint_url = f"{self.settings.public_base_url()}/sprints/{sprint.id}"
        notification = await self.notifier.sprint_ready(profile, title, sprint_url)

        dropped = list(recommendation.dropped_deliverable_ids)
        if recommendation.dropped_package_id:
            dropped.insert(0, recommendation.dropped_package_id)

        logger.info(
            f"Sprint {sprint.id} created for document {document_id}: "
            f"{title!r}, {sprint.deliverable_count} unit(s), needs_review={needs_review}"
        )

        return GenerationResult(
            sprint_draft_id=sprint.id,
            ai_response_id=ai_response_id,
            title=title,
            sprint_package_id=recommendation.sprint_package_id,
            deliverable_count=sprint.deliverable_count,
            needs_review=needs_review,
            dropped_references=dropped,
            notification=notification,
        )

    # ===========================================
    # Prompt Construction
    # ===========================================

    async def load_prompts(self) -> Tuple[str, str]:
        """Studio overrides where set, defaults otherwise."""
        overrides = await self.db.get_prompt_overrides()
        return (
            overrides.get("sprint_system_prompt") or DEFAULT_SPRINT_SYSTEM_PROMPT,
            overrides.get("sprint_user_prompt") or DEFAULT_SPRINT_USER_PROMPT,
        )

    async def build_catalog(self) -> str:
        deliverables = await self.db.list_active_deliverables(self.settings.CATALOG_DELIVERABLE_LIMIT)
        packages = await self.db.list_active_packages(self.settings.CATALOG_PACKAGE_LIMIT)

        lookup = {d.id: d for d in deliverables}
        missing = {
            link.deliverable_id
            for package in packages
            for link in package.deliverables
            if link.deliverable_id not in lookup
        }
        if missing:
            lookup.update(await self.db.get_active_deliverables(missing))

        logger.info(f"Catalog grounding: {len(deliverables)} deliverable(s), {len(packages)} package(s)")
        return build_catalog_block(deliverables, packages, lookup)

    async def build_messages(self, content: Any, profile: ClientProfile) -> List[Dict[str, str]]:
        system_prompt, user_prompt = await self.load_prompts()
        catalog_block = await self.build_catalog()
        client_context = build_client_context(profile)

        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": compose_user_prompt(user_prompt, catalog_block, client_context)},
            {
                "role": "user",
                "content": "Client intake JSON:\n\n```json\n"
                + json.dumps(content, indent=2, ensure_ascii=False, default=str)
                + "\n```",
            },
        ]

    # ===========================================
    # Audit & Validation
    # ===========================================

    async def store_response(
        self,
        document_id: str,
        model: str,
        idempotency_key: str,
        completion: CompletionResponse
    ) -> str:
        record = AIResponseRecord(
            document_id=document_id,
            model=model,
            idempotency_key=idempotency_key,
            prompt_tokens=completion.usage.prompt_tokens,
            completion_tokens=completion.usage.completion_tokens,
            total_tokens=completion.usage.total_tokens,
            raw_response=completion.content,
            status=AIResponseStatus.RECEIVED,
        )
        ai_response_id = await self.db.create_ai_response(record)
        if not ai_response_id:
            raise PersistenceError("Could not store the model response for audit")
        return ai_response_id

    async def validate_recommendation(self, parsed: Dict[str, Any]) -> SprintRecommendation:
        """
        Keep only references to active catalog rows.

        An unknown package id is dropped, never fabricated. Unknown
        deliverable ids are filtered out and the valid subset is kept.
        """
        draft = dict(parsed)

        package_id: Optional[str] = None
        dropped_package_id: Optional[str] = None
        raw_package_id = parsed.get("sprintPackageId")
        if isinstance(raw_package_id, str) and raw_package_id.strip():
            package = await self.db.get_active_package(raw_package_id.strip())
            if package is not None:
                package_id = package.id
            else:
                dropped_package_id = raw_package_id
                draft.pop("sprintPackageId", None)
                logger.warning(f"AI returned invalid sprintPackageId: {raw_package_id}")
        elif raw_package_id is not None:
            draft.pop("sprintPackageId", None)

        recommended: List[RecommendedDeliverable] = []
        dropped_ids: List[str] = []
        raw_deliverables = parsed.get("deliverables")
        if isinstance(raw_deliverables, list):
            entries = [e for e in raw_deliverables if isinstance(e, dict) and _entry_id(e)]
            active = await self.db.get_active_deliverables([_entry_id(e) for e in entries])

            kept_entries = []
            for entry in entries:
                deliverable_id = _entry_id(entry)
                if deliverable_id not in active:
                    logger.warning(f"AI returned invalid deliverableId: {deliverable_id}")
                    dropped_ids.append(deliverable_id)
                    continue
                reason = entry.get("reason")
                recommended.append(RecommendedDeliverable(
                    deliverable_id=deliverable_id,
                    quantity=_entry_quantity(entry),
                    reason=reason if isinstance(reason, str) else None,
                ))
                kept_entries.append(entry)
            draft["deliverables"] = kept_entries

        if package_id and recommended:
            logger.info(f"Both package and deliverables validated; package {package_id} wins")

        return SprintRecommendation(
            title=parsed.get("title") if isinstance(parsed.get("title"), str) else None,
            sprint_package_id=package_id,
            deliverables=recommended,
            dropped_package_id=dropped_package_id,
            dropped_deliverable_ids=dropped_ids,
            draft=draft,
        )


# Singleton instance
proposal_generator = ProposalGenerator()
