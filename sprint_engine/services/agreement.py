"""
Compensation & Agreement Composer - Sprint agreement markdown.

``compose`` is pure string templating over numbers that were already
computed: sprint totals come from the Totals Engine and money splits
come from the saved plan's outputs. Nothing here recomputes totals.
Output is deterministic; the generated-at timestamp lives only in the
metadata.
"""

import logging
import math
import re
from datetime import date, datetime
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel

from sprint_engine.core.config import PRICING, PricingConfig, get_settings
from sprint_engine.core.database import db_service
from sprint_engine.core.errors import AgreementTemplateError, PersistenceError, SprintNotFoundError
from sprint_engine.models import (
    AgreementDocument,
    AgreementMeta,
    DeferredCompPlan,
    MilestoneMissOutcome,
    SprintDeliverableLine,
    SprintDraft,
    UpfrontPaymentTiming,
)

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{([A-Za-z][A-Za-z0-9]*)\}")


class StudioIdentity(BaseModel):
    """The designer party named in every agreement."""

    model_config = {"frozen": True}

    legal_name: str = "Chris Meisner LLC"
    signatory: str = "Chris Meisner"
    signatory_title: str = "Principal"
    jurisdiction: str = "Commonwealth of Pennsylvania"


STUDIO = StudioIdentity()


# ===========================================
# Templates
# ===========================================

TEMPLATE_HEADER = """# {sprintTitle} Agreement

This Agreement is entered into as of the Effective Date below between:

**{designerCompany}** ("Designer"), a limited liability company providing design services, and

**{clientCompany}** ("Client"){clientDescription}.

---

## 1. Overview of Engagement

{designerCompany} will deliver a defined set of brand and design deliverables as part of a structured sprint, scoped collaboratively with the Client. Deliverables, pricing, and terms are set forth below.

**Sprint Start Date:** {startDate}
**Sprint Due Date:** {dueDate}

---

## 2. Deliverables & Scope

The following deliverables are included in this sprint, calculated using a point-based pricing system at {pointRate} per point:

{deliverablesTable}

**Total Points:** {totalPoints}
**Per Point Rate:** {pointRate}
**Total Sprint Fee:** {totalPriceFormatted}

---

{paymentSections}

---

## 4. Intellectual Property (IP) & Licensing

All deliverables are custom-created and, upon full payment, the Client will receive full ownership and rights to use, modify, and distribute them as they see fit.

Until full payment is received:
- The Client is granted a limited, non-exclusive license to use the deliverables internally or for exploration purposes for up to 30 days after delivery.
- Ownership remains with {designerCompany} during this period.
- If payment is not made within the 30-day window, the license is revoked and further use constitutes infringement.

---

## 5. Scope Changes

This Agreement covers only the deliverables listed above. Any additional features, revisions, or new deliverables will be scoped and billed separately, either via a new sprint or an addendum to this agreement.

Client agrees to provide timely feedback, access, and approvals necessary to keep the sprint on schedule. Delays caused by lack of Client responsiveness may result in adjusted timelines.

---"""

TEMPLATE_FOOTER = """

---

## 7. Miscellaneous

**Independent Contractor:** {designerCompany} is an independent contractor, not an employee.

**Confidentiality:** Both parties agree to keep all project information confidential.

**Portfolio Use:** Client grants Designer permission to display deliverables and a brief case study for portfolio/marketing purposes after Client's public launch (or 30 days after final delivery), provided Designer does not share confidential information and will remove content upon reasonable written request.

**Jurisdiction:** This agreement is governed by the laws of the {jurisdiction}.

---

## 8. Signatures

By signing below, both parties agree to the terms of this agreement.

**{designerCompany}**
Name: {designerSignatory}
Title: {designerTitle}

**{clientCompany}**
Name: __________________________
Title: __________________________
"""

STANDARD_TERMINATION = """

## 6. Termination

Either party may terminate this agreement with written notice. In the event of termination:
- The Kickoff Payment is non-refundable and will be retained by {designerCompany}.
- If termination occurs after work has begun, the value of work completed will be calculated based on the point system. Any amounts already paid will be credited toward that total, and any remaining balance will be invoiced.
- If no deliverables are delivered, no IP rights transfer occurs.
"""

DEFERRED_TERMINATION = """

## 6. Termination

Either party may terminate this agreement with written notice. In the event of termination:
- The Kickoff Payment is non-refundable and will be retained by {designerCompany}.
- If termination occurs after work has begun, the value of work completed will be calculated based on the point system. Any amounts already paid will be credited toward that total, and any remaining balance will be invoiced.
- Any equity arrangements outlined in Section 3a will be governed by the terms of the separate equity documentation.
- Deferred payment obligations will be prorated based on work completed and milestones achieved as of the termination date.
- If no deliverables are delivered, no IP rights transfer occurs.
"""

STANDARD_AGREEMENT_TEMPLATE = TEMPLATE_HEADER + STANDARD_TERMINATION + TEMPLATE_FOOTER
DEFERRED_AGREEMENT_TEMPLATE = TEMPLATE_HEADER + DEFERRED_TERMINATION + TEMPLATE_FOOTER

MILESTONE_MISS_OUTCOMES: Dict[MilestoneMissOutcome, str] = {
    MilestoneMissOutcome.FORGIVEN: (
        "If no milestones are achieved, the deferred payment obligation will be **forgiven entirely**. "
        "The Designer accepts the risk that Client may not meet growth targets."
    ),
    MilestoneMissOutcome.REDUCED_50: (
        "If no milestones are achieved, the deferred payment will be **reduced to 50%** "
        "of the base amount ({reducedAmount})."
    ),
    MilestoneMissOutcome.REDUCED_20: (
        "If no milestones are achieved, the deferred payment will be **reduced to 20%** "
        "of the base amount ({reducedAmount})."
    ),
    MilestoneMissOutcome.STILL_OWED: (
        "If no milestones are achieved, the **full deferred payment (100%)** of {deferredAmount} "
        "remains owed to the Designer."
    ),
    MilestoneMissOutcome.RENEGOTIATE: (
        "If no milestones are achieved, the parties agree to **renegotiate the deferred payment terms "
        "in good faith** within 30 days of the final milestone target date."
    ),
}

REDUCED_FRACTIONS: Dict[MilestoneMissOutcome, float] = {
    MilestoneMissOutcome.REDUCED_50: 0.5,
    MilestoneMissOutcome.REDUCED_20: 0.2,
}

# Completes "... Payment of $X is "
KICKOFF_DUE: Dict[UpfrontPaymentTiming, str] = {
    UpfrontPaymentTiming.ON_SIGNING: (
        "due upon signing of this Agreement and must be received prior to the Sprint Start Date"
    ),
    UpfrontPaymentTiming.ON_KICKOFF: (
        "due on the Sprint Start Date and must be received before sprint work begins"
    ),
    UpfrontPaymentTiming.NET_15: (
        "due within 15 calendar days of signing this Agreement and must be received prior to "
        "the Sprint Start Date"
    ),
}

PAYMENT_METHODS = "All payments are to be made in USD via bank transfer, ACH, or other mutually agreed method."


# ===========================================
# Formatting
# ===========================================

def render(template: str, values: Mapping[str, str]) -> str:
    """
    Fill ``{name}`` markers in a single pass.

    Substituted values are never rescanned, so braces inside client text
    survive untouched.

    Raises:
        AgreementTemplateError: A marker in the template has no value
    """
    missing = sorted({name for name in PLACEHOLDER.findall(template) if name not in values})
    if missing:
        raise AgreementTemplateError(
            "Agreement template has unresolved placeholders",
            details={"placeholders": missing},
        )
    return PLACEHOLDER.sub(lambda match: values[match.group(1)], template)


def format_currency(amount: float) -> str:
    return f"${amount:,.2f}"


def format_rate(amount: float) -> str:
    """Per-point rate without cents when it is a whole number."""
    if float(amount).is_integer():
        return f"${int(amount):,}"
    return format_currency(amount)


def format_percent(fraction: float) -> str:
    """Whole percent, rounding halves up."""
    return f"{int(math.floor(fraction * 100 + 0.5))}%"


def format_multiplier(multiplier: float) -> str:
    if float(multiplier).is_integer():
        return f"{int(multiplier)}x"
    return f"{multiplier:g}x"


def format_long_date(value: Optional[date]) -> str:
    """``Monday, March 3, 2025`` or ``TBD``."""
    if value is None:
        return "TBD"
    return f"{value.strftime('%A')}, {value.strftime('%B')} {value.day}, {value.year}"


def format_milestone_date(value: Optional[date]) -> str:
    if value is None:
        return "TBD"
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def scope_text(line: SprintDeliverableLine) -> str:
    """Most specific scope available, flattened for a markdown table cell."""
    for candidate in (line.notes, line.custom_scope, line.deliverable_scope):
        if candidate and candidate.strip():
            return candidate.strip().replace("\r\n", "\n").replace("\n", " <br> ")
    return "—"


def line_points(line: SprintDeliverableLine) -> float:
    if line.custom_points is not None:
        return line.custom_points
    return line.base_points * line.quantity * line.complexity_score


def deliverables_table(lines: List[SprintDeliverableLine]) -> str:
    header = "| Deliverable | PTS | Scope |\n| --- | ---: | --- |"
    rows = [
        f"| {line.display_name} | {line_points(line):.1f} | {scope_text(line)} |"
        for line in lines
    ]
    return "\n".join([header] + rows)


# ===========================================
# Payment Sections
# ===========================================

def standard_payment_sections(
    upfront_fraction: float,
    total_price: float,
    plan: Optional[DeferredCompPlan] = None,
    pricing: PricingConfig = PRICING
) -> str:
    """Kickoff + completion installments, or a single full payment."""
    timing = plan.inputs.upfront_payment_timing if plan else UpfrontPaymentTiming.ON_SIGNING
    due = KICKOFF_DUE[timing]

    if upfront_fraction >= pricing.full_upfront_threshold:
        return (
            "## 3. Payment Terms\n\n"
            f"**Total Sprint Fee:** {format_currency(total_price)}\n\n"
            f"The full sprint fee is {due}. Work will not begin until payment has been received.\n\n"
            f"{PAYMENT_METHODS}"
        )

    if plan is not None:
        upfront_amount = plan.outputs.upfront_amount
        remaining_amount = plan.outputs.remaining_on_completion
    else:
        upfront_amount = total_price * upfront_fraction
        remaining_amount = total_price * (1 - upfront_fraction)

    kickoff_percent = format_percent(upfront_fraction)
    completion_percent = format_percent(1 - upfront_fraction)

    return (
        "## 3. Payment Terms\n\n"
        f"**Total Sprint Fee:** {format_currency(total_price)}\n\n"
        "Payment will be made in two installments as outlined in Section 3a below. "
        "Work will not begin until the Kickoff Payment has been received.\n\n"
        f"{PAYMENT_METHODS}\n\n"
        "---\n\n"
        "## 3a. Compensation Structure\n\n"
        f"This engagement follows a {kickoff_percent} upfront / {completion_percent} completion payment structure.\n\n"
        "### Payment Breakdown\n\n"
        "| Component | Percentage | Amount |\n"
        "|-----------|------------|--------|\n"
        f"| Kickoff Payment | {kickoff_percent} | {format_currency(upfront_amount)} |\n"
        f"| Completion Payment | {completion_percent} | {format_currency(remaining_amount)} |\n\n"
        f"**Kickoff Payment** of {format_currency(upfront_amount)} is {due}.\n\n"
        f"**Completion Payment** of {format_currency(remaining_amount)} is due upon delivery of the final "
        "sprint deliverables and is payable within 15 calendar days of delivery.\n\n"
        "Delivery is defined as the Designer making the final sprint deliverables available to the Client "
        "in their completed form. Delivery of final assets may be withheld until all outstanding balances "
        "are paid in full."
    )


def milestone_miss_text(outcome: MilestoneMissOutcome, deferred_amount: float) -> str:
    """The "if no milestones are achieved" paragraph for a policy."""
    template = MILESTONE_MISS_OUTCOMES.get(outcome, MILESTONE_MISS_OUTCOMES[MilestoneMissOutcome.RENEGOTIATE])
    values = {"deferredAmount": format_currency(deferred_amount)}
    if outcome in REDUCED_FRACTIONS:
        values["reducedAmount"] = format_currency(deferred_amount * REDUCED_FRACTIONS[outcome])
    return render(template, values)


def deferred_payment_sections(plan: DeferredCompPlan, pricing: PricingConfig = PRICING) -> str:
    """Three-way split with only the non-zero rows, plus milestone terms."""
    inputs, outputs = plan.inputs, plan.outputs
    due = KICKOFF_DUE[inputs.upfront_payment_timing]
    remaining_fraction = 1 - inputs.upfront_payment

    has_deferred = outputs.deferred_amount > pricing.zero_epsilon
    has_equity = outputs.equity_amount > pricing.zero_epsilon

    if not has_deferred and not has_equity:
        return (
            "## 3. Payment Terms\n\n"
            f"**Total Project Value:** {format_currency(outputs.total_project_value)}\n\n"
            f"The full project fee is {due}. Work will not begin until payment has been received.\n\n"
            f"{PAYMENT_METHODS}"
        )

    components = []
    if has_equity:
        components.append("equity")
    if has_deferred:
        components.append("deferred")

    rows = [
        f"| Kickoff Payment | {format_percent(inputs.upfront_payment)} | {format_currency(outputs.upfront_amount)} |"
    ]
    if has_equity:
        rows.append(
            f"| Equity Component | {format_percent(remaining_fraction * inputs.equity_split)} "
            f"| {format_currency(outputs.equity_amount)} |"
        )
    if has_deferred:
        rows.append(
            f"| Deferred Payment (Base) | {format_percent(remaining_fraction * (1 - inputs.equity_split))} "
            f"| {format_currency(outputs.deferred_amount)} |"
        )

    parts = [
        "## 3. Payment Terms\n\n"
        f"**Total Project Value:** {format_currency(outputs.total_project_value)}\n\n"
        "This engagement uses a structured compensation model combining an upfront kickoff payment with "
        f"{' and '.join(components)} components, as detailed in Section 3a below. "
        "Work will not begin until the Kickoff Payment has been received.\n\n"
        f"{PAYMENT_METHODS}\n\n"
        "---\n\n"
        "## 3a. Compensation Structure\n\n"
        "This engagement includes a structured compensation model as outlined below:\n\n"
        "### Payment Breakdown\n\n"
        "| Component | Percentage | Amount |\n"
        "|-----------|------------|--------|\n"
        + "\n".join(rows),
        f"**Kickoff Payment** of {format_currency(outputs.upfront_amount)} is {due}.",
    ]

    if has_equity:
        parts.append(
            f"**Equity Component** of {format_currency(outputs.equity_amount)} represents a stake in the "
            "Client's company, subject to separate equity documentation."
        )

    if has_deferred:
        parts.append(deferred_terms(plan))

    return "\n\n".join(parts)


def deferred_terms(plan: DeferredCompPlan) -> str:
    """Milestone table and miss policy, or the separately-negotiated paragraph."""
    deferred_amount = plan.outputs.deferred_amount
    milestones = plan.inputs.milestones

    if not milestones:
        return (
            "### Deferred Payment\n\n"
            f"The deferred payment of {format_currency(deferred_amount)} will be due according to "
            "terms negotiated separately."
        )

    table = ["| Milestone | Target Date | Multiplier | Potential Payout |", "| --- | --- | ---: | ---: |"]
    for milestone in milestones:
        table.append(
            f"| {milestone.summary.strip() or 'TBD'} | {format_milestone_date(milestone.target_date)} "
            f"| {format_multiplier(milestone.multiplier)} | {format_currency(deferred_amount * milestone.multiplier)} |"
        )

    max_payout = deferred_amount * max(m.multiplier for m in milestones)

    return (
        "### Deferred Payment & Performance Milestones\n\n"
        f"The deferred component ({format_currency(deferred_amount)} base) may be multiplied based on "
        "achievement of the following milestones:\n\n"
        + "\n".join(table)
        + "\n\n"
        f"**Total Potential Payout Range:** {format_currency(deferred_amount)} (base) to "
        f"{format_currency(max_payout)} (if all milestones achieved)\n\n"
        "### If No Milestones Are Achieved\n\n"
        f"{milestone_miss_text(plan.inputs.milestone_miss_outcome, deferred_amount)}"
    )


# ===========================================
# Composer
# ===========================================

def resolve_sprint_title(sprint: SprintDraft) -> str:
    draft_title = sprint.draft.get("sprintTitle") if isinstance(sprint.draft, dict) else None
    if sprint.title and sprint.title.strip():
        return sprint.title.strip()
    if isinstance(draft_title, str) and draft_title.strip():
        return draft_title.strip()
    return "Design Sprint"


def compose(
    sprint: SprintDraft,
    lines: List[SprintDeliverableLine],
    plan: Optional[DeferredCompPlan] = None,
    *,
    client_company: Optional[str] = None,
    pricing: PricingConfig = PRICING,
    studio: StudioIdentity = STUDIO,
    generated_at: Optional[datetime] = None
) -> AgreementDocument:
    """
    Render the agreement for a sprint.

    Args:
        sprint: Sprint draft carrying totals and dates
        lines: Sprint lines in display order
        plan: Latest compensation plan, if any
        client_company: Client party name; defaults to the sprint's project name
        pricing: Shared pricing constants
        studio: Designer party
        generated_at: Metadata timestamp; never written into the markdown

    Returns:
        AgreementDocument with markdown and metadata

    Raises:
        AgreementTemplateError: A template placeholder has no value
    """
    company = (client_company or sprint.project_name or "Client").strip() or "Client"
    title = resolve_sprint_title(sprint)
    total_points = sprint.total_estimate_points or 0.0
    total_price = sprint.total_fixed_price or 0.0

    is_deferred = plan is not None and plan.inputs.is_deferred
    if plan is None:
        template = STANDARD_AGREEMENT_TEMPLATE
        payment_sections = standard_payment_sections(pricing.default_upfront_fraction, total_price, None, pricing)
    elif is_deferred:
        template = DEFERRED_AGREEMENT_TEMPLATE
        payment_sections = deferred_payment_sections(plan, pricing)
    else:
        template = STANDARD_AGREEMENT_TEMPLATE
        payment_sections = standard_payment_sections(plan.inputs.upfront_payment, total_price, plan, pricing)

    markdown = render(template, {
        "sprintTitle": f"{company} {title}",
        "clientCompany": company,
        "clientDescription": ", an organization" if company != "Client" else "",
        "designerCompany": studio.legal_name,
        "designerSignatory": studio.signatory,
        "designerTitle": studio.signatory_title,
        "jurisdiction": studio.jurisdiction,
        "startDate": format_long_date(sprint.start_date),
        "dueDate": format_long_date(sprint.due_date),
        "deliverablesTable": deliverables_table(lines),
        "totalPoints": f"{total_points:.1f}",
        "pointRate": format_rate(pricing.price_per_point),
        "totalPriceFormatted": format_currency(total_price),
        "paymentSections": payment_sections,
    })

    meta = AgreementMeta(
        sprint_title=title,
        client_company=company,
        total_points=total_points,
        total_price=total_price,
        deliverable_count=len(lines),
        has_comp_plan=plan is not None,
        is_deferred=is_deferred,
    )
    if generated_at is not None:
        meta = meta.model_copy(update={"generated_at": generated_at})

    return AgreementDocument(markdown=markdown, meta=meta)


class AgreementService:
    """Loads a sprint with its lines and latest plan, composes and stores the agreement."""

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        return self._db or db_service

    @staticmethod
    def studio_identity() -> StudioIdentity:
        settings = get_settings()
        return StudioIdentity(
            legal_name=settings.STUDIO_LEGAL_NAME,
            signatory=settings.STUDIO_SIGNATORY,
            signatory_title=settings.STUDIO_SIGNATORY_TITLE,
            jurisdiction=settings.STUDIO_JURISDICTION,
        )

    async def generate(self, sprint_id: str, client_company: Optional[str] = None) -> AgreementDocument:
        """
        Compose and store the agreement for a sprint.

        Raises:
            SprintNotFoundError: Unknown sprint
            PersistenceError: The agreement could not be stored
        """
        sprint = await self.db.get_sprint_draft(sprint_id)
        if sprint is None:
            raise SprintNotFoundError(f"Sprint not found: {sprint_id}")

        plan = await self.db.get_latest_comp_plan(sprint_id)
        document = compose(
            sprint,
            sprint.lines,
            plan,
            client_company=client_company,
            studio=self.studio_identity(),
        )

        stored = await self.db.update_sprint_draft(sprint_id, {
            "agreement_markdown": document.markdown,
            "agreement_generated_at": document.meta.generated_at.isoformat(),
        })
        if not stored:
            raise PersistenceError(f"Could not store agreement for sprint {sprint_id}")

        logger.info(
            f"Generated agreement for sprint {sprint_id}: "
            f"{document.meta.deliverable_count} deliverable(s), "
            f"comp plan={document.meta.has_comp_plan}, deferred={document.meta.is_deferred}"
        )
        return document

    async def get_stored(self, sprint_id: str) -> Dict[str, Optional[str]]:
        """Previously generated agreement, if any."""
        sprint = await self.db.get_sprint_draft(sprint_id, with_lines=False)
        if sprint is None:
            raise SprintNotFoundError(f"Sprint not found: {sprint_id}")
        return {
            "agreement": sprint.agreement_markdown,
            "generated_at": sprint.agreement_generated_at.isoformat() if sprint.agreement_generated_at else None,
            "title": sprint.title,
        }


# Singleton instance
agreement_service = AgreementService()
