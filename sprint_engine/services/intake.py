"""
Intake Normalizer - Canonical client profile from a form submission.

The form provider does not keep field identifiers stable across form
edits, but question wording is stable. Fields are therefore matched by
case-insensitive substrings of the question title through an ordered,
auditable rule list. Editing the question wording on the form itself
breaks a rule; that is a known limitation.

Every accessor here is total: malformed documents produce absent
fields, never exceptions.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from pydantic import EmailStr, TypeAdapter, ValidationError

from sprint_engine.models import ClientProfile, IntakeAnswer

logger = logging.getLogger(__name__)

EMAIL_ADAPTER = TypeAdapter(EmailStr)


# ===========================================
# Total Accessors
# ===========================================

def _get(obj: Any, *path: str) -> Any:
    """Walk nested dicts, returning None at the first missing or non-dict step."""
    current = obj
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _text(value: Any) -> Optional[str]:
    """Trimmed non-empty string, or None."""
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _labels(value: Any) -> List[str]:
    if isinstance(value, list):
        return [label for label in (_text(v) for v in value) if label]
    label = _text(value)
    return [label] if label else []


def clean_email(value: Any) -> Optional[str]:
    """Validated email address, or None when the value is not one."""
    text = _text(value)
    if not text or "@" not in text:
        return None
    try:
        return EMAIL_ADAPTER.validate_python(text)
    except ValidationError:
        return None


def unwrap_document(document: Any) -> Dict[str, Any]:
    """Strip the ``{"body": {...}}`` envelope some relays add."""
    if not isinstance(document, dict):
        return {}
    body = document.get("body")
    if isinstance(body, dict) and len(document) == 1:
        return body
    return document


# ===========================================
# Answer Extraction
# ===========================================

def _typeform_value(answer: Dict[str, Any]) -> Any:
    """Collapse one provider answer to a label, label list or text."""
    answer_type = answer.get("type")

    if answer_type in ("text", "long_text", "short_text"):
        return _text(answer.get("text"))
    if answer_type == "email":
        return _text(answer.get("email"))
    if answer_type == "number":
        return _text(answer.get("number"))
    if answer_type == "boolean":
        value = answer.get("boolean")
        return _text(value) if isinstance(value, bool) else None
    if answer_type == "choice":
        choice = answer.get("choice")
        return _text(_get(choice, "label")) or _text(_get(choice, "other"))
    if answer_type == "choices":
        choices = answer.get("choices")
        labels = _labels(_get(choices, "labels"))
        other = _text(_get(choices, "other"))
        if other:
            labels.append(other)
        return labels or None
    if answer_type in ("date", "url", "phone_number", "file_url"):
        return _text(answer.get(answer_type))
    return None


def _field_titles(form_response: Dict[str, Any]) -> Dict[str, str]:
    titles: Dict[str, str] = {}
    fields = _get(form_response, "definition", "fields")
    if not isinstance(fields, list):
        return titles
    for field in fields:
        if not isinstance(field, dict):
            continue
        title = _text(field.get("title"))
        if not title:
            continue
        for key in ("id", "ref"):
            field_key = _text(field.get(key))
            if field_key:
                titles[field_key] = title
    return titles


def iter_answers(document: Any) -> List[IntakeAnswer]:
    """
    All usable answers in a submission, paired with question titles.

    Handles the provider's ``form_response.answers`` shape and a flat
    ``{question: answer}`` map.
    """
    root = unwrap_document(document)
    answers: List[IntakeAnswer] = []

    form_response = root.get("form_response")
    if isinstance(form_response, dict):
        titles = _field_titles(form_response)
        raw_answers = form_response.get("answers")
        for raw in raw_answers if isinstance(raw_answers, list) else []:
            if not isinstance(raw, dict):
                continue
            value = _typeform_value(raw)
            if not value:
                continue
            field = raw.get("field") if isinstance(raw.get("field"), dict) else {}
            question = (
                _text(field.get("title"))
                or titles.get(_text(field.get("id")) or "")
                or titles.get(_text(field.get("ref")) or "")
                or ""
            )
            answers.append(IntakeAnswer(
                question=question,
                value=value,
                answer_type=_text(raw.get("type")) or "text",
            ))
        return answers

    for question, raw_value in root.items():
        if not isinstance(question, str) or question in ("hidden", "form_response"):
            continue
        if isinstance(raw_value, list):
            value: Any = _labels(raw_value) or None
            answer_type = "choices"
        else:
            value = _text(raw_value)
            answer_type = "text"
        if value:
            answers.append(IntakeAnswer(question=question.strip(), value=value, answer_type=answer_type))

    return answers


# ===========================================
# Title Matching Rules
# ===========================================

def title_contains(*needles: str) -> Callable[[str], bool]:
    lowered = tuple(n.lower() for n in needles)

    def predicate(title: str) -> bool:
        title = title.lower()
        return any(needle in title for needle in lowered)

    return predicate


def title_is(*titles: str) -> Callable[[str], bool]:
    expected = {t.lower() for t in titles}
    return lambda title: title.strip().lower().rstrip("?:") in expected


def as_label(answer: IntakeAnswer) -> Optional[str]:
    if isinstance(answer.value, list):
        return ", ".join(answer.value) or None
    return _text(answer.value)


def as_labels(answer: IntakeAnswer) -> Optional[List[str]]:
    return _labels(answer.value) or None


@dataclass(frozen=True)
class IntakeRule:
    """Maps answers whose title satisfies ``predicate`` onto ``field``."""
    field: str
    predicate: Callable[[str], bool]
    extractor: Callable[[IntakeAnswer], Any]


# Evaluated in order; the first matching rule claims the answer.
INTAKE_RULES: List[IntakeRule] = [
    IntakeRule("email", title_contains("email"), as_label),
    IntakeRule("first_name", title_contains("first name"), as_label),
    IntakeRule("last_name", title_contains("last name", "surname"), as_label),
    IntakeRule("full_name", title_contains("full name", "your name"), as_label),
    IntakeRule("full_name", title_is("name"), as_label),
    IntakeRule(
        "project_name",
        title_contains("project name", "company name", "name of your project",
                       "name of your company", "business name", "startup name"),
        as_label,
    ),
    IntakeRule(
        "prioritized_deliverables",
        title_contains("prioritize", "priorit", "most important deliverable"),
        as_labels,
    ),
    IntakeRule("main_use_cases", title_contains("use case"), as_labels),
    IntakeRule("existing_designs", title_contains("existing design", "designs already", "have designs"), as_label),
    IntakeRule("team_size", title_contains("team size", "big is your team", "how many people"), as_label),
    IntakeRule("roles", title_contains("role", "your position", "best describes you"), as_labels),
    IntakeRule("current_stage", title_contains("stage", "where are you"), as_label),
    IntakeRule("help_needed", title_contains("help", "what do you need"), as_label),
    IntakeRule("timeline", title_contains("timeline", "how soon", "when do you"), as_label),
    IntakeRule(
        "project_description",
        title_contains("describe", "description", "tell us about", "about your project"),
        as_label,
    ),
]


def match_rule(question: str, rules: List[IntakeRule] = INTAKE_RULES) -> Optional[IntakeRule]:
    """First rule whose predicate accepts ``question``."""
    for rule in rules:
        if rule.predicate(question):
            return rule
    return None


# ===========================================
# Email Fallbacks
# ===========================================

def _fallback_email(root: Dict[str, Any]) -> Optional[str]:
    hidden = _get(root, "form_response", "hidden")
    for container in (hidden, root):
        for key in ("email", "contact_email", "user_email"):
            email = clean_email(_get(container, key))
            if email:
                return email
    return None


# ===========================================
# Entry Point
# ===========================================

def normalize_submission(document: Any, rules: List[IntakeRule] = INTAKE_RULES) -> ClientProfile:
    """
    Extract a ClientProfile from an arbitrary submission document.

    Args:
        document: JSON-like submission (provider shape unknown)
        rules: Ordered title-matching rules

    Returns:
        ClientProfile; unmatched fields stay None. Never raises.
    """
    try:
        answers = iter_answers(document)
        values: Dict[str, Any] = {}
        typed_email: Optional[str] = None
        shaped_email: Optional[str] = None

        for answer in answers:
            email = clean_email(answer.value) if isinstance(answer.value, str) else None
            if email:
                if answer.answer_type == "email" and typed_email is None:
                    typed_email = email
                elif shaped_email is None:
                    shaped_email = email
                continue

            rule = match_rule(answer.question, rules)
            if rule is None or rule.field == "email" or rule.field in values:
                continue
            extracted = rule.extractor(answer)
            if extracted:
                values[rule.field] = extracted

        values["email"] = typed_email or shaped_email or _fallback_email(unwrap_document(document))

        if not values.get("full_name"):
            parts = [values.get("first_name"), values.get("last_name")]
            joined = " ".join(p for p in parts if p)
            if joined:
                values["full_name"] = joined

        profile = ClientProfile(**{k: v for k, v in values.items() if v})
        logger.info(
            f"Normalized intake: {len(answers)} answer(s), "
            f"{len([v for v in profile.model_dump().values() if v])} field(s) matched"
        )
        return profile

    except Exception as e:
        logger.error(f"Intake normalization failed, continuing without profile: {e}")
        return ClientProfile()
