"""Tests for intake normalization."""

import pytest
from pydantic import ValidationError

from sprint_engine.models import ClientProfile
from sprint_engine.services.intake import (
    clean_email,
    iter_answers,
    match_rule,
    normalize_submission,
    unwrap_document,
)


class TestFormResponseShape:
    """Tests for the provider's form_response payloads."""

    def test_extracts_profile(self, sample_typeform_payload):
        profile = normalize_submission(sample_typeform_payload)

        assert profile.project_name == "Acme Robotics"
        assert profile.first_name == "Dana"
        assert profile.last_name == "Lee"
        assert profile.full_name == "Dana Lee"
        assert profile.email == "dana@acme.io"
        assert profile.project_description == "Fleet dashboard for warehouse robots"
        assert profile.current_stage == "Prototype"
        assert profile.prioritized_deliverables == ["Brand Identity", "Landing Page"]
        assert profile.timeline == "ASAP"

    def test_question_titles_come_from_definition(self, sample_typeform_payload):
        answers = iter_answers(sample_typeform_payload)
        assert answers[0].question == "What is your project or company name?"
        assert answers[6].value == ["Brand Identity", "Landing Page"]

    def test_body_envelope_is_unwrapped(self, sample_typeform_payload):
        profile = normalize_submission({"body": sample_typeform_payload})
        assert profile.project_name == "Acme Robotics"

    def test_choice_other_value(self):
        payload = {"form_response": {"answers": [
            {
                "type": "choice",
                "choice": {"other": "Just an idea"},
                "field": {"id": "x", "title": "What stage are you at?"},
            },
        ]}}
        assert normalize_submission(payload).current_stage == "Just an idea"

    def test_hidden_email_fallback(self):
        payload = {"form_response": {
            "hidden": {"email": "hidden@acme.io"},
            "answers": [{"type": "text", "text": "Acme", "field": {"title": "Company name"}}],
        }}
        profile = normalize_submission(payload)
        assert profile.email == "hidden@acme.io"
        assert profile.project_name == "Acme"

    def test_typed_email_beats_email_shaped_text(self):
        payload = {"form_response": {"answers": [
            {"type": "text", "text": "ops@acme.io", "field": {"title": "Anything else?"}},
            {"type": "email", "email": "dana@acme.io", "field": {"title": "Your email"}},
        ]}}
        assert normalize_submission(payload).email == "dana@acme.io"

    def test_malformed_typed_email_falls_back_to_hidden(self):
        payload = {"form_response": {
            "hidden": {"contact_email": "hidden@acme.io"},
            "answers": [{"type": "email", "email": "jane..doe@acme.com", "field": {"title": "Your email"}}],
        }}
        assert normalize_submission(payload).email == "hidden@acme.io"


class TestEmailValidation:
    """Addresses are checked with pydantic's EmailStr, not by shape."""

    @pytest.mark.parametrize("value", [
        "jane..doe@acme.com",
        "dana@acme",
        "@acme.io",
        "dana@",
        "not an email",
        None,
        42,
    ])
    def test_rejects_invalid(self, value):
        assert clean_email(value) is None

    def test_accepts_and_trims(self):
        assert clean_email("  dana@acme.io ") == "dana@acme.io"

    def test_email_shaped_but_invalid_answer_is_dropped(self):
        profile = normalize_submission({"What is your email?": "jane..doe@acme.com", "Company name": "Acme"})

        assert profile.email is None
        assert profile.project_name == "Acme"

    def test_profile_field_is_validated(self):
        with pytest.raises(ValidationError):
            ClientProfile(email="jane..doe@acme.com")


class TestFlatShape:
    """Tests for flat question-to-answer maps."""

    def test_flat_map(self):
        profile = normalize_submission({
            "Your name": "Sam Rivera",
            "Company name ": "Orbit Labs",
            "Email": "sam@orbit.dev",
            "What is your role?": ["Founder", "CEO"],
            "How big is your team?": 4,
        })

        assert profile.full_name == "Sam Rivera"
        assert profile.project_name == "Orbit Labs"
        assert profile.email == "sam@orbit.dev"
        assert profile.roles == ["Founder", "CEO"]
        assert profile.team_size == "4"

    def test_first_matching_answer_wins(self):
        profile = normalize_submission({
            "Project name": "First",
            "Name of your project": "Second",
        })
        assert profile.project_name == "First"


class TestMalformedInput:
    """Normalization never raises."""

    def test_non_dict_documents(self):
        for document in (None, "text", 42, [1, 2], {"form_response": "nope"}):
            assert normalize_submission(document).is_empty()

    def test_malformed_answers_are_skipped(self):
        payload = {"form_response": {"answers": [
            "not-a-dict",
            {"type": "choices", "choices": None, "field": {"title": "Use cases"}},
            {"type": "text", "text": "   ", "field": {"title": "Describe your project"}},
            {"type": "text", "text": "Valid", "field": {"title": "Describe your project"}},
        ]}}
        profile = normalize_submission(payload)
        assert profile.project_description == "Valid"
        assert profile.main_use_cases is None

    def test_unwrap_keeps_documents_with_extra_keys(self):
        document = {"body": {"a": 1}, "headers": {}}
        assert unwrap_document(document) is document


class TestRules:

    def test_match_rule_is_case_insensitive(self):
        assert match_rule("WHAT IS YOUR TIMELINE?").field == "timeline"

    def test_unmatched_question(self):
        assert match_rule("Favourite colour") is None

    def test_context_lines_skip_absent_fields(self, sample_typeform_payload):
        labels = [label for label, _ in normalize_submission(sample_typeform_payload).context_lines()]
        assert labels == [
            "Project name",
            "Contact",
            "Project description",
            "Current stage",
            "Prioritized deliverables",
            "Timeline",
        ]
