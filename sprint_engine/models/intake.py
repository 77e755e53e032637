"""Intake models - Canonical client profile built from a form submission."""

from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, EmailStr, Field


AnswerValue = Union[str, List[str]]


class IntakeAnswer(BaseModel):
    """One answer pulled from a submission, paired with its question title."""
    question: str = Field("", description="Human-authored question title")
    value: AnswerValue = Field(..., description="Label, label list, or trimmed text")
    answer_type: str = Field("text", description="Provider answer type")


class ClientProfile(BaseModel):
    """
    Normalized prospective-client data.

    Every field is optional. Absence is valid and simply leaves the
    field out of the personalized prompt block.
    """
    project_name: Optional[str] = Field(None, description="Project or company name")
    first_name: Optional[str] = Field(None, description="Contact first name")
    last_name: Optional[str] = Field(None, description="Contact last name")
    full_name: Optional[str] = Field(None, description="Contact full name")
    email: Optional[EmailStr] = Field(None, description="Contact email")
    project_description: Optional[str] = Field(None, description="Free-text project description")
    current_stage: Optional[str] = Field(None, description="Current product stage")
    roles: Optional[List[str]] = Field(None, description="Contact's role(s)")
    team_size: Optional[str] = Field(None, description="Team size bucket")
    help_needed: Optional[str] = Field(None, description="Category of help needed")
    existing_designs: Optional[str] = Field(None, description="Existing designs status")
    prioritized_deliverables: Optional[List[str]] = Field(
        None,
        description="Deliverables the client ranked as most important"
    )
    main_use_cases: Optional[List[str]] = Field(None, description="Main product use cases")
    timeline: Optional[str] = Field(None, description="Timeline bucket")

    def contact_name(self) -> Optional[str]:
        """Best available contact name."""
        if self.full_name:
            return self.full_name
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else None

    def greeting_name(self) -> Optional[str]:
        return self.first_name or self.contact_name()

    def is_empty(self) -> bool:
        return not any(value for value in self.model_dump().values())

    def context_lines(self) -> List[Tuple[str, str]]:
        """Populated fields as (label, text) pairs, in prompt order."""
        labels = [
            ("Project name", self.project_name),
            ("Contact", self.contact_name()),
            ("Project description", self.project_description),
            ("Current stage", self.current_stage),
            ("Role(s)", self.roles),
            ("Team size", self.team_size),
            ("Help needed", self.help_needed),
            ("Existing designs", self.existing_designs),
            ("Prioritized deliverables", self.prioritized_deliverables),
            ("Main use cases", self.main_use_cases),
            ("Timeline", self.timeline),
        ]
        lines = []
        for label, value in labels:
            if not value:
                continue
            text = ", ".join(value) if isinstance(value, list) else value
            lines.append((label, text))
        return lines
