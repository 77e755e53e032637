"""Integrations module - External service connectors."""

from sprint_engine.integrations.openai_client import OpenAIService, openai_service
from sprint_engine.integrations.email import EmailService, email_service

__all__ = [
    "OpenAIService",
    "openai_service",
    "EmailService",
    "email_service",
]
