"""Enumeration types for the sprint proposal engine."""

from enum import Enum


class SprintStatus(str, Enum):
    """Lifecycle of a sprint draft. Later states are owned by the studio UI."""
    DRAFT = "draft"
    STUDIO_REVIEW = "studio_review"


class UpfrontPaymentTiming(str, Enum):
    """When the kickoff payment falls due."""
    ON_SIGNING = "on_signing"
    ON_KICKOFF = "on_kickoff"
    NET_15 = "net_15"


class MilestoneMissOutcome(str, Enum):
    """What happens to the deferred base if no milestone is achieved."""
    FORGIVEN = "forgiven"
    REDUCED_50 = "reduced-50"
    REDUCED_20 = "reduced-20"
    STILL_OWED = "still-owed"
    RENEGOTIATE = "renegotiate"


class AIResponseStatus(str, Enum):
    """Audit state of a stored model response."""
    RECEIVED = "received"
    PARSE_ERROR = "parse_error"
    ACCEPTED = "accepted"
