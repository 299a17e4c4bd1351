"""
Database models - import all models here so Alembic can discover them.
"""
from caseintake.models.organization import Organization
from caseintake.models.phone_number import PhoneNumber
from caseintake.models.practice_area import PracticeArea
from caseintake.models.ai_config import AiConfig
from caseintake.models.contact import Contact
from caseintake.models.lead import Lead
from caseintake.models.intake import Intake
from caseintake.models.interaction import Interaction
from caseintake.models.call import Call
from caseintake.models.webhook_event import WebhookEvent
from caseintake.models.ingestion_outcome import IngestionOutcome
from caseintake.models.audit_log import AuditLog
from caseintake.models.qualification import Qualification
from caseintake.models.policy_test import PolicyTestSuite, PolicyTestRun

__all__ = [
    "Organization",
    "PhoneNumber",
    "PracticeArea",
    "AiConfig",
    "Contact",
    "Lead",
    "Intake",
    "Interaction",
    "Call",
    "WebhookEvent",
    "IngestionOutcome",
    "AuditLog",
    "Qualification",
    "PolicyTestSuite",
    "PolicyTestRun",
]
