"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from caseintake.api.webhooks import router as webhooks_router
from caseintake.api.leads import router as leads_router
from caseintake.api.policy_tests import router as policy_tests_router
from caseintake.api.ingestion_outcomes import router as ingestion_outcomes_router
from caseintake.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(webhooks_router)
api_router.include_router(leads_router)
api_router.include_router(policy_tests_router)
api_router.include_router(ingestion_outcomes_router)
api_router.include_router(health_router)
