"""
FastAPI dependencies: per-request services built from app.state components.
"""

from fastapi import Depends, Request

from core.config import Settings
from services.cashup.audit_ingestion import AuditIngestionService
from services.cashup.submission_state_machine import SubmissionStateMachine


def get_settings(request: Request) -> Settings:
    return request.app.state.settings_cache.get()


def get_state_machine(request: Request, settings: Settings = Depends(get_settings)) -> SubmissionStateMachine:
    state = request.app.state
    return SubmissionStateMachine(
        state.repository,
        state.notification_sink,
        settings,
        metrics=state.metrics,
        clock=state.clock,
    )


def get_ingestion(
    request: Request,
    settings: Settings = Depends(get_settings),
    machine: SubmissionStateMachine = Depends(get_state_machine),
) -> AuditIngestionService:
    state = request.app.state
    return AuditIngestionService(
        machine,
        state.repository,
        state.directory,
        state.storage,
        settings,
        metrics=state.metrics,
    )
