from __future__ import annotations

from fastapi import Request

from project_factory.services.clients import AppServices
from project_factory.services.generation_orchestrator import GenerationOrchestrator
from project_factory.services.resource_ingestion_service import ResourceIngestionService


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_generation_orchestrator(request: Request) -> GenerationOrchestrator:
    return GenerationOrchestrator(get_services(request))


def get_ingestion_service(request: Request) -> ResourceIngestionService:
    return ResourceIngestionService(get_services(request))
