from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable

import requests
from sqlalchemy.orm import Session, sessionmaker

from project_factory.core.cache import TTLCache
from project_factory.services.boundary_registry_client import BoundaryRegistryClient
from project_factory.services.event_bus import EventBusPublisher
from project_factory.services.facility_client import FacilityClient
from project_factory.services.filestore_client import FileStoreClient
from project_factory.services.localization_service import LocalizationService
from project_factory.services.mdms_client import MdmsClient


class ServiceClients:
    """Builds downstream clients that share one HTTP session and the app cache."""

    def __init__(self, cache: TTLCache, *, session: requests.Session | None = None) -> None:
        self.cache = cache
        self._session = session or requests.Session()

    def registry(self, request_info: dict[str, Any]) -> BoundaryRegistryClient:
        return BoundaryRegistryClient(session=self._session, request_info=request_info)

    def filestore(self) -> FileStoreClient:
        return FileStoreClient(session=self._session)

    def mdms(self, request_info: dict[str, Any]) -> MdmsClient:
        return MdmsClient(session=self._session, request_info=request_info)

    def facility(self, request_info: dict[str, Any]) -> FacilityClient:
        return FacilityClient(session=self._session, request_info=request_info)

    def localization(self, request_info: dict[str, Any]) -> LocalizationService:
        return LocalizationService(self.cache, session=self._session, request_info=request_info)


@dataclass
class AppServices:
    """Process-wide collaborators, created by the app factory."""

    clients: ServiceClients
    event_bus: EventBusPublisher
    session_factory: sessionmaker[Session]
    sleep: Callable[[float], None] = time.sleep
