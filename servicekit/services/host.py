"""Registry of named services served by one process."""

from __future__ import annotations

import logging
import threading

from servicekit.core.errors import DuplicateServiceError, UnknownServiceError
from servicekit.services.service import Service


class ServicesHost:
    """Maps service names to ``Service`` instances.

    Transport adapters (HTTP app, local client) resolve the target service
    here and then call its ``handle`` entry point.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._services: dict[str, Service] = {}

    def register_service(self, name: str, service: Service) -> None:
        """Register ``service`` under ``name``.

        Raises:
            DuplicateServiceError: If the name is already taken.
        """
        if not name:
            raise ValueError("service name must be a non-empty string")
        with self._lock:
            if name in self._services:
                self._logger.error("host.duplicate_service", extra={"service_name": name})
                raise DuplicateServiceError(name)
            self._services[name] = service
        self._logger.info(
            "host.service_registered",
            extra={"service_name": name, "endpoints": service.endpoints()},
        )

    def get_service(self, name: str) -> Service:
        """Return the service registered under ``name``.

        Raises:
            UnknownServiceError: If no such service exists.
        """
        with self._lock:
            service = self._services.get(name)
        if service is None:
            self._logger.error("host.unknown_service", extra={"service_name": name})
            raise UnknownServiceError(name)
        return service

    def list_services(self) -> list[str]:
        with self._lock:
            return list(self._services)
