"""In-memory endpoint registry.

Each service builds its own ``ServiceCatalog`` at start-up; there is no
module-level registry, so tests can create isolated catalogs per case.
"""

from __future__ import annotations

import logging
import threading
from typing import Literal

from servicekit.core.errors import DuplicateEndpointError, UnknownEndpointError
from servicekit.services.endpoint import EndpointDefinition

DuplicatePolicy = Literal["error", "ignore"]


class ServiceCatalog:
    """Thread-safe mapping of endpoint name to ``EndpointDefinition``.

    Registration normally happens once before traffic starts, but the map is
    guarded by a lock so late registrations cannot race with lookups.

    Attributes:
        on_duplicate: "error" raises ``DuplicateEndpointError`` when a name is
            registered twice; "ignore" logs and keeps the first definition.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        *,
        on_duplicate: DuplicatePolicy = "error",
    ) -> None:
        if on_duplicate not in ("error", "ignore"):
            raise ValueError("on_duplicate must be 'error' or 'ignore'")
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._endpoints: dict[str, EndpointDefinition] = {}
        self.on_duplicate = on_duplicate

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"ServiceCatalog(endpoints={self.list()!r}, on_duplicate={self.on_duplicate!r})"

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._endpoints

    def __len__(self) -> int:
        with self._lock:
            return len(self._endpoints)

    def register(self, definition: EndpointDefinition) -> None:
        """Register an endpoint definition under its name.

        Raises:
            DuplicateEndpointError: If the name is taken and the policy is "error".
        """

        name = definition.name
        with self._lock:
            if name in self._endpoints:
                if self.on_duplicate == "ignore":
                    self._logger.info(
                        "catalog.duplicate_ignored",
                        extra={"endpoint_name": name},
                    )
                    return
                self._logger.error(
                    "catalog.duplicate_rejected",
                    extra={"endpoint_name": name},
                )
                raise DuplicateEndpointError(name)
            self._endpoints[name] = definition

        self._logger.info("catalog.registered", extra={"endpoint_name": name})

    def lookup(self, name: str) -> EndpointDefinition:
        """Return the definition registered under ``name``.

        Raises:
            UnknownEndpointError: If nothing is registered under that name.
        """

        with self._lock:
            definition = self._endpoints.get(name)

        if definition is None:
            self._logger.error("catalog.not_found", extra={"endpoint_name": name})
            raise UnknownEndpointError(name)

        self._logger.debug("catalog.found", extra={"endpoint_name": name})
        return definition

    def list(self) -> list[str]:
        """List registered endpoint names."""

        with self._lock:
            return list(self._endpoints)
