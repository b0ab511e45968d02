"""Pydantic schemas for the HTTP invoke route."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class InvokeRequest(BaseModel):
    """Body of ``POST /invoke``.

    ``request`` is the envelope handed to the service facade untouched;
    ``context`` may carry a caller-chosen ``requestId`` and extra metadata.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    service_name: str = Field(..., min_length=1, description="Name of the target service.")
    request: Any = Field(
        ...,
        description="Envelope {endpointName, responseFormat, requestData} for the service.",
    )
    context: dict[str, Any] | None = Field(
        None,
        description="Optional request context; requestId and http are filled in when absent.",
    )


class HealthResponse(BaseModel):
    status: str = Field("ok", description="Always 'ok' while the process serves traffic.")
    services: list[str] = Field(default_factory=list, description="Registered service names.")
