from servicekit.client.client import ServiceClient
from servicekit.client.transport import HttpTransport, LocalTransport, Transport

__all__ = ["HttpTransport", "LocalTransport", "ServiceClient", "Transport"]
