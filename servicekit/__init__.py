"""In-process RPC dispatch: endpoint catalog, request pipeline and rate limiting."""

__version__ = "0.1.0"
