"""Example service greeting and listing members.

Members are kept in memory for the lifetime of the service; persistence is
out of scope for the dispatch layer.
"""

from __future__ import annotations

import asyncio
import logging
import re

from servicekit.adapters.rate_limit.base import AbstractRateLimiter
from servicekit.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from servicekit.core.clock import Clock, system_clock
from servicekit.schemas.envelope import RequestContext
from servicekit.schemas.hello import (
    GetMembersRequest,
    GetMembersResponse,
    HelloMemberRequest,
    HelloMemberResponse,
    Member,
)
from servicekit.services.endpoint import define_endpoint
from servicekit.services.service import Service

EMAIL_DOMAIN = "domain.com"


def email_for(name: str) -> str:
    """Derive a member email: lower-cased, whitespace runs joined by dots.

    Examples:
        >>> email_for("Ada  Lovelace")
        'ada.lovelace@domain.com'
    """

    local_part = re.sub(r"\s+", ".", name.strip().lower())
    return f"{local_part}@{EMAIL_DOMAIN}"


class HelloService(Service):
    """Service exposing ``helloMember`` and ``getMembers``."""

    def __init__(
        self,
        *,
        rate_limiter: AbstractRateLimiter | None = None,
        logger: logging.Logger | None = None,
        clock: Clock = system_clock,
    ) -> None:
        super().__init__(
            rate_limiter=rate_limiter or InMemoryFixedWindowRateLimiter(per_minute=60, clock=clock),
            logger=logger,
            clock=clock,
        )
        self._members: list[Member] = []
        self._members_lock = asyncio.Lock()

        self.register(define_endpoint("helloMember", HelloMemberRequest, HelloMemberResponse, self.hello_member))
        self.register(define_endpoint("getMembers", GetMembersRequest, GetMembersResponse, self.get_members))

    async def hello_member(self, request: HelloMemberRequest, context: RequestContext) -> Member:
        member = Member(name=request.name, email=email_for(request.name))
        async with self._members_lock:
            self._members.append(member)
        self.logger.info(
            "hello.member_saved",
            extra={"request_id": context.request_id, "member_count": len(self._members)},
        )
        return member

    async def get_members(self, request: GetMembersRequest, context: RequestContext) -> list[Member]:
        async with self._members_lock:
            members = list(self._members)
        self.logger.info(
            "hello.members_listed",
            extra={"request_id": context.request_id, "member_count": len(members)},
        )
        return members
