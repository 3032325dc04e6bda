"""
Viewer identity.

- Session tokens: signed ViewerContext (itsdangerous), issued by the sign-in
  glue after the Discord OAuth exchange and read back on every request.
- DiscordRoleResolver: SUPPORT when the member holds the support role in the
  shop's guild, MEMBER otherwise (including on any Discord API error).
"""
import logging

import httpx
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from app.access.models import Role, ViewerContext
from app.core.config import settings
from app.core.exceptions import Unauthenticated

logger = logging.getLogger("auth")


class SessionTokens:
    def __init__(self, secret: str | None = None, max_age: int | None = None) -> None:
        self.serializer = URLSafeTimedSerializer(
            secret or settings.session_secret,
            salt="viewer-session",
        )
        self.max_age = max_age or settings.session_max_age

    def issue(self, viewer: ViewerContext) -> str:
        return self.serializer.dumps(viewer.model_dump(mode="json"))

    def load(self, token: str | None) -> ViewerContext:
        if not token:
            raise Unauthenticated("Unauthorized")
        try:
            data = self.serializer.loads(token, max_age=self.max_age)
        except SignatureExpired as e:
            raise Unauthenticated("Session expired") from e
        except BadSignature as e:
            raise Unauthenticated("Unauthorized") from e
        if not isinstance(data, dict) or not data.get("external_id"):
            raise Unauthenticated("Unauthorized")
        try:
            return ViewerContext.model_validate(data)
        except ValueError as e:
            raise Unauthenticated("Unauthorized") from e


class DiscordRoleResolver:
    """Guild-membership role lookup with the bot token."""

    def __init__(
        self,
        bot_token: str | None = None,
        guild_id: str | None = None,
        support_role_id: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._bot_token = bot_token if bot_token is not None else settings.discord_bot_token
        self._guild_id = guild_id if guild_id is not None else settings.discord_guild_id
        self._support_role_id = support_role_id if support_role_id is not None else settings.discord_support_role_id
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=10.0)
        return self._client

    async def get_member_roles(self, user_id: str) -> list[str]:
        url = f"{settings.discord_api_url}/guilds/{self._guild_id}/members/{user_id}"
        try:
            resp = await self.client.get(url, headers={"Authorization": f"Bot {self._bot_token}"})
            resp.raise_for_status()
            return [str(role) for role in resp.json().get("roles") or []]
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("discord_roles_lookup_failed", extra={"discord_id": user_id, "error": str(e)})
            return []

    async def resolve_role(self, user_id: str) -> Role:
        if not (self._bot_token and self._guild_id and self._support_role_id):
            logger.warning("discord_role_lookup_not_configured", extra={"discord_id": user_id})
            return Role.MEMBER
        roles = await self.get_member_roles(user_id)
        return Role.SUPPORT if self._support_role_id in roles else Role.MEMBER

    async def build_viewer(self, user_id: str, username: str) -> ViewerContext:
        role = await self.resolve_role(user_id)
        logger.info("viewer_role_resolved", extra={"discord_id": user_id, "actor": username, "status": role.value})
        return ViewerContext(external_id=user_id, username=username, role=role)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
