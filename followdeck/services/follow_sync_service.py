"""Keep ledger identity rows in step with the Twitch follow list."""

import logging
from datetime import datetime

from presence.models.channel import ChannelIdentity
from presence.models.credential import Credentials
from presence.repositories.channel import ChannelRepository

from .auth_state_service import AuthStateService
from .twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable followed_at value: {value!r}")
        return None


class FollowSyncService:
    """Create, refresh and retire ``followed_channels`` identity rows."""

    def __init__(
        self,
        ledger: ChannelRepository,
        auth_state: AuthStateService,
        twitch_api: TwitchAPIClient,
    ) -> None:
        self.ledger = ledger
        self.auth_state = auth_state
        self.twitch_api = twitch_api

    async def _fetch_identities(self, credentials: Credentials, token: str) -> list[ChannelIdentity]:
        follows = await self.twitch_api.get_followed_channels(credentials.user_id, token)
        followed_ids = [f["broadcaster_id"] for f in follows]
        users = await self.twitch_api.get_users_by_ids(followed_ids, token)
        users_by_id = {u["id"]: u for u in users}

        identities = []
        for follow in follows:
            user = users_by_id.get(follow["broadcaster_id"], {})
            identities.append(
                ChannelIdentity(
                    channel_id=follow["broadcaster_id"],
                    display_name=user.get("display_name") or follow.get("broadcaster_name") or "",
                    profile_image_url=user.get("profile_image_url") or "",
                    followed_at=_parse_timestamp(follow.get("followed_at")),
                )
            )
        return identities

    async def sync(self) -> int:
        """Mirror the follow list into the ledger. Returns the follow count."""
        identities = await self.auth_state.call_with_token(self._fetch_identities)

        await self.ledger.upsert_channels(identities)
        removed = await self.ledger.remove_unfollowed([i.channel_id for i in identities])

        logger.info(f"Follow sync: {len(identities)} followed, {len(removed)} removed")
        return len(identities)
