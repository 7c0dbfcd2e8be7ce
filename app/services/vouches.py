"""Vouch lifecycle: validating and recording vouches, reputation summaries."""

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

import discord
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import Vouch
from app.schemas.interaction import Reply, ShowVouchForm
from app.schemas.vouch import VouchResponse, VouchSummary
from app.services.audit import AuditLog
from app.services.gateway import Gateway
from app.services.resources import GuildResources
from app.services.store import VouchStore
from app.settings import Settings
from app.utils.errors import GatewayError, ValidationError
from app.utils.formatting import MAX_STARS, STAR, star_bar, truncate, user_mention
from app.utils.logging_config import logger

VOUCH_COLOR = 0xF1C40F
ANNOUNCEMENT_COLOR = 0x00FF00
UNKNOWN_USER = "Unknown user"

_STARS_PATTERN = re.compile(r"[0-9]+")


def check_trust_marker(message: str, marker: str) -> None:
    if marker.lower() not in message.lower():
        raise ValidationError(f'Your vouch must include "{marker}" to be valid.')


def parse_stars(raw: str) -> int:
    """
    Parses a star rating. Only whole numbers from 1 to 5 are accepted;
    surrounding whitespace is ignored.
    """
    value = (raw or "").strip()
    if not _STARS_PATTERN.fullmatch(value) or not 1 <= int(value) <= MAX_STARS:
        raise ValidationError("Please enter a valid star rating between 1 and 5.")
    return int(value)


def compute_summary(seller_id: int, vouches: Sequence[Vouch], recent_limit: int = 3) -> VouchSummary:
    """
    Aggregates a seller's vouches, given oldest first. The average is rounded
    half-up to one decimal; `recent` holds the newest vouches, newest first.
    """
    if not vouches:
        return VouchSummary(seller_id=seller_id, count=0, average=0.0, recent=[])

    total = sum(vouch.stars for vouch in vouches)
    average = (Decimal(total) / Decimal(len(vouches))).quantize(
        Decimal("0.1"), rounding=ROUND_HALF_UP
    )
    recent = list(reversed(vouches[-recent_limit:])) if recent_limit > 0 else []
    return VouchSummary(
        seller_id=seller_id,
        count=len(vouches),
        average=float(average),
        recent=[VouchResponse.model_validate(vouch) for vouch in recent],
    )


class VouchManager:
    def __init__(
        self,
        gateway: Gateway,
        session_factory: async_sessionmaker[AsyncSession],
        resources: GuildResources,
        audit: AuditLog,
        settings: Settings,
    ):
        self.gateway = gateway
        self.session_factory = session_factory
        self.resources = resources
        self.audit = audit
        self.settings = settings

    @property
    def trust_marker(self) -> str:
        return self.settings.REQUIRED_TRUST_MARKER

    async def initiate_vouch(self, voucher_id: int, seller_id: int) -> ShowVouchForm:
        if voucher_id == seller_id:
            raise ValidationError("You can't vouch for yourself!")
        return ShowVouchForm(seller_id=seller_id, trust_marker=self.trust_marker)

    async def is_validated_seller(self, community_id: int, seller_id: int) -> bool:
        role_id = await self.resources.trust_role(community_id)
        return await self.gateway.member_has_role(community_id, seller_id, role_id)

    async def submit_vouch(
        self,
        voucher_id: int,
        voucher_name: str,
        seller_id: int,
        community_id: int,
        channel_id: int,
        stars_raw: str,
        product: str,
        message: str,
    ) -> Reply:
        """
        Validates and records a vouch, then announces it in `channel_id`.

        The vouch is committed before the announcement goes out. A seller
        without the trust role only produces a warning for the voucher.
        """
        check_trust_marker(message, self.trust_marker)
        stars = parse_stars(stars_raw)
        if voucher_id == seller_id:
            raise ValidationError("You can't vouch for yourself!")
        product = (product or "").strip()
        if not product:
            raise ValidationError("Please name the product you bought.")

        try:
            validated = await self.is_validated_seller(community_id, seller_id)
        except GatewayError as e:
            logger.warning(f"Could not check trust role for {seller_id}: {e}")
            validated = False

        async with self.session_factory() as session:
            vouch = await VouchStore(session).insert(
                Vouch(
                    seller_id=seller_id,
                    voucher_id=voucher_id,
                    community_id=community_id,
                    stars=stars,
                    product=product,
                    message=message.strip(),
                )
            )
            await session.commit()
        logger.info(f"Recorded vouch {vouch.id}: {voucher_id} -> {seller_id} ({stars} stars)")

        embed = discord.Embed(
            title="New Vouch Received!",
            description=f"{user_mention(seller_id)} has been vouched by {user_mention(voucher_id)}",
            color=ANNOUNCEMENT_COLOR,
            timestamp=vouch.created_at,
        )
        embed.add_field(name="Stars", value=star_bar(stars), inline=True)
        embed.add_field(name="Product", value=vouch.product, inline=True)
        embed.add_field(name="Message", value=truncate(vouch.message), inline=False)
        await self.gateway.send_message(channel_id, embed=embed)

        await self.audit.record(
            community_id, f"New vouch for {user_mention(seller_id)} by {voucher_name}"
        )

        content = f"Thank you for vouching for {user_mention(seller_id)}!"
        if not validated:
            content += (
                f"\nNote: {user_mention(seller_id)} does not have the "
                f'"{self.settings.TRUST_ROLE_NAME}" role and is not a validated seller.'
            )
        return Reply(content=content)

    async def display_name(self, user_id: int) -> str:
        try:
            name = await self.gateway.fetch_display_name(user_id)
        except GatewayError as e:
            logger.warning(f"Could not resolve user {user_id}: {e}")
            name = None
        return name or UNKNOWN_USER

    async def summarize(self, seller_id: int, community_id: int) -> VouchSummary:
        async with self.session_factory() as session:
            vouches = await VouchStore(session).find_for_seller(seller_id, community_id)
        return compute_summary(seller_id, vouches, self.settings.RECENT_VOUCH_LIMIT)

    async def get_vouch_summary(self, seller_id: int, community_id: int) -> Reply:
        """Handles `vouchinfo`: the seller's totals and most recent vouches."""
        summary = await self.summarize(seller_id, community_id)
        if summary.count == 0:
            return Reply(content=f"{user_mention(seller_id)} has no vouches yet.")

        seller_name = await self.display_name(seller_id)
        embed = discord.Embed(
            title=f"{seller_name}'s Vouches",
            description=f"Total vouches: {summary.count}\nAverage rating: {summary.average:.1f}{STAR}",
            color=VOUCH_COLOR,
        )
        for vouch in summary.recent:
            voucher_name = await self.display_name(vouch.voucher_id)
            embed.add_field(
                name=f"{vouch.stars}{STAR} from {voucher_name}",
                value=truncate(f"{vouch.product}\n{vouch.message}"),
                inline=False,
            )

        validated: Optional[bool] = None
        try:
            validated = await self.is_validated_seller(community_id, seller_id)
        except GatewayError as e:
            logger.warning(f"Could not check trust role for {seller_id}: {e}")
        if validated is False:
            embed.set_footer(text=f'Not a validated seller: missing the "{self.settings.TRUST_ROLE_NAME}" role')

        return Reply(embed=embed)
