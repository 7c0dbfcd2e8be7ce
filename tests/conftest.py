import asyncio
import itertools
import sys
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

import discord
import pytest
import pytest_asyncio

# Bootstrap to ensure tests can import app modules without modifying app import paths.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.api.dispatcher import Dispatcher  # noqa: E402
from app.config.db import build_engine, build_sessionmaker, init_models  # noqa: E402
from app.schemas.interaction import Component  # noqa: E402
from app.services.audit import AuditLog  # noqa: E402
from app.services.resources import GuildResources  # noqa: E402
from app.services.scheduler import ChannelDeletionScheduler  # noqa: E402
from app.services.tickets import TicketManager  # noqa: E402
from app.services.vouches import VouchManager  # noqa: E402
from app.settings import Settings  # noqa: E402
from app.utils.errors import GatewayError  # noqa: E402

GUILD = 1
OTHER_GUILD = 2


@dataclass
class SentMessage:
    channel_id: int
    content: Optional[str]
    embed: Optional[discord.Embed]
    components: List[Component] = field(default_factory=list)


class FakeGateway:
    """In-memory stand-in for the Discord gateway."""

    def __init__(self):
        self._ids = itertools.count(1000)
        self.channels: Dict[int, dict] = {}
        self.roles: Dict[int, dict] = {}
        self.member_roles: Dict[Tuple[int, int], Set[int]] = defaultdict(set)
        self.users: Dict[int, str] = {}
        self.sent: List[SentMessage] = []
        self.deleted: List[int] = []
        self.create_role_calls = 0
        self.create_category_calls = 0
        self.fail_channel_creation = False
        self.fail_channel_deletion = False
        self.on_send: Optional[Callable[[SentMessage], object]] = None

    # helpers for arranging tests

    def add_text_channel(self, community_id: int, name: str) -> int:
        channel_id = next(self._ids)
        self.channels[channel_id] = {
            "name": name, "community_id": community_id, "kind": "text", "parent": None, "owner": None,
        }
        return channel_id

    def add_role(self, community_id: int, name: str) -> int:
        role_id = next(self._ids)
        self.roles[role_id] = {"name": name, "community_id": community_id}
        return role_id

    def grant_role(self, community_id: int, user_id: int, role_id: int) -> None:
        self.member_roles[(community_id, user_id)].add(role_id)

    def ticket_channels(self) -> List[int]:
        return [cid for cid, c in self.channels.items() if c["owner"] is not None]

    def messages_to(self, channel_id: int) -> List[SentMessage]:
        return [m for m in self.sent if m.channel_id == channel_id]

    # Gateway interface

    async def channel_exists(self, community_id: int, channel_id: int) -> bool:
        channel = self.channels.get(channel_id)
        return channel is not None and channel["community_id"] == community_id

    async def find_category(self, community_id: int, name: str) -> Optional[int]:
        for channel_id, channel in self.channels.items():
            if channel["kind"] == "category" and channel["name"] == name and channel["community_id"] == community_id:
                return channel_id
        return None

    async def create_category(self, community_id: int, name: str) -> int:
        await asyncio.sleep(0)
        self.create_category_calls += 1
        channel_id = next(self._ids)
        self.channels[channel_id] = {
            "name": name, "community_id": community_id, "kind": "category", "parent": None, "owner": None,
        }
        return channel_id

    async def create_ticket_channel(
        self, community_id: int, name: str, category_id: Optional[int], owner_id: int
    ) -> int:
        if self.fail_channel_creation:
            raise GatewayError("Could not create your ticket channel. Please try again later.")
        channel_id = next(self._ids)
        self.channels[channel_id] = {
            "name": name, "community_id": community_id, "kind": "text", "parent": category_id, "owner": owner_id,
        }
        return channel_id

    async def delete_channel(self, community_id: int, channel_id: int) -> None:
        if self.fail_channel_deletion:
            raise GatewayError("Could not delete the ticket channel.")
        self.channels.pop(channel_id, None)
        self.deleted.append(channel_id)

    async def find_text_channel(self, community_id: int, name: str) -> Optional[int]:
        for channel_id, channel in self.channels.items():
            if channel["kind"] == "text" and channel["name"] == name and channel["community_id"] == community_id:
                return channel_id
        return None

    async def send_message(
        self,
        channel_id: int,
        content: Optional[str] = None,
        embed: Optional[discord.Embed] = None,
        components: Sequence[Component] = (),
    ) -> None:
        message = SentMessage(channel_id, content, embed, list(components))
        if self.on_send is not None:
            result = self.on_send(message)
            if asyncio.iscoroutine(result):
                await result
        self.sent.append(message)

    async def find_role(self, community_id: int, name: str) -> Optional[int]:
        for role_id, role in self.roles.items():
            if role["name"] == name and role["community_id"] == community_id:
                return role_id
        return None

    async def role_exists(self, community_id: int, role_id: int) -> bool:
        role = self.roles.get(role_id)
        return role is not None and role["community_id"] == community_id

    async def create_role(self, community_id: int, name: str) -> int:
        # yield so concurrent callers can interleave
        await asyncio.sleep(0)
        self.create_role_calls += 1
        return self.add_role(community_id, name)

    async def member_has_role(self, community_id: int, user_id: int, role_id: int) -> bool:
        return role_id in self.member_roles[(community_id, user_id)]

    async def fetch_display_name(self, user_id: int) -> Optional[str]:
        return self.users.get(user_id)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        DISCORD_TOKEN="test-token",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'bot.db'}",
    )


@pytest_asyncio.fixture(scope="function")
async def engine(settings: Settings):
    """Provides a fresh database with all tables created."""
    db_engine = build_engine(settings)
    await init_models(db_engine)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def resources(gateway, session_factory, settings) -> GuildResources:
    return GuildResources(gateway, session_factory, settings)


@pytest.fixture
def audit(gateway, resources) -> AuditLog:
    return AuditLog(gateway, resources)


@pytest_asyncio.fixture(scope="function")
async def scheduler(gateway, session_factory, settings):
    deletion_scheduler = ChannelDeletionScheduler(
        gateway, session_factory, settings.TICKET_CLOSE_DELAY_SECONDS
    )
    yield deletion_scheduler
    await deletion_scheduler.shutdown()


@pytest.fixture
def tickets(gateway, session_factory, resources, audit, scheduler) -> TicketManager:
    return TicketManager(gateway, session_factory, resources, audit, scheduler)


@pytest.fixture
def vouches(gateway, session_factory, resources, audit, settings) -> VouchManager:
    return VouchManager(gateway, session_factory, resources, audit, settings)


@pytest.fixture
def dispatcher(tickets, vouches) -> Dispatcher:
    return Dispatcher(tickets, vouches)
