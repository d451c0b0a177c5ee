"""
Shared fixtures: an in-memory database, a scripted stats client and a Hub
wired around both.
"""

import random
from datetime import timedelta

import pytest

from grnds.database.config import Database
from grnds.database.models import Player, QueueEntry, Game, utcnow
from grnds.hub import Hub
from grnds.services.ranks import RANKS

BASE_USER_ID = 100000000000000000  # 18 digits, a valid Discord snowflake


def user_id(n: int) -> str:
    return str(BASE_USER_ID + n)


class FakeValorantAPI:
    """Stands in for ValorantAPI: returns whatever the test scripted and records every call."""

    def __init__(self):
        self.current = None
        self.history = []
        self.calls = []

    async def get_mmr(self, region, name, tag):
        self.calls.append(("mmr", region, name, tag))
        return self.current

    async def get_mmr_history(self, name, tag):
        self.calls.append(("history", name, tag))
        return list(self.history)


@pytest.fixture
async def db():
    database = Database("sqlite+aiosqlite:///:memory:")
    await database.init_db()
    yield database
    await database.close()


@pytest.fixture
def fake_api():
    return FakeValorantAPI()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def hub(db, fake_api, rng):
    return Hub(db, fake_api, rng=rng)


async def add_player(db, n: int, mmr: int, verified: bool = True, marvel_mmr: int = 0, rank=None):
    async with db.session() as session:
        player = Player(
            discord_user_id=user_id(n),
            discord_username=f"player{n}",
            riot_name=f"Player{n}",
            riot_tag="BR1",
            riot_region="na",
            discord_rank=rank or RANKS.rank_for_mmr(mmr),
            discord_rank_value=RANKS.rank_ordinal(rank or RANKS.rank_for_mmr(mmr)),
            current_mmr=mmr,
            peak_mmr=mmr,
            valorant_mmr=mmr,
            marvel_rivals_mmr=marvel_mmr,
            verified_at=utcnow() if verified else None,
        )
        session.add(player)
        await session.flush()
        return player


async def fill_queue(db, players, game: Game = Game.VALORANT):
    """Queues the players in list order, one second apart."""
    start = utcnow() - timedelta(minutes=10)
    async with db.session() as session:
        for i, player in enumerate(players):
            session.add(QueueEntry(player_id=player.id, game=game.value, joined_at=start + timedelta(seconds=i)))


async def full_queue(db, game: Game = Game.VALORANT, mmr_step: int = 100, marvel: bool = False):
    """Ten verified players (MMR 100..1000) queued for the game."""
    players = []
    for i in range(10):
        mmr = (i + 1) * mmr_step
        players.append(await add_player(db, i, mmr, marvel_mmr=mmr if marvel else 0))
    await fill_queue(db, players, game)
    return players
