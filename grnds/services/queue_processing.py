import logging
import random
import string
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from grnds.database.models import Game, Player
from grnds.database.repositories import PlayerRepository, QueueRepository, MatchRepository
from grnds.services.errors import ValidationError, QueueSizeError, NotFoundError, PersistenceError
from grnds.services.matchmaker import MatchMaker, BalancingMode

logger = logging.getLogger(__name__)

MATCH_SIZE = 10

MAPS = [
    'Bind', 'Haven', 'Split', 'Ascent', 'Icebox', 'Breeze', 'Fracture', 'Pearl', 'Lotus', 'Sunset', 'Abyss',
]

_ID_ALPHABET = string.digits + string.ascii_lowercase


def parse_game(value: Optional[str]) -> Game:
    if value is None:
        return Game.VALORANT
    try:
        return Game(str(value).lower())
    except ValueError:
        raise ValidationError(f"Unknown game: {value}") from None


def game_mmr(player: Player, game: Game) -> int:
    if game is Game.MARVEL_RIVALS:
        return player.marvel_rivals_mmr or 0
    return player.valorant_mmr or player.current_mmr or 0


@dataclass
class MatchProposal:
    match_id: str
    map: str
    host_user_id: str
    team_a: List[str]
    team_b: List[str]
    game: Game = Game.VALORANT
    mode: BalancingMode = BalancingMode.AUTO
    players: List[dict] = field(default_factory=list, repr=False)

    def to_json(self) -> dict:
        return {
            "success": True,
            "match": {
                "matchId": self.match_id,
                "map": self.map,
                "hostUserId": self.host_user_id,
                "teamA": list(self.team_a),
                "teamB": list(self.team_b),
            },
        }


class QueueProcessingService:
    """
    Turns a full queue into a match: exactly 10 players -> balanced teams,
    random map, random host from team A -> match row -> queue cleared.
    """

    def __init__(self, players: PlayerRepository, queue: QueueRepository, matches: MatchRepository,
                 rng: Optional[random.Random] = None, clock: Callable[[], float] = time.time):
        self.players = players
        self.queue = queue
        self.matches = matches
        self.rng = rng or random.Random()
        self.clock = clock

    def generate_match_id(self) -> str:
        suffix = "".join(self.rng.choice(_ID_ALPHABET) for _ in range(9))
        return f"match-{int(self.clock() * 1000)}-{suffix}"

    async def process(self, balancing_mode=BalancingMode.AUTO.value, game=Game.VALORANT.value) -> MatchProposal:
        mode = BalancingMode.parse(balancing_mode)
        game = parse_game(game)
        logger.info("Processing queue game=%s mode=%s", game.value, mode.value)

        # 1. Queue + players, oldest first
        try:
            rows = await self.queue.get_queue(game.value)
        except SQLAlchemyError as e:
            logger.error("Error fetching queue", exc_info=e)
            raise PersistenceError("Failed to fetch queue") from e

        if len(rows) != MATCH_SIZE:
            raise QueueSizeError(f"Queue has {len(rows)} players, need {MATCH_SIZE}")

        participants = [
            {'id': player.discord_user_id, 'player_id': player.id, 'mmr': game_mmr(player, game)}
            for _, player in rows
        ]

        # 2. Teams, map, host
        team_a, team_b = MatchMaker.build_teams(participants, mode, self.rng)
        selected_map = self.rng.choice(MAPS)
        host = self.rng.choice(team_a)

        proposal = MatchProposal(
            match_id=self.generate_match_id(),
            map=selected_map,
            host_user_id=host['id'],
            team_a=[p['id'] for p in team_a],
            team_b=[p['id'] for p in team_b],
            game=game,
            mode=mode,
            players=participants,
        )

        # 3. Persist the match
        match_type = "marvel_rivals" if game is Game.MARVEL_RIVALS else "custom"
        try:
            await self.matches.create_match(
                match_id=proposal.match_id,
                map_name=proposal.map,
                host_user_id=proposal.host_user_id,
                team_a=proposal.team_a,
                team_b=proposal.team_b,
                match_type=match_type,
            )
        except SQLAlchemyError as e:
            logger.error("Error creating match", exc_info=e)
            raise PersistenceError("Failed to create match") from e

        # 4. Clear the queue. The match stays even if this fails.
        try:
            await self.queue.clear([p['player_id'] for p in participants], game.value)
        except SQLAlchemyError as e:
            logger.warning("Error clearing queue after match %s: %s", proposal.match_id, e)

        logger.info(
            "Queue processed match=%s map=%s avg_a=%s avg_b=%s",
            proposal.match_id, proposal.map, MatchMaker.team_average(team_a), MatchMaker.team_average(team_b),
        )
        return proposal


@dataclass
class QueueStatus:
    game: Game
    players: List[Player]

    @property
    def count(self) -> int:
        return len(self.players)

    @property
    def is_full(self) -> bool:
        return self.count >= MATCH_SIZE


class QueueService:
    """Joining and leaving the queue of a game."""

    def __init__(self, players: PlayerRepository, queue: QueueRepository):
        self.players = players
        self.queue = queue

    async def _verified_player(self, discord_user_id: str) -> Player:
        player = await self.players.get_player_by_discord_id(discord_user_id)
        if not player or not player.verified_at:
            raise NotFoundError("You need to verify your account first (.verify)")
        return player

    async def join(self, discord_user_id: str, game=Game.VALORANT.value) -> QueueStatus:
        game = parse_game(game)
        try:
            player = await self._verified_player(discord_user_id)

            if await self.queue.is_queued(player.id, game.value):
                raise ValidationError("Already in the queue")

            current = await self.queue.get_queue(game.value)
            if len(current) >= MATCH_SIZE:
                raise QueueSizeError("Queue is full")

            await self.queue.add(player.id, game.value)
        except SQLAlchemyError as e:
            logger.error("Error adding %s to the %s queue", discord_user_id, game.value, exc_info=e)
            raise PersistenceError("Failed to join the queue") from e

        logger.info("Player %s joined the %s queue", discord_user_id, game.value)
        return await self.status(game.value)

    async def leave(self, discord_user_id: str, game=Game.VALORANT.value) -> QueueStatus:
        game = parse_game(game)
        try:
            player = await self._verified_player(discord_user_id)
            removed = await self.queue.remove(player.id, game.value)
        except SQLAlchemyError as e:
            logger.error("Error removing %s from the %s queue", discord_user_id, game.value, exc_info=e)
            raise PersistenceError("Failed to leave the queue") from e

        if not removed:
            raise ValidationError("Not in the queue")

        logger.info("Player %s left the %s queue", discord_user_id, game.value)
        return await self.status(game.value)

    async def status(self, game=Game.VALORANT.value) -> QueueStatus:
        game = parse_game(game)
        try:
            rows = await self.queue.get_queue(game.value)
        except SQLAlchemyError as e:
            logger.error("Error fetching the %s queue", game.value, exc_info=e)
            raise PersistenceError("Failed to fetch queue") from e
        return QueueStatus(game=game, players=[player for _, player in rows])
