import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from grnds.database.repositories import PlayerRepository, MatchRepository
from grnds.services.errors import PersistenceError
from grnds.services.ranks import DEFAULT_RANK

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 25
MAX_LIMIT = 50


def clamp_limit(value) -> int:
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    if limit == 0:
        return DEFAULT_LIMIT
    return min(max(1, limit), MAX_LIMIT)


@dataclass(frozen=True)
class LeaderboardRow:
    rank: int
    username: str
    rank_name: Optional[str]
    mmr: int
    wins: int
    losses: int

    @property
    def win_rate(self) -> float:
        total = self.wins + self.losses
        return round(self.wins / total * 100, 1) if total > 0 else 0

    def to_json(self) -> dict:
        row = {
            "rank": self.rank,
            "username": self.username,
            "mmr": self.mmr,
            "wins": self.wins,
            "losses": self.losses,
            "winRate": self.win_rate,
        }
        if self.rank_name:
            row["rankName"] = self.rank_name
        return row


class LeaderboardService:
    """Top players by MMR with their record in completed matches."""

    def __init__(self, players: PlayerRepository, matches: MatchRepository):
        self.players = players
        self.matches = matches

    async def top(self, limit=DEFAULT_LIMIT) -> List[LeaderboardRow]:
        limit = clamp_limit(limit)

        try:
            players = await self.players.get_top_by_mmr(limit)
            results = await self.matches.get_results_for_players([p.id for p in players])
        except SQLAlchemyError as e:
            logger.error("Error fetching leaderboard", exc_info=e)
            raise PersistenceError("Failed to fetch leaderboard") from e

        records = {}
        for player_id, team, winner in results:
            wins, losses = records.get(player_id, (0, 0))
            if team == winner:
                wins += 1
            else:
                losses += 1
            records[player_id] = (wins, losses)

        rows = []
        for position, player in enumerate(players, start=1):
            wins, losses = records.get(player.id, (0, 0))
            rank_name = player.discord_rank if player.discord_rank and player.discord_rank != DEFAULT_RANK else None
            rows.append(LeaderboardRow(
                rank=position,
                username=player.discord_username or "Unknown",
                rank_name=rank_name,
                mmr=player.current_mmr or 0,
                wins=wins,
                losses=losses,
            ))
        return rows
