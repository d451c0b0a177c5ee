import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from grnds.database.repositories import PlayerRepository, MatchRepository
from grnds.database.models import MatchStatus
from grnds.services.errors import ValidationError, NotFoundError, PersistenceError
from grnds.services.matchmaker import MatchMaker
from grnds.services.ranks import RankTable, RANKS, DEFAULT_RANK

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingChange:
    player_id: str
    old_mmr: int
    new_mmr: int
    old_rank: str
    new_rank: str
    points_earned: int

    @property
    def rank_changed(self) -> bool:
        return self.old_rank != self.new_rank

    def to_json(self) -> dict:
        return {
            "playerId": self.player_id,
            "oldMMR": self.old_mmr,
            "newMMR": self.new_mmr,
            "oldRank": self.old_rank,
            "newRank": self.new_rank,
            "rankChanged": self.rank_changed,
            "pointsEarned": self.points_earned,
        }


class RankCalculationService:
    """Applies the MMR changes of a reported match to every player in it."""

    def __init__(self, players: PlayerRepository, matches: MatchRepository, ranks: RankTable = RANKS):
        self.players = players
        self.matches = matches
        self.ranks = ranks

    async def calculate(self, match_id: str) -> List[RatingChange]:
        if not match_id or not isinstance(match_id, str):
            raise ValidationError("Missing or invalid matchId")

        try:
            match = await self.matches.get_match(match_id)
            if not match:
                raise NotFoundError("Match not found")
            stats = await self.matches.get_player_stats(match.id)
            players = {p.id: p for p in await self.players.get_players_by_ids([s.player_id for s in stats])}
        except SQLAlchemyError as e:
            logger.error("Error loading match %s", match_id, exc_info=e)
            raise PersistenceError("Failed to fetch player stats") from e

        if not stats:
            raise ValidationError("No player stats found for match")

        results = []
        for stat in stats:
            player = players.get(stat.player_id)
            if not player:
                logger.warning("Player %s of match %s not found", stat.player_id, match_id)
                continue

            old_mmr = stat.mmr_before if stat.mmr_before is not None else (player.current_mmr or 0)
            won = match.winner is not None and match.winner == stat.team
            points = MatchMaker.match_points(won, stat.kills or 0, stat.deaths or 0, bool(stat.mvp), old_mmr)

            new_mmr = max(0, old_mmr + points)
            old_rank = player.discord_rank or DEFAULT_RANK
            new_rank = self.ranks.rank_for_mmr(new_mmr)

            try:
                await self.matches.apply_rating(
                    stat_id=stat.id, player_id=player.id, match_pk=match.id,
                    old_rank=old_rank, new_rank=new_rank, rank_value=self.ranks.rank_ordinal(new_rank),
                    old_mmr=old_mmr, new_mmr=new_mmr, points=points,
                )
            except SQLAlchemyError as e:
                logger.error("Error updating MMR of player %s", player.id, exc_info=e)
                continue

            results.append(RatingChange(
                player_id=player.discord_user_id,
                old_mmr=old_mmr,
                new_mmr=new_mmr,
                old_rank=old_rank,
                new_rank=new_rank,
                points_earned=points,
            ))

        logger.info("Rank calculation complete match=%s results=%s", match_id, len(results))
        return results

    async def report(self, match_id: str, winner: str, lines: Optional[Dict[str, dict]] = None) -> List[RatingChange]:
        """
        Records the result of a pending match and rates it.
        `lines` maps a discord user id to its {kills, deaths, assists, mvp};
        players without a line get an empty one.
        """
        if not match_id or not isinstance(match_id, str):
            raise ValidationError("Missing or invalid matchId")
        winner = (winner or "").strip().upper()
        if winner not in ("A", "B"):
            raise ValidationError("Winner must be A or B")
        lines = lines or {}

        try:
            match = await self.matches.get_match(match_id)
            if not match:
                raise NotFoundError("Match not found")
            if match.status in (MatchStatus.COMPLETED, MatchStatus.CANCELLED):
                raise ValidationError(f"Match already {match.status.value}")

            teams = {uid: "A" for uid in match.team_a}
            teams.update({uid: "B" for uid in match.team_b})
            players = await self.players.get_players_by_discord_ids(list(teams))
            recorded = {s.player_id for s in await self.matches.get_player_stats(match.id)}

            for player in players:
                if player.id in recorded:
                    continue
                line = lines.get(player.discord_user_id, {})
                await self.matches.add_player_stats(
                    match.id, player.id, teams[player.discord_user_id],
                    kills=int(line.get("kills", 0)), deaths=int(line.get("deaths", 0)),
                    assists=int(line.get("assists", 0)), mvp=bool(line.get("mvp", False)),
                    mmr_before=player.current_mmr or 0,
                )

            await self.matches.finish_match(match_id, winner)
        except SQLAlchemyError as e:
            logger.error("Error recording result of match %s", match_id, exc_info=e)
            raise PersistenceError("Failed to record match result") from e

        logger.info("Match %s finished, winner=%s", match_id, winner)
        return await self.calculate(match_id)
