from typing import List, Optional, Tuple

from sqlalchemy import select, desc, delete

from grnds.database.config import Database
from grnds.database.models import (
    Player, RankHistoryEntry, QueueEntry, Match, MatchPlayerStats, MatchStatus, HistoryReason, utcnow
)

# --- PLAYER REPOSITORY ---
class PlayerRepository:

    def __init__(self, db: Database):
        self.db = db

    async def get_player_by_discord_id(self, discord_user_id: str) -> Optional[Player]:
        async with self.db.session() as session:
            result = await session.execute(select(Player).where(Player.discord_user_id == discord_user_id))
            return result.scalar_one_or_none()

    async def get_players_by_ids(self, player_ids: List[int]) -> List[Player]:
        async with self.db.session() as session:
            result = await session.execute(select(Player).where(Player.id.in_(player_ids)))
            return list(result.scalars().all())

    async def get_players_by_discord_ids(self, discord_user_ids: List[str]) -> List[Player]:
        async with self.db.session() as session:
            result = await session.execute(select(Player).where(Player.discord_user_id.in_(discord_user_ids)))
            return list(result.scalars().all())

    async def get_top_by_mmr(self, limit: int) -> List[Player]:
        async with self.db.session() as session:
            stmt = select(Player).order_by(desc(Player.current_mmr), Player.id).limit(limit)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def upsert_verified_player(self, discord_user_id: str, discord_username: str,
                                     riot_name: str, riot_tag: str, riot_region: str,
                                     rank: str, rank_value: int, mmr: int,
                                     old_rank: str, old_mmr: int) -> Player:
        """
        Creates or updates the player keyed by discord_user_id with its first
        placement and appends the 'verification' history entry.
        """
        async with self.db.session() as session:
            result = await session.execute(select(Player).where(Player.discord_user_id == discord_user_id))
            player = result.scalar_one_or_none()

            if not player:
                player = Player(discord_user_id=discord_user_id)
                session.add(player)

            player.discord_username = discord_username
            player.riot_name = riot_name
            player.riot_tag = riot_tag
            player.riot_region = riot_region
            player.discord_rank = rank
            player.discord_rank_value = rank_value
            player.current_mmr = mmr
            player.peak_mmr = mmr
            player.valorant_rank = rank
            player.valorant_mmr = mmr
            player.valorant_peak_mmr = mmr
            player.verified_at = utcnow()

            # Needs the player id for the history row
            await session.flush()

            session.add(RankHistoryEntry(
                player_id=player.id,
                old_rank=old_rank,
                new_rank=rank,
                old_mmr=old_mmr,
                new_mmr=mmr,
                reason=HistoryReason.VERIFICATION,
            ))
            return player

    async def get_history(self, player_id: int) -> List[RankHistoryEntry]:
        async with self.db.session() as session:
            stmt = (
                select(RankHistoryEntry)
                .where(RankHistoryEntry.player_id == player_id)
                .order_by(RankHistoryEntry.id)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

# --- QUEUE REPOSITORY ---
class QueueRepository:

    def __init__(self, db: Database):
        self.db = db

    async def get_queue(self, game: str) -> List[Tuple[QueueEntry, Player]]:
        """Queue rows of a game joined with their player, oldest first."""
        async with self.db.session() as session:
            stmt = (
                select(QueueEntry, Player)
                .join(Player, QueueEntry.player_id == Player.id)
                .where(QueueEntry.game == game)
                .order_by(QueueEntry.joined_at, QueueEntry.id)
            )
            result = await session.execute(stmt)
            return [(entry, player) for entry, player in result.all()]

    async def is_queued(self, player_id: int, game: str) -> bool:
        async with self.db.session() as session:
            stmt = select(QueueEntry.id).where(QueueEntry.player_id == player_id, QueueEntry.game == game)
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None

    async def add(self, player_id: int, game: str) -> QueueEntry:
        async with self.db.session() as session:
            entry = QueueEntry(player_id=player_id, game=game, joined_at=utcnow())
            session.add(entry)
            return entry

    async def remove(self, player_id: int, game: str) -> int:
        async with self.db.session() as session:
            stmt = delete(QueueEntry).where(QueueEntry.player_id == player_id, QueueEntry.game == game)
            result = await session.execute(stmt)
            return result.rowcount

    async def clear(self, player_ids: List[int], game: str) -> int:
        async with self.db.session() as session:
            stmt = delete(QueueEntry).where(QueueEntry.player_id.in_(player_ids), QueueEntry.game == game)
            result = await session.execute(stmt)
            return result.rowcount

# --- MATCH REPOSITORY ---
class MatchRepository:

    def __init__(self, db: Database):
        self.db = db

    async def create_match(self, match_id: str, map_name: str, host_user_id: str,
                           team_a: List[str], team_b: List[str], match_type: str = "custom") -> Match:
        async with self.db.session() as session:
            now = utcnow()
            match = Match(
                match_id=match_id,
                map=map_name,
                host_user_id=host_user_id,
                host_selected_at=now,
                host_confirmed=False,
                team_a=list(team_a),
                team_b=list(team_b),
                match_type=match_type,
                status=MatchStatus.PENDING,
                created_at=now,
            )
            session.add(match)
            await session.flush()
            return match

    async def get_match(self, match_id: str) -> Optional[Match]:
        async with self.db.session() as session:
            result = await session.execute(select(Match).where(Match.match_id == match_id))
            return result.scalar_one_or_none()

    async def get_player_stats(self, match_pk: int) -> List[MatchPlayerStats]:
        async with self.db.session() as session:
            stmt = select(MatchPlayerStats).where(MatchPlayerStats.match_id == match_pk).order_by(MatchPlayerStats.id)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def add_player_stats(self, match_pk: int, player_id: int, team: str, kills: int = 0,
                               deaths: int = 0, assists: int = 0, mvp: bool = False,
                               mmr_before: Optional[int] = None) -> MatchPlayerStats:
        async with self.db.session() as session:
            stat = MatchPlayerStats(
                match_id=match_pk, player_id=player_id, team=team,
                kills=kills, deaths=deaths, assists=assists, mvp=mvp,
                mmr_before=mmr_before,
            )
            session.add(stat)
            await session.flush()
            return stat

    async def finish_match(self, match_id: str, winner: str) -> Optional[Match]:
        async with self.db.session() as session:
            result = await session.execute(select(Match).where(Match.match_id == match_id))
            match = result.scalar_one_or_none()
            if not match:
                return None
            match.winner = winner.upper()
            match.status = MatchStatus.COMPLETED
            match.completed_at = utcnow()
            return match

    async def apply_rating(self, stat_id: int, player_id: int, match_pk: int,
                           old_rank: str, new_rank: str, rank_value: int,
                           old_mmr: int, new_mmr: int, points: int):
        """Writes one rated row: player MMR/rank/peak, the stats line and a history entry on rank change."""
        async with self.db.session() as session:
            player = await session.get(Player, player_id)
            player.current_mmr = new_mmr
            player.discord_rank = new_rank
            player.discord_rank_value = rank_value
            player.peak_mmr = max(player.peak_mmr or 0, new_mmr)

            stat = await session.get(MatchPlayerStats, stat_id)
            stat.mmr_after = new_mmr
            stat.points_earned = points

            if old_rank != new_rank:
                session.add(RankHistoryEntry(
                    player_id=player_id,
                    old_rank=old_rank,
                    new_rank=new_rank,
                    old_mmr=old_mmr,
                    new_mmr=new_mmr,
                    reason=HistoryReason.MATCH,
                    match_id=match_pk,
                ))

    async def get_results_for_players(self, player_ids: List[int]) -> List[Tuple[int, str, str]]:
        """(player_id, team, winner) for every completed match with a winner."""
        if not player_ids:
            return []
        async with self.db.session() as session:
            stmt = (
                select(MatchPlayerStats.player_id, MatchPlayerStats.team, Match.winner)
                .join(Match, MatchPlayerStats.match_id == Match.id)
                .where(
                    MatchPlayerStats.player_id.in_(player_ids),
                    Match.status == MatchStatus.COMPLETED,
                    Match.winner.isnot(None),
                )
            )
            result = await session.execute(stmt)
            return [tuple(row) for row in result.all()]
