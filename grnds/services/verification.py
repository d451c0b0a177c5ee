import logging
import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from grnds.database.repositories import PlayerRepository
from grnds.services.errors import ValidationError, AlreadyPlacedError, NoRankedHistoryError, PersistenceError
from grnds.services.matchmaker import MatchMaker
from grnds.services.ranks import RankTable, RANKS, DEFAULT_RANK

logger = logging.getLogger(__name__)

USER_ID_PATTERN = re.compile(r"^\d{17,19}$")
VALID_REGIONS = ("na", "eu", "ap", "kr", "latam", "br")


@dataclass(frozen=True)
class VerifyRequest:
    user_id: str
    username: str
    riot_name: str
    riot_tag: str
    region: str

    @classmethod
    def from_json(cls, body: dict) -> "VerifyRequest":
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")

        fields = ("userId", "username", "riotName", "riotTag", "region")
        if any(not body.get(f) for f in fields):
            raise ValidationError("Missing required fields: userId, username, riotName, riotTag, region")

        # Tags may arrive as numbers ("1017")
        return cls(
            user_id=body["userId"],
            username=str(body["username"]),
            riot_name=str(body["riotName"]),
            riot_tag=str(body["riotTag"]),
            region=str(body["region"]),
        )

    def validated(self) -> "VerifyRequest":
        """Normalized copy of the request, or ValidationError."""
        if not isinstance(self.user_id, str) or not USER_ID_PATTERN.match(self.user_id):
            raise ValidationError("Invalid userId format")

        name = self.riot_name.strip()
        tag = self.riot_tag.strip()
        region = self.region.strip().lower()

        if not 1 <= len(name) <= 50:
            raise ValidationError("Invalid riotName format")
        if not 1 <= len(tag) <= 10:
            raise ValidationError("Invalid riotTag format")
        if region not in VALID_REGIONS:
            raise ValidationError("Invalid region")

        return VerifyRequest(self.user_id, self.username.strip(), name, tag, region)


@dataclass(frozen=True)
class VerificationResult:
    discord_rank: str
    discord_rank_value: int
    starting_mmr: int
    valorant_rank: str
    valorant_elo: int
    degraded: bool = False

    @property
    def message(self) -> str:
        return (
            "✅ Rank Placement Complete!\n\n"
            f"**Valorant Rank:** {self.valorant_rank}\n"
            f"**Discord Rank:** {self.discord_rank}\n"
            f"**Starting MMR:** {self.starting_mmr}\n\n"
            "Your initial Discord rank is based on your Valorant rank. "
            "Play customs to rank up further!\n\n"
            "**Note:** The highest rank you can initially be placed at is GRNDS V."
        )

    def to_json(self) -> dict:
        return {
            "success": True,
            "discordRank": self.discord_rank,
            "discordRankValue": self.discord_rank_value,
            "startingMMR": self.starting_mmr,
            "valorantRank": self.valorant_rank,
            "valorantELO": self.valorant_elo,
            "message": self.message,
        }


class VerificationService:
    """
    Links a Discord user to a Riot account and gives the first placement:
    stats API -> starting rank -> capped MMR -> internal rank -> player + history rows.
    """

    def __init__(self, players: PlayerRepository, valorant_api, ranks: RankTable = RANKS):
        self.players = players
        self.valorant_api = valorant_api
        self.ranks = ranks

    async def verify(self, request: VerifyRequest) -> VerificationResult:
        request = request.validated()
        riot_id = f"{request.riot_name}#{request.riot_tag}"
        logger.info("Verifying account user=%s riot_id=%s region=%s", request.user_id, riot_id, request.region)

        # 1. A player that already has a placement cannot verify again
        try:
            existing = await self.players.get_player_by_discord_id(request.user_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching player %s", request.user_id, exc_info=e)
            raise PersistenceError("Database error") from e

        if existing and existing.discord_rank and existing.discord_rank != DEFAULT_RANK and (existing.current_mmr or 0) > 0:
            logger.info("User %s already placed at %s", request.user_id, existing.discord_rank)
            raise AlreadyPlacedError(f"Already placed at {existing.discord_rank} ({existing.current_mmr} MMR)")

        # 2. Current season first, the history only when the current tier is unusable
        current = await self.valorant_api.get_mmr(request.region, request.riot_name, request.riot_tag)
        history = []
        if current is None or current.is_unrated:
            history = await self.valorant_api.get_mmr_history(request.riot_name, request.riot_tag)

        resolved = MatchMaker.resolve_starting_rank(current, history)
        if resolved is None:
            logger.info("No usable rank for %s", riot_id)
            raise NoRankedHistoryError(
                f"No ranked history found for {riot_id}. Complete your placement matches first."
            )
        valorant_rank, valorant_elo = resolved

        # 3. Internal placement
        mmr_result = MatchMaker.initial_mmr(valorant_rank, valorant_elo)
        discord_rank = self.ranks.rank_for_mmr(mmr_result.mmr)
        discord_rank_value = self.ranks.rank_ordinal(discord_rank)

        logger.info(
            "Initial placement user=%s valorant=%s elo=%s -> mmr=%s rank=%s%s",
            request.user_id, valorant_rank, valorant_elo, mmr_result.mmr, discord_rank,
            " (fallback)" if mmr_result.degraded else "",
        )

        # 4. Persist
        try:
            await self.players.upsert_verified_player(
                discord_user_id=request.user_id,
                discord_username=request.username,
                riot_name=request.riot_name,
                riot_tag=request.riot_tag,
                riot_region=request.region,
                rank=discord_rank,
                rank_value=discord_rank_value,
                mmr=mmr_result.mmr,
                old_rank=existing.discord_rank if existing and existing.discord_rank else DEFAULT_RANK,
                old_mmr=(existing.current_mmr or 0) if existing else 0,
            )
        except SQLAlchemyError as e:
            logger.error("Database error saving player %s", request.user_id, exc_info=e)
            raise PersistenceError("Failed to save player data") from e

        return VerificationResult(
            discord_rank=discord_rank,
            discord_rank_value=discord_rank_value,
            starting_mmr=mmr_result.mmr,
            valorant_rank=valorant_rank,
            valorant_elo=valorant_elo,
            degraded=mmr_result.degraded,
        )
