import random
from typing import Optional

from grnds.config import Settings
from grnds.database.config import Database
from grnds.database.repositories import PlayerRepository, QueueRepository, MatchRepository
from grnds.services.leaderboard import LeaderboardService
from grnds.services.queue_processing import QueueProcessingService, QueueService
from grnds.services.rank_calculation import RankCalculationService
from grnds.services.valorant_api import ValorantAPI
from grnds.services.verification import VerificationService


class Hub:
    """
    Wires the store, the stats client and the workflows together.
    The bot and the HTTP API each build one from Settings; tests build one
    around an in-memory database and a fake stats client.
    """

    def __init__(self, db: Database, valorant_api, rng: Optional[random.Random] = None):
        self.db = db
        self.valorant_api = valorant_api

        self.players = PlayerRepository(db)
        self.queue_repo = QueueRepository(db)
        self.matches = MatchRepository(db)

        self.verification = VerificationService(self.players, valorant_api)
        self.queue = QueueService(self.players, self.queue_repo)
        self.queue_processing = QueueProcessingService(self.players, self.queue_repo, self.matches, rng=rng)
        self.rank_calculation = RankCalculationService(self.players, self.matches)
        self.leaderboard = LeaderboardService(self.players, self.matches)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Hub":
        db = Database(settings.database_url)
        valorant_api = ValorantAPI(
            base_url=settings.valorant_api_base_url,
            api_key=settings.valorant_api_key,
            timeout=settings.valorant_api_timeout,
        )
        return cls(db, valorant_api)

    async def start(self):
        await self.db.init_db()

    async def close(self):
        await self.db.close()
