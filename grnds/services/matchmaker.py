import enum
import logging
import math
import random
from dataclasses import dataclass
from typing import Iterable, List, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """0.5 always goes up (2.5 -> 3), unlike the built-in round()."""
    return int(math.floor(value + 0.5))


class MmrResult(NamedTuple):
    mmr: int
    degraded: bool = False  # True when the fallback value was used


@dataclass(frozen=True)
class ExternalRankSample:
    """A Valorant tier reading: the current season or one entry of the history."""
    tier: str
    tier_id: int = 0
    elo: int = 0
    date: Optional[str] = None

    @property
    def is_unrated(self) -> bool:
        return not self.tier or "unrated" in self.tier.lower()

    @classmethod
    def from_payload(cls, data: dict) -> "ExternalRankSample":
        """Builds a sample from the `data` object (or one history item) of the stats API."""
        return cls(
            tier=data.get("currenttierpatched") or "Unrated",
            tier_id=_as_int(data.get("currenttier")),
            elo=_as_int(data.get("elo")),
            date=data.get("date"),
        )


def _as_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError, OverflowError):
        return 0


class BalancingMode(enum.Enum):
    AUTO = "auto"        # Snake draft by MMR
    CAPTAIN = "captain"  # Top 2 captains + alternating picks

    @classmethod
    def parse(cls, value) -> "BalancingMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            # Unknown modes fall back to the automatic draft
            return cls.AUTO


class MatchMaker:
    """
    Rating and balancing rules of the hub.
    Initial placement: Valorant tier + ELO -> internal MMR (capped at GRNDS V).
    Balancing: snake draft over 10 players sorted by MMR.
    """

    # Internal MMR window per Valorant tier. Everything from Gold up lands
    # in the same window: no first placement goes past GRNDS V.
    VALORANT_RANK_MMR = {
        'Iron 1': (0, 100), 'Iron 2': (100, 200), 'Iron 3': (200, 300),
        'Bronze 1': (300, 400), 'Bronze 2': (400, 500), 'Bronze 3': (500, 600),
        'Silver 1': (600, 700), 'Silver 2': (700, 800), 'Silver 3': (800, 900),
        'Gold 1': (800, 900), 'Gold 2': (800, 900), 'Gold 3': (800, 900),
        'Platinum 1': (800, 900), 'Platinum 2': (800, 900), 'Platinum 3': (800, 900),
        'Diamond 1': (800, 900), 'Diamond 2': (800, 900), 'Diamond 3': (800, 900),
        'Ascendant 1': (800, 900), 'Ascendant 2': (800, 900), 'Ascendant 3': (800, 900),
        'Immortal 1': (800, 900), 'Immortal 2': (800, 900), 'Immortal 3': (800, 900),
        'Radiant': (800, 900),
    }
    UNKNOWN_RANK_MMR = (0, 200)   # Unknown tier = novice
    MAX_EXTERNAL_ELO = 5000
    GRNDS_V_MAX_MMR = 900
    FALLBACK_MMR = 100

    # --- INITIAL PLACEMENT ---

    @staticmethod
    def initial_mmr(external_rank: str, external_elo: int) -> MmrResult:
        """
        base = lo + round((hi - lo) * clamp(elo, 0, 5000) / 5000), capped at 900.
        Never raises: bad input returns the fallback flagged as degraded.
        """
        try:
            lo, hi = MatchMaker.VALORANT_RANK_MMR.get(external_rank, MatchMaker.UNKNOWN_RANK_MMR)
            elo = min(max(int(external_elo), 0), MatchMaker.MAX_EXTERNAL_ELO)
            fraction = elo / MatchMaker.MAX_EXTERNAL_ELO
            base_mmr = lo + round_half_up((hi - lo) * fraction)
            return MmrResult(min(base_mmr, MatchMaker.GRNDS_V_MAX_MMR))
        except (TypeError, ValueError, OverflowError) as e:
            logger.warning("Initial MMR fallback for rank=%r elo=%r: %s", external_rank, external_elo, e)
            return MmrResult(MatchMaker.FALLBACK_MMR, degraded=True)

    @staticmethod
    def resolve_starting_rank(current: Optional[ExternalRankSample],
                              history: Iterable[ExternalRankSample]) -> Optional[Tuple[str, int]]:
        """
        Picks the (tier, elo) pair used for placement.
        1. The current season, when it is rated.
        2. Otherwise the most recent rated entry of the history (tier id > 0).
        None means the player has no usable rank yet.
        """
        if current is not None and not current.is_unrated:
            return current.tier, current.elo

        for entry in history or []:
            if not entry.is_unrated and entry.tier_id > 0:
                return entry.tier, entry.elo

        return None

    # --- TEAM BALANCING ---

    @staticmethod
    def balance_teams(players: list):
        """
        Takes 10 dicts {'id': ..., 'mmr': ...} and returns (team_a, team_b).
        The caller guarantees the count.
        """
        # 1. Highest MMR first. sorted() is stable, so ties keep the input order.
        sorted_players = sorted(players, key=lambda x: x['mmr'], reverse=True)

        team_a = []
        team_b = []

        # 2. Snake pattern A-B-B-A-A-B-B-A-A-B
        # Team A positions: 0, 3, 4, 7, 8
        # Team B positions: 1, 2, 5, 6, 9
        for i, p in enumerate(sorted_players):
            if i % 4 in (0, 3):
                team_a.append(p)
            else:
                team_b.append(p)

        return team_a, team_b

    @staticmethod
    def captain_draft(players: list, rng: random.Random):
        """
        The two highest MMRs captain the teams, the others are shuffled
        and picked alternately (team A first).
        """
        sorted_players = sorted(players, key=lambda x: x['mmr'], reverse=True)
        cap_a, cap_b = sorted_players[0], sorted_players[1]

        pool = sorted_players[2:]
        rng.shuffle(pool)

        team_a = [cap_a]
        team_b = [cap_b]
        for i, p in enumerate(pool):
            if i % 2 == 0:
                team_a.append(p)
            else:
                team_b.append(p)

        return team_a, team_b

    @staticmethod
    def build_teams(players: list, mode=BalancingMode.AUTO, rng: Optional[random.Random] = None):
        mode = BalancingMode.parse(mode)
        if mode is BalancingMode.CAPTAIN:
            return MatchMaker.captain_draft(players, rng or random.Random())
        return MatchMaker.balance_teams(players)

    @staticmethod
    def team_average(team: list) -> int:
        if not team:
            return 0
        return sum(p['mmr'] for p in team) // len(team)

    # --- MATCH RESULT ---

    @staticmethod
    def match_points(won: bool, kills: int, deaths: int, mvp: bool, current_mmr: int) -> int:
        """
        Points won or lost in one match.
        Base (+15 / -8) x K/D multiplier + MVP bonus, then the sticky multiplier:
        gains shrink and losses grow as MMR climbs.
        """
        base_points = 15 if won else -8

        kd = kills / deaths if deaths > 0 else kills
        performance = 1.0
        if won:
            if kd > 2.0: performance = 1.3
            elif kd > 1.5: performance = 1.2
            elif kd > 1.0: performance = 1.1
            elif kd < 0.7: performance = 0.9
        else:
            if kd > 1.5: performance = 0.95
            elif kd < 0.5: performance = 1.1

        mvp_bonus = 0
        if mvp:
            mvp_bonus = 8 if won else 3

        raw_points = round_half_up(base_points * performance) + mvp_bonus

        sticky = 1.0
        if raw_points > 0:
            if current_mmr > 2500: sticky = 0.7
            elif current_mmr > 2000: sticky = 0.8
            elif current_mmr > 1500: sticky = 0.9
        else:
            if current_mmr > 2500: sticky = 1.2
            elif current_mmr > 2000: sticky = 1.1

        return round_half_up(raw_points * sticky)
