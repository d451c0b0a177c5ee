from typing import List, NamedTuple, Optional

DEFAULT_RANK = "Unranked"


class RankTier(NamedTuple):
    name: str
    min_mmr: int
    max_mmr: int

    def contains(self, mmr: int) -> bool:
        return self.min_mmr <= mmr <= self.max_mmr


# Canonical ladder used by verification, match rating and the bot.
RANK_THRESHOLDS = [
    RankTier('GRNDS I', 0, 199),
    RankTier('GRNDS II', 200, 399),
    RankTier('GRNDS III', 400, 599),
    RankTier('GRNDS IV', 600, 799),
    RankTier('GRNDS V', 800, 999),
    RankTier('BREAKPOINT I', 1000, 1199),
    RankTier('BREAKPOINT II', 1200, 1399),
    RankTier('BREAKPOINT III', 1400, 1599),
    RankTier('BREAKPOINT IV', 1600, 1799),
    RankTier('BREAKPOINT V', 1800, 1999),
    RankTier('CHALLENGER I', 2000, 2199),
    RankTier('CHALLENGER II', 2200, 2399),
    RankTier('CHALLENGER III', 2400, 2599),
    RankTier('CHALLENGER IV', 2600, 2799),
    RankTier('CHALLENGER V', 2800, 2999),
    RankTier('X', 3000, 99999),
]

# Widened bands from the admin/search screens. A separate scheme, never
# mixed into the canonical ladder: the same MMR maps to different labels.
WIDENED_RANK_THRESHOLDS = [
    RankTier('GRNDS I', 0, 299),
    RankTier('GRNDS II', 300, 599),
    RankTier('GRNDS III', 600, 899),
    RankTier('GRNDS IV', 900, 1199),
    RankTier('GRNDS V', 1200, 1499),
    RankTier('BREAKPOINT I', 1500, 1699),
    RankTier('BREAKPOINT II', 1700, 1899),
    RankTier('BREAKPOINT III', 1900, 2099),
    RankTier('BREAKPOINT IV', 2100, 2299),
    RankTier('BREAKPOINT V', 2300, 2399),
    RankTier('CHALLENGER I', 2400, 2499),
    RankTier('CHALLENGER II', 2500, 2599),
    RankTier('CHALLENGER III', 2600, 2999),
    RankTier('X', 3000, 99999),
]


class RankTable:
    """
    Ordered MMR -> rank lookup.
    Lookups never raise: an uncovered MMR gets the lowest tier and an unknown
    name gets ordinal 1.
    """

    def __init__(self, tiers: List[RankTier]):
        if not tiers:
            raise ValueError("RankTable needs at least one tier")
        self._tiers = list(tiers)

    @property
    def tiers(self) -> List[RankTier]:
        return list(self._tiers)

    @property
    def lowest(self) -> RankTier:
        return self._tiers[0]

    def tier(self, name: str) -> Optional[RankTier]:
        return next((t for t in self._tiers if t.name == name), None)

    def rank_for_mmr(self, mmr: int) -> str:
        for tier in self._tiers:
            if tier.contains(mmr):
                return tier.name
        return self.lowest.name

    def rank_ordinal(self, rank_name: str) -> int:
        for i, tier in enumerate(self._tiers):
            if tier.name == rank_name:
                return i + 1
        return 1

    def is_contiguous(self) -> bool:
        """True when the tiers start at 0 and each one begins right after the previous."""
        if self._tiers[0].min_mmr != 0:
            return False
        for prev, cur in zip(self._tiers, self._tiers[1:]):
            if cur.min_mmr != prev.max_mmr + 1 or cur.max_mmr < cur.min_mmr:
                return False
        return True

    def __len__(self):
        return len(self._tiers)


RANKS = RankTable(RANK_THRESHOLDS)
WIDENED_RANKS = RankTable(WIDENED_RANK_THRESHOLDS)
