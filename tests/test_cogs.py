from types import SimpleNamespace

import pytest

from grnds.cogs.auth import parse_verify_args, remove_invisible
from grnds.cogs.lobby import Lobby, clean_game
from grnds.cogs.ranking import get_rank_color, RANK_COLORS
from grnds.database.models import MatchStatus

from conftest import full_queue


class TestVerifyArgs:

    @pytest.mark.parametrize("args, expected", [
        ("TenZ#0505", ("TenZ", "0505", "na")),
        ("TenZ#0505 eu", ("TenZ", "0505", "eu")),
        ("Eric ツ#2000 BR", ("Eric ツ", "2000", "br")),
        ("Name With Spaces#TAG", ("Name With Spaces", "TAG", "na")),
    ])
    def test_parse(self, args, expected):
        assert parse_verify_args(args) == expected

    @pytest.mark.parametrize("args", [None, "", "   ", "NoTag", "NoTag eu"])
    def test_invalid(self, args):
        assert parse_verify_args(args) is None

    def test_invisible_characters_are_removed(self):
        assert remove_invisible("Ten\u200bZ\u2066#05") == "TenZ#05"
        assert parse_verify_args("\u2068TenZ\u2069#0505") == ("TenZ", "0505", "na")


@pytest.mark.parametrize("value, expected", [
    (None, "valorant"),
    ("VAL", "valorant"),
    ("mr", "marvel_rivals"),
    ("Marvel", "marvel_rivals"),
    ("other", "other"),
])
def test_clean_game(value, expected):
    assert clean_game(value) == expected


def test_rank_color():
    assert get_rank_color("CHALLENGER II") == RANK_COLORS["CHALLENGER"]
    assert get_rank_color("X") == RANK_COLORS["X"]
    assert get_rank_color(None) == 0x3498db


class FakeContext:
    def __init__(self):
        self.replies = []

    async def reply(self, content=None, embed=None):
        self.replies.append((content, embed))


class TestResultCommand:

    async def test_result_rates_the_match(self, hub, db):
        await full_queue(db)
        proposal = await hub.queue_processing.process()
        cog = Lobby(SimpleNamespace(hub=hub))
        ctx = FakeContext()

        await cog.result.callback(cog, ctx, proposal.match_id, "b")

        content, embed = ctx.replies[0]
        assert content is None
        assert embed.description == "Winner: **Team B**"
        assert len(embed.fields[0].value.splitlines()) == 10

        match = await hub.matches.get_match(proposal.match_id)
        assert match.status is MatchStatus.COMPLETED
        assert match.winner == "B"

    async def test_result_needs_both_arguments(self, hub):
        cog = Lobby(SimpleNamespace(hub=hub))
        ctx = FakeContext()

        await cog.result.callback(cog, ctx, "match-1-aaaaaaaaa", None)

        assert ctx.replies == [("❌ Usage: `.result <match_id> <A/B>`", None)]

    async def test_result_reports_errors(self, hub):
        cog = Lobby(SimpleNamespace(hub=hub))
        ctx = FakeContext()

        await cog.result.callback(cog, ctx, "match-0-missing00", "A")

        assert ctx.replies == [("❌ Match not found", None)]
