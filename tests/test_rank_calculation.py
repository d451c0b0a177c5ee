import pytest

from grnds.database.models import HistoryReason, MatchStatus
from grnds.services.errors import ValidationError, NotFoundError

from conftest import add_player, full_queue, user_id


async def reported_match(hub, match_id, lines, winner="A"):
    """lines: (player, team, kills, deaths, mvp, mmr_before)"""
    team_a = [p.discord_user_id for p, team, *_ in lines if team == "A"]
    team_b = [p.discord_user_id for p, team, *_ in lines if team == "B"]
    match = await hub.matches.create_match(match_id, "Bind", team_a[0], team_a, team_b)
    for player, team, kills, deaths, mvp, mmr_before in lines:
        await hub.matches.add_player_stats(
            match.id, player.id, team, kills=kills, deaths=deaths, mvp=mvp, mmr_before=mmr_before,
        )
    if winner:
        await hub.matches.finish_match(match_id, winner)
    return match


class TestRankCalculation:

    async def test_winner_ranks_up_and_loser_drops(self, hub, db):
        winner = await add_player(db, 1, 990)
        loser = await add_player(db, 2, 500)
        match = await reported_match(hub, "match-1-aaaaaaaaa", [
            (winner, "A", 10, 10, False, None),
            (loser, "B", 3, 10, False, None),
        ])

        results = await hub.rank_calculation.calculate("match-1-aaaaaaaaa")

        assert [r.player_id for r in results] == [user_id(1), user_id(2)]
        up, down = results
        assert (up.old_mmr, up.new_mmr, up.points_earned) == (990, 1005, 15)
        assert (up.old_rank, up.new_rank) == ('GRNDS V', 'BREAKPOINT I')
        assert up.rank_changed
        assert (down.old_mmr, down.new_mmr, down.points_earned) == (500, 491, -9)
        assert not down.rank_changed

        stored = await hub.players.get_player_by_discord_id(user_id(1))
        assert stored.current_mmr == 1005
        assert stored.peak_mmr == 1005
        assert stored.discord_rank == 'BREAKPOINT I'
        assert stored.discord_rank_value == 6

        stored_loser = await hub.players.get_player_by_discord_id(user_id(2))
        assert stored_loser.current_mmr == 491
        assert stored_loser.peak_mmr == 500

        history = await hub.players.get_history(winner.id)
        assert len(history) == 1
        assert history[0].reason is HistoryReason.MATCH
        assert history[0].match_id == match.id
        assert await hub.players.get_history(loser.id) == []

        stats = await hub.matches.get_player_stats(match.id)
        assert [(s.mmr_after, s.points_earned) for s in stats] == [(1005, 15), (491, -9)]

    async def test_mmr_never_goes_below_zero(self, hub, db):
        winner = await add_player(db, 1, 500)
        loser = await add_player(db, 2, 5)
        await reported_match(hub, "match-2-aaaaaaaaa", [
            (winner, "A", 10, 10, False, None),
            (loser, "B", 2, 10, False, None),
        ])

        results = await hub.rank_calculation.calculate("match-2-aaaaaaaaa")

        assert results[1].new_mmr == 0
        assert results[1].points_earned == -9

    async def test_recorded_mmr_before_is_used(self, hub, db):
        player = await add_player(db, 1, 1000)
        other = await add_player(db, 2, 1000)
        await reported_match(hub, "match-3-aaaaaaaaa", [
            (player, "A", 5, 5, True, 2600),
            (other, "B", 5, 5, False, None),
        ])

        results = await hub.rank_calculation.calculate("match-3-aaaaaaaaa")

        # MVP win at 2600: (15 + 8) x 0.7
        assert (results[0].old_mmr, results[0].new_mmr) == (2600, 2616)
        assert results[0].new_rank == 'CHALLENGER IV'

    async def test_result_json(self, hub, db):
        a = await add_player(db, 1, 990)
        b = await add_player(db, 2, 500)
        await reported_match(hub, "match-4-aaaaaaaaa", [(a, "A", 10, 10, False, None), (b, "B", 10, 10, False, None)])

        body = (await hub.rank_calculation.calculate("match-4-aaaaaaaaa"))[0].to_json()

        assert body == {
            "playerId": user_id(1),
            "oldMMR": 990,
            "newMMR": 1005,
            "oldRank": 'GRNDS V',
            "newRank": 'BREAKPOINT I',
            "rankChanged": True,
            "pointsEarned": 15,
        }

    @pytest.mark.parametrize("match_id", [None, "", 123])
    async def test_invalid_match_id(self, hub, match_id):
        with pytest.raises(ValidationError, match="Missing or invalid matchId"):
            await hub.rank_calculation.calculate(match_id)

    async def test_unknown_match(self, hub):
        with pytest.raises(NotFoundError, match="Match not found"):
            await hub.rank_calculation.calculate("match-0-missing00")

    async def test_match_without_stats(self, hub, db):
        await hub.matches.create_match("match-5-aaaaaaaaa", "Bind", user_id(1), [user_id(1)], [user_id(2)])

        with pytest.raises(ValidationError, match="No player stats found for match"):
            await hub.rank_calculation.calculate("match-5-aaaaaaaaa")


class TestReportResult:

    async def test_report_closes_and_rates_the_match(self, hub, db):
        await full_queue(db)
        proposal = await hub.queue_processing.process()

        changes = await hub.rank_calculation.report(
            proposal.match_id, "a", lines={user_id(9): {"kills": 20, "deaths": 5, "mvp": True}},
        )

        assert len(changes) == 10
        by_player = {c.player_id: c for c in changes}
        assert all(by_player[uid].points_earned > 0 for uid in proposal.team_a)
        assert all(by_player[uid].points_earned < 0 for uid in proposal.team_b)
        # 1000 MMR, K/D 4 win + MVP: 15 x 1.3 + 8
        assert (by_player[user_id(9)].old_mmr, by_player[user_id(9)].new_mmr) == (1000, 1028)

        match = await hub.matches.get_match(proposal.match_id)
        assert match.status is MatchStatus.COMPLETED
        assert match.winner == "A"
        assert len(await hub.matches.get_player_stats(match.id)) == 10

        rows = await hub.leaderboard.top()
        assert sum(r.wins for r in rows) == 5
        assert sum(r.losses for r in rows) == 5

    async def test_already_recorded_stats_are_kept(self, hub, db):
        a = await add_player(db, 1, 990)
        b = await add_player(db, 2, 500)
        match = await hub.matches.create_match("match-6-aaaaaaaaa", "Bind", user_id(1), [user_id(1)], [user_id(2)])
        await hub.matches.add_player_stats(match.id, a.id, "A", kills=10, deaths=10)

        changes = await hub.rank_calculation.report("match-6-aaaaaaaaa", "B")

        assert len(await hub.matches.get_player_stats(match.id)) == 2
        # Player 2 had no line: a 0/0 win is K/D 0 -> x0.9
        assert [(c.player_id, c.points_earned) for c in changes] == [(user_id(1), -8), (user_id(2), 14)]

    async def test_match_cannot_be_reported_twice(self, hub, db):
        await full_queue(db)
        proposal = await hub.queue_processing.process()
        await hub.rank_calculation.report(proposal.match_id, "B")

        with pytest.raises(ValidationError, match="Match already completed"):
            await hub.rank_calculation.report(proposal.match_id, "A")

    @pytest.mark.parametrize("winner", [None, "", "C", "blue"])
    async def test_invalid_winner(self, hub, winner):
        with pytest.raises(ValidationError, match="Winner must be A or B"):
            await hub.rank_calculation.report("match-7-aaaaaaaaa", winner)

    async def test_unknown_match(self, hub):
        with pytest.raises(NotFoundError, match="Match not found"):
            await hub.rank_calculation.report("match-0-missing00", "A")
