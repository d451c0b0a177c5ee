import pytest

from grnds.database.models import HistoryReason
from grnds.services.errors import ValidationError, AlreadyPlacedError, NoRankedHistoryError
from grnds.services.matchmaker import ExternalRankSample
from grnds.services.verification import VerifyRequest

from conftest import add_player, user_id


def make_request(n=1, **overrides):
    fields = dict(user_id=user_id(n), username=f"player{n}", riot_name="TenZ", riot_tag="0505", region="na")
    fields.update(overrides)
    return VerifyRequest(**fields)


class TestVerifyRequest:

    def test_from_json(self):
        request = VerifyRequest.from_json({
            "userId": user_id(1), "username": "tenz", "riotName": "TenZ", "riotTag": 505, "region": "NA",
        })
        assert request.riot_tag == "505"
        assert request.validated().region == "na"

    def test_missing_fields(self):
        with pytest.raises(ValidationError, match="Missing required fields"):
            VerifyRequest.from_json({"userId": user_id(1), "username": "tenz"})

    def test_not_an_object(self):
        with pytest.raises(ValidationError):
            VerifyRequest.from_json(["nope"])

    def test_strips_whitespace(self):
        request = make_request(riot_name="  Eric ツ ", riot_tag=" 2000 ", region=" EU ").validated()
        assert (request.riot_name, request.riot_tag, request.region) == ("Eric ツ", "2000", "eu")

    @pytest.mark.parametrize("overrides, message", [
        ({"user_id": "12345"}, "Invalid userId format"),
        ({"user_id": "1234567890123456789012"}, "Invalid userId format"),
        ({"user_id": "abcdefghijklmnopqr"}, "Invalid userId format"),
        ({"riot_name": "   "}, "Invalid riotName format"),
        ({"riot_name": "x" * 51}, "Invalid riotName format"),
        ({"riot_tag": "12345678901"}, "Invalid riotTag format"),
        ({"region": "mars"}, "Invalid region"),
    ])
    def test_invalid(self, overrides, message):
        with pytest.raises(ValidationError, match=message):
            make_request(**overrides).validated()


class TestVerificationService:

    async def test_unrated_player_placed_from_history(self, hub, fake_api):
        fake_api.current = ExternalRankSample('Unrated', 0, 0)
        fake_api.history = [ExternalRankSample('Gold 2', 13, 2500)]

        result = await hub.verification.verify(make_request())

        assert result.starting_mmr == 850
        assert result.discord_rank == 'GRNDS V'
        assert result.discord_rank_value == 5
        assert result.valorant_rank == 'Gold 2'
        assert result.valorant_elo == 2500
        assert not result.degraded
        assert [c[0] for c in fake_api.calls] == ["mmr", "history"]

        player = await hub.players.get_player_by_discord_id(user_id(1))
        assert player.current_mmr == 850
        assert player.peak_mmr == 850
        assert player.discord_rank == 'GRNDS V'
        assert player.riot_name == 'TenZ'
        assert player.verified_at is not None

        history = await hub.players.get_history(player.id)
        assert len(history) == 1
        assert history[0].reason is HistoryReason.VERIFICATION
        assert (history[0].old_rank, history[0].old_mmr) == ('Unranked', 0)
        assert (history[0].new_rank, history[0].new_mmr) == ('GRNDS V', 850)

    async def test_rated_player_skips_history(self, hub, fake_api):
        fake_api.current = ExternalRankSample('Platinum 1', 15, 5000)

        result = await hub.verification.verify(make_request())

        assert result.starting_mmr == 900
        assert result.discord_rank == 'GRNDS V'
        assert [c[0] for c in fake_api.calls] == ["mmr"]

    async def test_low_rank_placement(self, hub, fake_api):
        fake_api.current = ExternalRankSample('Iron 2', 4, 2500)

        result = await hub.verification.verify(make_request())

        assert result.starting_mmr == 150
        assert result.discord_rank == 'GRNDS I'
        assert result.discord_rank_value == 1

    async def test_already_placed_is_rejected(self, hub, db, fake_api):
        await add_player(db, 1, 850)
        fake_api.current = ExternalRankSample('Radiant', 27, 5000)

        with pytest.raises(AlreadyPlacedError, match=r"Already placed at GRNDS V \(850 MMR\)"):
            await hub.verification.verify(make_request())

        assert fake_api.calls == []
        player = await hub.players.get_player_by_discord_id(user_id(1))
        assert player.current_mmr == 850
        assert await hub.players.get_history(player.id) == []

    async def test_unplaced_existing_player_can_verify(self, hub, db, fake_api):
        await add_player(db, 1, 0, verified=False, rank='Unranked')
        fake_api.current = ExternalRankSample('Silver 2', 11, 0)

        result = await hub.verification.verify(make_request())

        assert result.starting_mmr == 700
        player = await hub.players.get_player_by_discord_id(user_id(1))
        assert player.discord_rank == 'GRNDS IV'
        assert player.discord_username == 'player1'

    async def test_no_ranked_history(self, hub, fake_api):
        fake_api.current = None
        fake_api.history = []

        with pytest.raises(NoRankedHistoryError, match="TenZ#0505") as exc_info:
            await hub.verification.verify(make_request())

        assert exc_info.value.status == 404
        assert await hub.players.get_player_by_discord_id(user_id(1)) is None

    async def test_invalid_request_never_reaches_the_api(self, hub, fake_api):
        with pytest.raises(ValidationError):
            await hub.verification.verify(make_request(region="xx"))
        assert fake_api.calls == []

    async def test_result_json(self, hub, fake_api):
        fake_api.current = ExternalRankSample('Gold 2', 13, 2500)

        body = (await hub.verification.verify(make_request())).to_json()

        assert body["success"] is True
        assert body["discordRank"] == 'GRNDS V'
        assert body["discordRankValue"] == 5
        assert body["startingMMR"] == 850
        assert body["valorantRank"] == 'Gold 2'
        assert body["valorantELO"] == 2500
        assert "GRNDS V" in body["message"]
