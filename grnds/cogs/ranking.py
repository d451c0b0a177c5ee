import discord
import logging
from discord.ext import commands

from grnds.services.errors import GrndsError
from grnds.services.ranks import RANKS, DEFAULT_RANK

logger = logging.getLogger(__name__)

RANK_COLORS = {
    'GRNDS': 0x95a5a6,
    'BREAKPOINT': 0x4a90e2,
    'CHALLENGER': 0xe74c3c,
    'X': 0xffd700,
}


def get_rank_color(rank: str) -> int:
    family = (rank or "").split(" ")[0]
    return RANK_COLORS.get(family, 0x3498db)


class Ranking(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.players = bot.hub.players
        self.leaderboard_service = bot.hub.leaderboard

    @commands.command(name="leaderboard", aliases=["ranking", "top"])
    async def leaderboard(self, ctx, limit: int = 10):
        """Top players by MMR"""
        try:
            rows = await self.leaderboard_service.top(limit)
        except GrndsError as e:
            await ctx.reply(f"❌ {e.message}")
            return

        embed = discord.Embed(title="🏆 GRNDS Leaderboard", color=0xffd700)
        if not rows:
            embed.description = "Nobody has been placed yet."
            await ctx.reply(embed=embed)
            return

        lines = ""
        for row in rows:
            if row.rank == 1: icon = "🥇"
            elif row.rank == 2: icon = "🥈"
            elif row.rank == 3: icon = "🥉"
            else: icon = f"`{row.rank}.`"

            lines += (
                f"{icon} **{row.username}** • {row.rank_name or DEFAULT_RANK}\n"
                f"└ `{row.wins}W` - `{row.losses}L` ({row.win_rate:.0f}%) • **{row.mmr}** MMR\n"
            )

        embed.add_field(name="Players", value=lines, inline=False)
        await ctx.reply(embed=embed)

    @commands.command(name="rank", aliases=["perfil"])
    async def rank(self, ctx, member: discord.Member = None):
        """Rank card of a player (yourself by default)"""
        target = member or ctx.author
        player = await self.players.get_player_by_discord_id(str(target.id))

        if not player or not player.verified_at:
            await ctx.reply(f"🛑 {target.display_name} is not verified yet. Use `.verify Name#TAG`.")
            return

        rank = player.discord_rank or DEFAULT_RANK
        mmr = player.current_mmr or 0
        embed = discord.Embed(title=f"{target.display_name}", color=get_rank_color(rank))
        embed.add_field(name="Rank", value=f"**{rank}**", inline=True)
        embed.add_field(name="MMR", value=f"{mmr} (peak {player.peak_mmr or 0})", inline=True)

        # Distance to the next tier of the ladder
        tier = RANKS.tier(rank)
        if tier and RANKS.rank_ordinal(rank) < len(RANKS):
            embed.add_field(name="Next rank", value=f"{tier.max_mmr + 1 - mmr} MMR to go", inline=False)

        if player.riot_name:
            embed.set_footer(text=f"{player.riot_name}#{player.riot_tag} • {(player.riot_region or '').upper()}")
        await ctx.reply(embed=embed)


async def setup(bot: commands.Bot):
    await bot.add_cog(Ranking(bot))
