import discord
import logging
from discord.ext import commands

from grnds.services.errors import GrndsError
from grnds.services.matchmaker import BalancingMode
from grnds.services.queue_processing import MATCH_SIZE, QueueStatus, game_mmr

logger = logging.getLogger(__name__)

GAME_ALIASES = {
    'val': 'valorant', 'valorant': 'valorant',
    'mr': 'marvel_rivals', 'marvel': 'marvel_rivals', 'marvel_rivals': 'marvel_rivals',
}


def clean_game(game_input: str):
    if not game_input:
        return 'valorant'
    return GAME_ALIASES.get(game_input.lower().strip(), game_input.lower().strip())


class Lobby(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.queue = bot.hub.queue
        self.queue_processing = bot.hub.queue_processing
        self.rank_calculation = bot.hub.rank_calculation

    def get_queue_embed(self, status: QueueStatus):
        title = f"🏆 {status.game.value.replace('_', ' ').title()} queue ({status.count}/{MATCH_SIZE})"
        if status.count == 0:
            desc = "The queue is empty."
        else:
            lines = [
                f"`{i+1}.` **{p.discord_username}** ({game_mmr(p, status.game)}) - {p.discord_rank}"
                for i, p in enumerate(status.players)
            ]
            desc = "\n".join(lines)

        embed = discord.Embed(title=title, description=desc, color=0x3498db)
        embed.set_footer(text="Use .join to enter • Requires .verify")
        return embed

    def get_match_embed(self, proposal):
        embed = discord.Embed(title=f"⚔️ MATCH {proposal.match_id}", color=0x2ecc71)
        mmr_by_id = {p['id']: p['mmr'] for p in proposal.players}

        def fmt(team):
            avg = sum(mmr_by_id.get(uid, 0) for uid in team) // len(team) if team else 0
            names = "\n".join([f"• <@{uid}> ({mmr_by_id.get(uid, 0)})" for uid in team])
            return f"{names}\n\n📊 **Average:** {avg}"

        embed.add_field(name="🔵 Team A", value=fmt(proposal.team_a), inline=True)
        embed.add_field(name="🔴 Team B", value=fmt(proposal.team_b), inline=True)
        embed.add_field(name="\u200b", value="\u200b", inline=False)
        embed.add_field(name="🗺️ Map", value=proposal.map, inline=True)
        embed.add_field(name="🎮 Host", value=f"<@{proposal.host_user_id}>", inline=True)
        embed.add_field(name="📢 Result", value=f"`.result {proposal.match_id} A/B`", inline=False)
        return embed

    async def start_match(self, channel, mode=BalancingMode.AUTO.value, game='valorant'):
        try:
            proposal = await self.queue_processing.process(balancing_mode=mode, game=game)
        except GrndsError as e:
            await channel.send(f"❌ {e.message}")
            return None

        mentions = " ".join(f"<@{uid}>" for uid in proposal.team_a + proposal.team_b)
        await channel.send(content=f"🔔 **Lobby ready!** {mentions}", embed=self.get_match_embed(proposal))
        return proposal

    # --- COMMANDS ---

    @commands.command(name="join", aliases=["entrar"])
    async def join(self, ctx, game: str = None):
        try:
            status = await self.queue.join(str(ctx.author.id), clean_game(game))
        except GrndsError as e:
            await ctx.reply(f"❌ {e.message}")
            return

        await ctx.reply(embed=self.get_queue_embed(status))

        if status.count == MATCH_SIZE:
            await self.start_match(ctx.channel, game=status.game.value)

    @commands.command(name="leave", aliases=["sair"])
    async def leave(self, ctx, game: str = None):
        try:
            status = await self.queue.leave(str(ctx.author.id), clean_game(game))
        except GrndsError as e:
            await ctx.reply(f"❌ {e.message}")
            return

        await ctx.reply(embed=self.get_queue_embed(status))

    @commands.command(name="queue", aliases=["fila"])
    async def show_queue(self, ctx, game: str = None):
        try:
            status = await self.queue.status(clean_game(game))
        except GrndsError as e:
            await ctx.reply(f"❌ {e.message}")
            return

        await ctx.reply(embed=self.get_queue_embed(status))

    @commands.command(name="start")
    @commands.has_permissions(administrator=True)
    async def force_start(self, ctx, mode: str = "auto", game: str = None):
        """Admin: builds the match from the current queue (.start captain val)"""
        await self.start_match(ctx.channel, mode=mode, game=clean_game(game))

    @commands.command(name="result", aliases=["resultado"])
    @commands.has_permissions(administrator=True)
    async def result(self, ctx, match_id: str = None, winner: str = None):
        """Admin: closes a match and applies the MMR changes (.result <id> A/B)"""
        if not match_id or not winner:
            await ctx.reply("❌ Usage: `.result <match_id> <A/B>`")
            return

        try:
            changes = await self.rank_calculation.report(match_id, winner)
        except GrndsError as e:
            await ctx.reply(f"❌ {e.message}")
            return

        embed = discord.Embed(title=f"✅ Match {match_id} finished", description=f"Winner: **Team {winner.upper()}**", color=0x2ecc71)
        lines = []
        for change in changes:
            arrow = f" → **{change.new_rank}**" if change.rank_changed else ""
            lines.append(f"<@{change.player_id}> {change.points_earned:+d} ({change.new_mmr}){arrow}")
        if lines:
            embed.add_field(name="MMR", value="\n".join(lines), inline=False)
        await ctx.reply(embed=embed)


async def setup(bot: commands.Bot):
    await bot.add_cog(Lobby(bot))
