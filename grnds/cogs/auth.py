import discord
import logging
import unicodedata
from discord.ext import commands

from grnds.services.errors import GrndsError
from grnds.services.verification import VerifyRequest, VALID_REGIONS

logger = logging.getLogger(__name__)


def remove_invisible(text: str):
    """Strips format characters (common when the Riot ID is pasted from a phone)."""
    if not text:
        return text
    return "".join(c for c in text if unicodedata.category(c) != "Cf")


def parse_verify_args(args: str):
    """'Name With Spaces#TAG region' -> (name, tag, region). Region defaults to 'na'."""
    parts = remove_invisible(args or "").strip().split()
    if not parts:
        return None

    region = "na"
    if len(parts) > 1 and parts[-1].lower() in VALID_REGIONS:
        region = parts[-1].lower()
        parts = parts[:-1]

    riot_id = " ".join(parts).strip()
    if "#" not in riot_id:
        return None

    name, tag = riot_id.rsplit("#", 1)
    return name.strip(), tag.strip(), region


class Auth(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.verification = bot.hub.verification

    @commands.command(name="verify", aliases=["registrar"])
    async def verify(self, ctx, *, args: str = None):
        """
        Usage: .verify Name#TAG [region]
        Ex: .verify TenZ#0505 na
        """
        parsed = parse_verify_args(args)
        if not parsed:
            embed = discord.Embed(title="❌ Invalid format", color=0xff0000)
            embed.description = (
                "Send your Riot ID with the tag and, optionally, your region.\n\n"
                "**Examples:**\n"
                "`.verify TenZ#0505`\n"
                "`.verify Eric ツ#2000 eu`\n\n"
                f"Regions: {', '.join(VALID_REGIONS)}"
            )
            await ctx.reply(embed=embed)
            return

        name, tag, region = parsed
        msg_wait = await ctx.reply("⏳ Looking up your Valorant rank...")

        request = VerifyRequest(
            user_id=str(ctx.author.id),
            username=ctx.author.name,
            riot_name=name,
            riot_tag=tag,
            region=region,
        )

        try:
            result = await self.verification.verify(request)
        except GrndsError as e:
            await msg_wait.edit(content=f"❌ {e.message}")
            return

        embed = discord.Embed(title="✅ Account verified!", color=0x00ff00)
        embed.description = result.message
        embed.set_footer(text=f"{name}#{tag} • {region.upper()}")
        await msg_wait.edit(content=None, embed=embed)


async def setup(bot: commands.Bot):
    await bot.add_cog(Auth(bot))
