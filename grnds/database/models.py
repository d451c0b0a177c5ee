from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint, Enum as SAEnum
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum
from grnds.database.config import Base


def utcnow():
    return datetime.now(timezone.utc)


# --- ENUMS ---
class Game(enum.Enum):
    VALORANT = "valorant"
    MARVEL_RIVALS = "marvel_rivals"

class MatchStatus(enum.Enum):
    PENDING = "pending"          # Created by queue processing, waiting for the host
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class HistoryReason(enum.Enum):
    VERIFICATION = "verification"
    MATCH = "match"
    ADJUSTMENT = "adjustment"

# --- TABLES ---

class Player(Base):
    """Discord identity + linked Riot account + internal rating"""
    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    discord_user_id = Column(String, unique=True, nullable=False, index=True)
    discord_username = Column(String, nullable=False)

    # Riot data
    riot_name = Column(String, nullable=True)
    riot_tag = Column(String, nullable=True)
    riot_region = Column(String, default="na")

    # Internal rank (the label on the Discord role)
    discord_rank = Column(String, default="Unranked")
    discord_rank_value = Column(Integer, default=0)
    current_mmr = Column(Integer, default=0)
    peak_mmr = Column(Integer, default=0)

    # Per-game rating
    valorant_rank = Column(String, nullable=True)
    valorant_mmr = Column(Integer, default=0)
    valorant_peak_mmr = Column(Integer, default=0)
    marvel_rivals_rank = Column(String, default="Unranked")
    marvel_rivals_mmr = Column(Integer, default=0)
    marvel_rivals_peak_mmr = Column(Integer, default=0)

    verified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    history = relationship("RankHistoryEntry", back_populates="player", cascade="all, delete-orphan")
    queue_entries = relationship("QueueEntry", back_populates="player", cascade="all, delete-orphan")

class RankHistoryEntry(Base):
    """Audit trail of every rank/MMR change (append-only)"""
    __tablename__ = "rank_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True)
    old_rank = Column(String, nullable=True)
    new_rank = Column(String, nullable=False)
    old_mmr = Column(Integer, nullable=False)
    new_mmr = Column(Integer, nullable=False)
    reason = Column(SAEnum(HistoryReason, values_callable=lambda e: [m.value for m in e]), default=HistoryReason.MATCH)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    player = relationship("Player", back_populates="history")

class QueueEntry(Base):
    """A player waiting for a 10-man custom"""
    __tablename__ = "queue"
    __table_args__ = (UniqueConstraint("player_id", "game", name="uq_queue_player_game"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    game = Column(String, nullable=False, default=Game.VALORANT.value)
    joined_at = Column(DateTime, default=utcnow, index=True)

    player = relationship("Player", back_populates="queue_entries")

class Match(Base):
    """A balanced custom match"""
    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(String, unique=True, nullable=False, index=True)
    match_type = Column(String, default="custom")
    map = Column(String, nullable=True)
    host_user_id = Column(String, nullable=True)
    host_selected_at = Column(DateTime, nullable=True)
    host_confirmed = Column(Boolean, default=False)

    # Lists of discord_user_id
    team_a = Column(JSON, nullable=False)
    team_b = Column(JSON, nullable=False)

    status = Column(SAEnum(MatchStatus, values_callable=lambda e: [m.value for m in e]), default=MatchStatus.PENDING)
    winner = Column(String, nullable=True) # 'A' or 'B'
    created_at = Column(DateTime, default=utcnow)
    completed_at = Column(DateTime, nullable=True)

    stats = relationship("MatchPlayerStats", back_populates="match", cascade="all, delete-orphan")

class MatchPlayerStats(Base):
    """Per-player line of a reported match"""
    __tablename__ = "match_player_stats"
    __table_args__ = (UniqueConstraint("match_id", "player_id", name="uq_stats_match_player"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True)
    team = Column(String, nullable=False) # 'A' or 'B'
    kills = Column(Integer, default=0)
    deaths = Column(Integer, default=0)
    assists = Column(Integer, default=0)
    mvp = Column(Boolean, default=False)
    points_earned = Column(Integer, default=0)
    mmr_before = Column(Integer, nullable=True)
    mmr_after = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    match = relationship("Match", back_populates="stats")
    player = relationship("Player")
