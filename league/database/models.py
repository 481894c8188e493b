from datetime import datetime
from typing import Optional
from sqlalchemy import Integer, String, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .session import Base
from league.utils import utc_now, to_db_datetime


def db_now() -> datetime:
    """Current time in the naive UTC form the columns store."""
    return to_db_datetime(utc_now())


class Player(Base):
    __tablename__ = "players"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=db_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=db_now, onupdate=db_now)

    matches_as_player_one: Mapped[list["Match"]] = relationship(
        back_populates="player_one", foreign_keys="Match.player_one_id"
    )
    matches_as_player_two: Mapped[list["Match"]] = relationship(
        back_populates="player_two", foreign_keys="Match.player_two_id"
    )


class Season(Base):
    """One calendar month of play."""
    __tablename__ = "seasons"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64))
    start_date: Mapped[datetime] = mapped_column(DateTime, index=True)
    end_date: Mapped[datetime] = mapped_column(DateTime)
    champion_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("players.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=db_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=db_now, onupdate=db_now)

    champion: Mapped[Optional["Player"]] = relationship(foreign_keys=[champion_id])
    matches: Mapped[list["Match"]] = relationship(back_populates="season")


class Match(Base):
    __tablename__ = "matches"
    __table_args__ = (
        CheckConstraint("player_one_id != player_two_id", name="ck_match_distinct_players"),
        CheckConstraint("player_one_points >= 0 AND player_two_points >= 0", name="ck_match_points"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_one_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"), index=True)
    player_two_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"), index=True)
    player_one_points: Mapped[int] = mapped_column(Integer)
    player_two_points: Mapped[int] = mapped_column(Integer)
    winner_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"))
    played_at: Mapped[datetime] = mapped_column(DateTime, default=db_now, index=True)
    season_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("seasons.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=db_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=db_now, onupdate=db_now)

    player_one: Mapped["Player"] = relationship(
        back_populates="matches_as_player_one", foreign_keys=[player_one_id]
    )
    player_two: Mapped["Player"] = relationship(
        back_populates="matches_as_player_two", foreign_keys=[player_two_id]
    )
    season: Mapped[Optional["Season"]] = relationship(back_populates="matches")
