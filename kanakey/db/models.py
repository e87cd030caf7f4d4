"""
SQLAlchemy models for the Kanakey dictionary database.

Two tables:
- entries: bootstrap dictionary, one row per (reading, word) with a cost
- learn: selection counters, one row per (reading, word) the user chose
"""

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Entry(Base):
    """A dictionary entry. Lower cost ranks higher."""

    __tablename__ = "entries"

    reading: Mapped[str] = mapped_column(String, primary_key=True)
    word: Mapped[str] = mapped_column(String, primary_key=True)
    cost: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_entries_reading", "reading"),
    )

    def __repr__(self) -> str:
        return f"<Entry({self.reading!r}, {self.word!r}, cost={self.cost})>"


class LearnRecord(Base):
    """How often a word was committed for a reading, and when last."""

    __tablename__ = "learn"

    reading: Mapped[str] = mapped_column(String, primary_key=True)
    word: Mapped[str] = mapped_column(String, primary_key=True)
    freq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_learn_reading", "reading"),
    )

    def __repr__(self) -> str:
        return f"<LearnRecord({self.reading!r}, {self.word!r}, freq={self.freq})>"
