"""SQLAlchemy database models for the campaign store."""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Campaign(Base):
    """Campaign that scopes encounters, combats, tables and the event log."""

    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    system = Column(String(50), default="5e")
    premise = Column(Text, nullable=True)
    tone = Column(String(200), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    encounters = relationship("Encounter", back_populates="campaign", cascade="all, delete-orphan")
    combats = relationship("Combat", back_populates="campaign", cascade="all, delete-orphan")
    random_tables = relationship("RandomTable", back_populates="campaign")
    events = relationship("EventLog", back_populates="campaign", cascade="all, delete-orphan")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "system": self.system,
            "premise": self.premise,
            "tone": self.tone,
        }


class Encounter(Base):
    """A prepared roster that a combat can be started from."""

    __tablename__ = "encounters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=False)
    name = Column(String(200), nullable=False)
    difficulty = Column(String(50), default="medium")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    campaign = relationship("Campaign", back_populates="encounters")
    combatants = relationship(
        "EncounterCombatant",
        back_populates="encounter",
        cascade="all, delete-orphan",
        order_by="EncounterCombatant.id",
    )


class EncounterCombatant(Base):
    """Roster entry of an encounter."""

    __tablename__ = "encounter_combatants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    encounter_id = Column(Integer, ForeignKey("encounters.id"), nullable=False)
    name = Column(String(100), nullable=False)
    side = Column(String(50), nullable=False)
    stats = Column(JSON, nullable=True)  # Free-form stat block

    encounter = relationship("Encounter", back_populates="combatants")


class CombatantInCombat(Base):
    """A combatant row of a running combat. Row id order is creation order."""

    __tablename__ = "combatants_in_combat"

    id = Column(Integer, primary_key=True, autoincrement=True)
    combat_id = Column(Integer, ForeignKey("combats.id"), nullable=False)
    name = Column(String(100), nullable=False)
    side = Column(String(50), nullable=False)
    max_hp = Column(Integer, default=0, nullable=False)
    current_hp = Column(Integer, default=0, nullable=False)
    temp_hp = Column(Integer, default=0, nullable=False)
    initiative = Column(Integer, default=0, nullable=False)
    conditions = Column(JSON, default=list)  # Ordered, duplicate-free
    notes = Column(Text, nullable=True)
    stats = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    combat = relationship("Combat", back_populates="combatants")


class Combat(Base):
    """A combat session: round, turn pointer and optimistic-lock version."""

    __tablename__ = "combats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=False)
    encounter_id = Column(Integer, ForeignKey("encounters.id"), nullable=True)
    round = Column(Integer, default=1, nullable=False)
    turn_index = Column(Integer, default=0, nullable=False)
    version = Column(Integer, default=1, nullable=False)
    status = Column(String(20), default="active", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    campaign = relationship("Campaign", back_populates="combats")
    combatants = relationship(
        "CombatantInCombat",
        back_populates="combat",
        cascade="all, delete-orphan",
        order_by=[CombatantInCombat.initiative.desc(), CombatantInCombat.id],
    )


class RandomTable(Base):
    """A dice-indexed random table."""

    __tablename__ = "random_tables"

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=True)
    name = Column(String(200), nullable=False)
    dice = Column(String(50), nullable=False)
    scope = Column(String(50), default="campaign")
    created_at = Column(DateTime, default=datetime.utcnow)

    campaign = relationship("Campaign", back_populates="random_tables")
    entries = relationship(
        "RandomTableEntry",
        back_populates="table",
        cascade="all, delete-orphan",
        order_by="RandomTableEntry.min",
    )


class RandomTableEntry(Base):
    """One inclusive range of a random table."""

    __tablename__ = "random_table_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    table_id = Column(Integer, ForeignKey("random_tables.id"), nullable=False)
    min = Column(Integer, nullable=False)
    max = Column(Integer, nullable=False)
    result = Column(JSON, nullable=True)

    table = relationship("RandomTable", back_populates="entries")


class EventLog(Base):
    """Audit entry: a human-readable summary plus a structured payload."""

    __tablename__ = "event_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=True)
    type = Column(String(50), nullable=False)
    summary = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    campaign = relationship("Campaign", back_populates="events")
