"""Database models for the phone catalogue."""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import BigInteger, Index, Integer, Numeric, Text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


class Phone(Base):
    """A catalogue phone. Rows are owned by the catalogue and only read here."""

    __tablename__ = "phones"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    brand: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    release_year: Mapped[Optional[int]] = mapped_column(Integer)
    os: Mapped[Optional[str]] = mapped_column(Text)
    ram: Mapped[Optional[str]] = mapped_column(Text)
    storage: Mapped[Optional[str]] = mapped_column(Text)
    display_type: Mapped[Optional[str]] = mapped_column(Text)
    display_size: Mapped[Optional[str]] = mapped_column(Text)
    resolution: Mapped[Optional[str]] = mapped_column(Text)
    refresh_rate: Mapped[Optional[int]] = mapped_column(Integer)
    camera_main: Mapped[Optional[str]] = mapped_column(Text)
    camera_front: Mapped[Optional[str]] = mapped_column(Text)
    camera_features: Mapped[Optional[List[str]]] = mapped_column(ARRAY(Text))
    battery: Mapped[Optional[str]] = mapped_column(Text)
    charging: Mapped[Optional[str]] = mapped_column(Text)
    processor: Mapped[Optional[str]] = mapped_column(Text)
    connectivity: Mapped[Optional[List[str]]] = mapped_column(ARRAY(Text))
    sensors: Mapped[Optional[List[str]]] = mapped_column(ARRAY(Text))
    features: Mapped[Optional[List[str]]] = mapped_column(ARRAY(Text))
    weight: Mapped[Optional[str]] = mapped_column(Text)
    dimensions: Mapped[Optional[str]] = mapped_column(Text)
    rating: Mapped[Optional[Decimal]] = mapped_column(Numeric(2, 1))
    stock_status: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[Optional[str]] = mapped_column(Text)
    colours: Mapped[Optional[List[str]]] = mapped_column(ARRAY(Text))

    __table_args__ = (
        Index("idx_phones_rating", "rating"),
        Index("idx_phones_brand", "brand"),
        Index("idx_phones_price", "price"),
    )
