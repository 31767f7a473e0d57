"""SQLAlchemy models for supported tokens, the transfer ledger and the blacklist."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class SupportedToken(Base):
    """ERC-20 token the desk accepts on a given network."""

    __tablename__ = "supported_tokens"
    __table_args__ = (
        Index("ix_supported_tokens_network_address", "network", "token_address", unique=True),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    network: Mapped[str] = mapped_column(String(32), nullable=False)
    token_address: Mapped[str] = mapped_column(String(42), nullable=False)  # lower-cased
    symbol: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    decimals: Mapped[int] = mapped_column(Integer, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "network": self.network,
            "tokenAddress": self.token_address,
            "symbol": self.symbol,
            "name": self.name,
            "decimals": self.decimals,
            "enabled": self.enabled,
        }


class Transaction(Base):
    """Recorded token transfer."""

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_from_address", "from_address"),
        Index("ix_transactions_to_address", "to_address"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    from_address: Mapped[str] = mapped_column(String(42), nullable=False)
    to_address: Mapped[str] = mapped_column(String(42), nullable=False)
    token_address: Mapped[str] = mapped_column(String(42), nullable=False)
    # Raw integer amount in token base units; kept as text to avoid precision loss
    amount: Mapped[str] = mapped_column(String(80), nullable=False)
    network: Mapped[str] = mapped_column(String(32), nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fromAddress": self.from_address,
            "toAddress": self.to_address,
            "tokenAddress": self.token_address,
            "amount": self.amount,
            "network": self.network,
            "txHash": self.tx_hash,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class AddressBlacklist(Base):
    """Address that transfers may not be sent to."""

    __tablename__ = "address_blacklist"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(String(42), unique=True, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
