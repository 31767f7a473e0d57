"""Repository for supported tokens, transactions and the address blacklist."""

from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from tokendesk.ledger.models import AddressBlacklist, SupportedToken, Transaction


def normalize_address(address: str) -> str:
    return address.lower()


@dataclass
class TokenInput:
    """Token metadata accepted when registering a supported token."""

    token_address: str
    symbol: str
    name: str
    decimals: int
    enabled: bool = True


class LedgerRepository:
    """Repository for all desk-related database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # Transaction operations
    async def get_transactions(
        self,
        from_address: Optional[str] = None,
        to_address: Optional[str] = None,
        network: Optional[str] = None,
        token_address: Optional[str] = None,
        order: str = "desc",
    ) -> list[Transaction]:
        """List ledger entries matching every given filter."""
        stmt = select(Transaction)
        if from_address:
            stmt = stmt.where(Transaction.from_address == normalize_address(from_address))
        if to_address:
            stmt = stmt.where(Transaction.to_address == normalize_address(to_address))
        if network:
            stmt = stmt.where(Transaction.network == network)
        if token_address:
            stmt = stmt.where(Transaction.token_address == normalize_address(token_address))

        if order == "asc":
            stmt = stmt.order_by(Transaction.created_at.asc(), Transaction.id.asc())
        else:
            stmt = stmt.order_by(Transaction.created_at.desc(), Transaction.id.desc())

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # Blacklist operations
    async def blacklist_address(self, address: str, reason: Optional[str] = None) -> AddressBlacklist:
        """Add an address to the blacklist, updating the reason if already listed."""
        addr = normalize_address(address)
        stmt = select(AddressBlacklist).where(AddressBlacklist.address == addr)
        result = await self.session.execute(stmt)
        entry = result.scalar_one_or_none()

        if entry is None:
            entry = AddressBlacklist(address=addr, reason=reason)
            self.session.add(entry)
        else:
            entry.reason = reason
        await self.session.flush()
        return entry

    async def remove_from_blacklist(self, address: str) -> int:
        stmt = delete(AddressBlacklist).where(
            AddressBlacklist.address == normalize_address(address)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    # Supported token operations
    async def get_supported_token(self, network: str, token_address: str) -> Optional[SupportedToken]:
        stmt = select(SupportedToken).where(
            SupportedToken.network == network,
            SupportedToken.token_address == normalize_address(token_address),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_supported_tokens(self, network: str) -> list[SupportedToken]:
        """Enabled tokens for a network, ordered by symbol then name."""
        stmt = (
            select(SupportedToken)
            .where(SupportedToken.network == network, SupportedToken.enabled.is_(True))
            .order_by(SupportedToken.symbol, SupportedToken.name)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add_supported_tokens(self, network: str, tokens: Iterable[TokenInput]) -> tuple[int, int]:
        """Register tokens for a network.

        Tokens already registered are skipped, not updated.

        Returns:
            (created, skipped)
        """
        created = 0
        skipped = 0
        for token in tokens:
            if await self.get_supported_token(network, token.token_address) is not None:
                skipped += 1
                continue
            self.session.add(
                SupportedToken(
                    network=network,
                    token_address=normalize_address(token.token_address),
                    symbol=token.symbol,
                    name=token.name,
                    decimals=token.decimals,
                    enabled=token.enabled,
                )
            )
            await self.session.flush()
            created += 1
        return created, skipped

    async def remove_supported_token(self, network: str, token_address: str) -> int:
        stmt = delete(SupportedToken).where(
            SupportedToken.network == network,
            SupportedToken.token_address == normalize_address(token_address),
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
