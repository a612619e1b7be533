from __future__ import annotations
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Numeric, DateTime, ForeignKey, UniqueConstraint, Uuid, func
from skatebounty.db import Base

class Bounty(Base):
    __tablename__ = "bounties"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    trick: Mapped[str] = mapped_column(String(120), nullable=False)

    # Reward is a tagged union: kind NULL (none) | 'numeric' (amount + currency) | 'text'
    reward_kind: Mapped[str | None] = mapped_column(String(16), nullable=True)
    reward_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    reward_currency: Mapped[str | None] = mapped_column(String(8), nullable=True)
    reward_text: Mapped[str | None] = mapped_column(String(120), nullable=True)
    reward_type: Mapped[str | None] = mapped_column(String(32), nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="open")  # open|closed
    spot_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("spots.id", ondelete="SET NULL"), index=True, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True, nullable=False)

class Acceptance(Base):
    __tablename__ = "bounty_acceptances"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    bounty_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("bounties.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("bounty_id", "user_id", name="uq_acceptance_once_per_user"),
    )
