from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, DateTime, Uuid, func
from skatebounty.db import Base

class Profile(Base):
    __tablename__ = "profiles"
    # Same id as the identity provider's user id (one-to-one, created lazily)
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    handle: Mapped[str | None] = mapped_column(String(20), index=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
