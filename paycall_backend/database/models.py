"""
Database Models
SQLAlchemy models for the PayCall marketplace
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Dict, Any, List
from sqlalchemy import String, Numeric, DateTime, Boolean, Text, JSON, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from paycall_backend.database.connection import Base

def _new_id() -> str:
    return str(uuid.uuid4())

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class Provider(Base):
    """Third parties listing externally hosted tools"""
    __tablename__ = "providers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    name: Mapped[str] = mapped_column(String(255))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    wallet_address: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    api_key: Mapped[str] = mapped_column(String(255), unique=True, index=True)

    # Earnings
    total_earned: Mapped[Decimal] = mapped_column(Numeric(20, 6), default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(50), default="approved")  # pending, approved, suspended

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    tools: Mapped[List["Tool"]] = relationship(back_populates="provider")

class Tool(Base):
    """Provider-submitted tools; built-ins live in the registry, not here"""
    __tablename__ = "data_apis"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    provider_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("providers.id"), index=True)

    # Tool details
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[Optional[str]] = mapped_column(String(100))

    # Pricing
    price_usd: Mapped[str] = mapped_column(String(32))
    revenue_share: Mapped[int] = mapped_column(Integer, default=80)

    # Upstream endpoint
    external_url: Mapped[Optional[str]] = mapped_column(String(1000))
    method: Mapped[str] = mapped_column(String(10), default="GET")
    endpoint: Mapped[Optional[str]] = mapped_column(String(500))
    headers: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    parameters: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    example_response: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    status: Mapped[str] = mapped_column(String(50), default="pending")  # pending, approved, rejected

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    provider: Mapped[Optional[Provider]] = relationship(back_populates="tools")

    __table_args__ = (
        Index("idx_data_apis_active_status", "is_active", "status"),
    )

class Agent(Base):
    """Automated callers identified by wallet address and API key"""
    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    wallet_address: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    api_key: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    email: Mapped[Optional[str]] = mapped_column(String(255))

    # Running totals
    total_spent: Mapped[Decimal] = mapped_column(Numeric(20, 6), default=Decimal("0"))
    request_count: Mapped[int] = mapped_column(Integer, default=0)
    last_active_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

class Payment(Base):
    """Verified on-chain transfers; tx_hash is the idempotency boundary"""
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    tx_hash: Mapped[str] = mapped_column(String(255), unique=True, index=True)

    # Agent ids are free-form so anonymous data callers can be recorded
    agent_id: Mapped[str] = mapped_column(String(255), index=True)
    tool_id: Mapped[str] = mapped_column(String(255), index=True)

    amount_usd: Mapped[Decimal] = mapped_column(Numeric(20, 6))
    amount_token: Mapped[Decimal] = mapped_column(Numeric(30, 6))
    network: Mapped[str] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(50), default="pending")  # pending, confirmed, failed

    payment_metadata: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, default=dict)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

class UsageLog(Base):
    """One row per attempted execution"""
    __tablename__ = "usage_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    tool_id: Mapped[str] = mapped_column(String(255), index=True)
    agent_id: Mapped[str] = mapped_column(String(255), index=True)
    payment_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("payments.id"))

    response_time_ms: Mapped[int] = mapped_column(Integer, default=0)
    status_code: Mapped[int] = mapped_column(Integer)
    success: Mapped[bool] = mapped_column(Boolean)
    error_type: Mapped[Optional[str]] = mapped_column(String(100))
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)

    __table_args__ = (
        Index("idx_usage_logs_tool_created", "tool_id", "created_at"),
    )
