from sqlalchemy import String, Integer, Float, ForeignKey, DateTime, Date, Text
from sqlalchemy.orm import relationship, Mapped, mapped_column
from datetime import datetime, date
from .db import Base

STATUS_PENDING = "PENDING"
STATUS_APPROVED = "APPROVED"
STATUS_REJECTED = "REJECTED"

class Contract(Base):
    __tablename__ = "contracts"
    id: Mapped[str] = mapped_column(String, primary_key=True)
    title: Mapped[str] = mapped_column(String)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price_cents: Mapped[int] = mapped_column(Integer, index=True)
    unit: Mapped[str | None] = mapped_column(String, nullable=True)
    quantity: Mapped[float | None] = mapped_column(Float, nullable=True)
    category: Mapped[str] = mapped_column(String, index=True)
    region: Mapped[str] = mapped_column(String, index=True)
    vendor_name: Mapped[str | None] = mapped_column(String, nullable=True)
    taken_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    uploader_email: Mapped[str] = mapped_column(String, index=True)
    filename: Mapped[str | None] = mapped_column(String, nullable=True)  # as uploaded; never used on disk

    file_key: Mapped[str] = mapped_column(Text)
    thumb_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    mime_type: Mapped[str] = mapped_column(String)
    sha256: Mapped[str] = mapped_column(String)

    status: Mapped[str] = mapped_column(String, default=STATUS_PENDING, index=True)  # PENDING|APPROVED|REJECTED
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tags: Mapped[list["ContractTag"]] = relationship("ContractTag", back_populates="contract", cascade="all, delete-orphan")
    redactions: Mapped[list["RedactionRecord"]] = relationship("RedactionRecord", back_populates="contract", cascade="all, delete-orphan")

class ContractTag(Base):
    __tablename__ = "contract_tags"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_id: Mapped[str] = mapped_column(String, ForeignKey("contracts.id", ondelete="CASCADE"))
    tag: Mapped[str] = mapped_column(String)

    contract: Mapped["Contract"] = relationship("Contract", back_populates="tags")

class RedactionRecord(Base):
    __tablename__ = "redactions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_id: Mapped[str] = mapped_column(String, ForeignKey("contracts.id", ondelete="CASCADE"))
    # source-image pixel coordinates
    x: Mapped[float] = mapped_column(Float)
    y: Mapped[float] = mapped_column(Float)
    width: Mapped[float] = mapped_column(Float)
    height: Mapped[float] = mapped_column(Float)

    contract: Mapped["Contract"] = relationship("Contract", back_populates="redactions")

class Audit(Base):
    __tablename__ = "audit"
    id: Mapped[str] = mapped_column(String, primary_key=True)
    actor: Mapped[str] = mapped_column(String)
    action: Mapped[str] = mapped_column(String)  # SUBMIT|APPROVE|REJECT
    contract_id: Mapped[str] = mapped_column(String)
    detail: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
