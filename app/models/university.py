import uuid

from sqlalchemy import JSON, Column, DateTime, String, Text, Uuid, func

from app.db.base import Base


class University(Base):
    __tablename__ = "universities"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, index=True)
    country = Column(String(128), nullable=False, index=True)
    city = Column(String(128), nullable=False)
    address = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    coordinates = Column(String(128), nullable=False)

    website = Column(String(2048), nullable=True)
    contact_email = Column(String(320), nullable=True)
    contact_phone = Column(String(32), nullable=True)

    # AssetRef dicts: {"url", "asset_id", "kind"}; images kept in display order
    logo = Column(JSON, nullable=True)
    images = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
