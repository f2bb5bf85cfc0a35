from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB

from lockflow.db.base import Base


class Creator(Base):
    __tablename__ = "creators"

    # Same id as the identity provider's user id
    id = Column(String, primary_key=True)
    username = Column(String, unique=True, nullable=False, index=True)
    brand_name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    bio = Column(Text, nullable=False, default="")
    profile_image = Column(String, nullable=True)
    banner_image = Column(String, nullable=True)
    socials = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict)  # instagram, youtube, twitter, tiktok
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
