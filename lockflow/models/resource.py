from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, Text

from lockflow.db.base import Base


class Resource(Base):
    __tablename__ = "resources"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    creator_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    file_type = Column(String, nullable=False, default="PDF")  # PDF | ZIP | IMAGE | DOC | LINK
    # Internal storage path (signed on unlock) or full external URL (used as-is)
    file_url = Column(String, nullable=False)
    preview_image = Column(String, nullable=True)
    unlock_method = Column(String, nullable=False)  # MANUAL_CODE | TASK_VERIFICATION | TIME_DELAY
    # Code, task URL or delay in seconds, depending on unlock_method
    unlock_requirement = Column(String, nullable=False)
    # Only changed by ResourceService.increment_unlock_count (atomic UPDATE)
    unlock_count = Column(Integer, nullable=False, default=0)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
