from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from badcompany.database import Base


class Visitor(Base):
    """One row per browser/device seen by the site's visitor counter."""
    __tablename__ = "visitors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    visitor_id = Column(String(100), unique=True, nullable=False, index=True)
    user_agent = Column(String(512), nullable=True)
    first_visit = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    last_visit = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    visit_count = Column(Integer, default=1, nullable=False)
