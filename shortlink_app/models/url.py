from sqlalchemy import Column, Integer, String, DateTime
from shortlink_app.models.base import Base


class URL(Base):
    """
    Relational mirror of the `urls` document collection.

    Only used by SQLAlchemyStorage. The service layer never sees this class;
    the gateway projects rows into UrlRecord.
    """
    __tablename__ = "urls"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    # unique=True creates the index that backs the short code invariant
    short_code = Column(String(64), unique=True, nullable=False, index=True)
    long_url = Column(String, nullable=False)
    custom_alias = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    clicks = Column(Integer, nullable=False, default=0)
