"""
SQLAlchemy models for the record store.

The search core only reads the catalog tables (users, creators, brands,
projects, ip_assets, licenses); it writes search_analytics_events and
saved_searches. Every catalog table is soft-deleted via deleted_at.
"""
import enum
import uuid
from datetime import datetime
from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def new_id() -> str:
    return uuid.uuid4().hex


class UserRole(str, enum.Enum):
    """User roles - drive the visibility rules of the search core."""
    ADMIN = "ADMIN"
    CREATOR = "CREATOR"
    BRAND = "BRAND"
    VIEWER = "VIEWER"


class User(Base):
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=True)
    role = Column(
        Enum(UserRole, native_enum=False, length=20),
        nullable=False,
        default=UserRole.VIEWER,
    )
    avatar = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    creator = relationship("Creator", back_populates="user", uselist=False)
    brand = relationship("Brand", back_populates="user", uselist=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class Creator(Base):
    """
    Creator profile.

    performance_metrics holds totalCollaborations, totalRevenue,
    averageRating and recentActivityScore as reported by the metrics job.
    """
    __tablename__ = "creators"

    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), ForeignKey("users.id"), nullable=False, unique=True)
    stage_name = Column(String(255), nullable=False)
    bio = Column(Text, nullable=True)
    verification_status = Column(String(20), nullable=False, default="pending", index=True)
    portfolio_url = Column(String(500), nullable=True)
    availability_status = Column(String(20), nullable=True)  # available, limited, unavailable
    next_available = Column(String(50), nullable=True)
    performance_metrics = Column(JSON, nullable=True)
    verified_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="creator")
    specialties = relationship(
        "CreatorSpecialty", back_populates="creator", cascade="all, delete-orphan"
    )
    ownerships = relationship("IpOwnership", back_populates="creator")

    def __repr__(self) -> str:
        return f"<Creator(id={self.id}, stage_name={self.stage_name})>"


class CreatorSpecialty(Base):
    __tablename__ = "creator_specialties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    creator_id = Column(String(32), ForeignKey("creators.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)

    creator = relationship("Creator", back_populates="specialties")

    __table_args__ = (
        UniqueConstraint("creator_id", "name", name="uq_creator_specialty"),
    )


class Brand(Base):
    __tablename__ = "brands"

    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), ForeignKey("users.id"), nullable=False, unique=True)
    company_name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="brand")
    projects = relationship("Project", back_populates="brand")
    licenses = relationship("License", back_populates="brand")

    def __repr__(self) -> str:
        return f"<Brand(id={self.id}, company_name={self.company_name})>"


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(32), primary_key=True, default=new_id)
    brand_id = Column(String(32), ForeignKey("brands.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(30), nullable=False, default="DRAFT", index=True)
    project_type = Column(String(30), nullable=False, index=True)
    budget_cents = Column(BigInteger, nullable=False, default=0)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    brand = relationship("Brand", back_populates="projects")
    assets = relationship("IpAsset", back_populates="project")

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name={self.name}, status={self.status})>"


class IpAsset(Base):
    __tablename__ = "ip_assets"

    id = Column(String(32), primary_key=True, default=new_id)
    project_id = Column(String(32), ForeignKey("projects.id"), nullable=True, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    asset_type = Column(String(30), nullable=False, index=True)  # IMAGE, VIDEO, AUDIO, DOCUMENT, ...
    status = Column(String(30), nullable=False, default="DRAFT", index=True)
    storage_key = Column(String(500), nullable=False)
    file_size = Column(BigInteger, nullable=False, default=0)
    mime_type = Column(String(100), nullable=False)
    thumbnail_url = Column(String(500), nullable=True)
    created_by = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    project = relationship("Project", back_populates="assets")
    tags = relationship("AssetTag", back_populates="asset", cascade="all, delete-orphan")
    ownerships = relationship("IpOwnership", back_populates="asset")
    licenses = relationship("License", back_populates="ip_asset")

    def __repr__(self) -> str:
        return f"<IpAsset(id={self.id}, title={self.title}, status={self.status})>"


class AssetTag(Base):
    __tablename__ = "asset_tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(String(32), ForeignKey("ip_assets.id"), nullable=False, index=True)
    tag = Column(String(100), nullable=False, index=True)

    asset = relationship("IpAsset", back_populates="tags")

    __table_args__ = (
        UniqueConstraint("asset_id", "tag", name="uq_asset_tag"),
    )


class IpOwnership(Base):
    """Asset ownership share. end_date IS NULL means the ownership is active."""
    __tablename__ = "ip_ownerships"

    id = Column(String(32), primary_key=True, default=new_id)
    asset_id = Column(String(32), ForeignKey("ip_assets.id"), nullable=False, index=True)
    creator_id = Column(String(32), ForeignKey("creators.id"), nullable=False, index=True)
    share_bps = Column(Integer, nullable=False, default=10000)
    start_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    end_date = Column(DateTime, nullable=True)

    asset = relationship("IpAsset", back_populates="ownerships")
    creator = relationship("Creator", back_populates="ownerships")


class License(Base):
    __tablename__ = "licenses"

    id = Column(String(32), primary_key=True, default=new_id)
    ip_asset_id = Column(String(32), ForeignKey("ip_assets.id"), nullable=False, index=True)
    brand_id = Column(String(32), ForeignKey("brands.id"), nullable=False, index=True)
    license_type = Column(String(30), nullable=False, index=True)  # EXCLUSIVE, NON_EXCLUSIVE, ...
    status = Column(String(30), nullable=False, default="DRAFT", index=True)
    fee_cents = Column(BigInteger, nullable=False, default=0)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    ip_asset = relationship("IpAsset", back_populates="licenses")
    brand = relationship("Brand", back_populates="licenses")

    def __repr__(self) -> str:
        return f"<License(id={self.id}, type={self.license_type}, status={self.status})>"


class SearchAnalyticsEvent(Base):
    """
    One row per executed search.

    Click columns are filled in later when the user opens a result.
    """
    __tablename__ = "search_analytics_events"

    id = Column(String(32), primary_key=True, default=new_id)
    query = Column(String(500), nullable=False, index=True)
    entities = Column(JSON, nullable=False)
    filters = Column(JSON, nullable=True)
    results_count = Column(Integer, nullable=False, default=0)
    execution_time_ms = Column(Float, nullable=False, default=0.0)
    user_id = Column(String(32), nullable=True, index=True)
    session_id = Column(String(100), nullable=True)

    clicked_result_id = Column(String(32), nullable=True)
    clicked_result_position = Column(Integer, nullable=True)
    clicked_result_entity_type = Column(String(20), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index("idx_search_events_query_created", "query", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<SearchAnalyticsEvent(id={self.id}, query={self.query!r}, "
            f"results_count={self.results_count})>"
        )


class SavedSearch(Base):
    __tablename__ = "saved_searches"

    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    search_query = Column(String(500), nullable=False)
    entities = Column(JSON, nullable=False)
    filters = Column(JSON, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<SavedSearch(id={self.id}, name={self.name!r}, user_id={self.user_id})>"
