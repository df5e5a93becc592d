"""
Pytest configuration and shared fixtures.
"""
import pytest
from datetime import datetime, timedelta
from types import SimpleNamespace
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from catalog_search.core.config import reset_settings
from catalog_search.core.models import (
    AssetTag,
    Base,
    Brand,
    Creator,
    CreatorSpecialty,
    IpAsset,
    IpOwnership,
    License,
    Project,
    User,
    UserRole,
)
from catalog_search.search.analytics import SqlAnalyticsSink
from catalog_search.search.engine import SearchEngine
from catalog_search.search.visibility import UnrestrictedVisibility


@pytest.fixture(scope="function")
def clean_env(monkeypatch):
    """
    Clean environment for testing.

    Removes all service env vars to ensure clean state.
    """
    env_vars = [
        "DATABASE_URL",
        "LOG_LEVEL",
        "SEARCH_WEIGHT_TEXTUAL",
        "SEARCH_WEIGHT_RECENCY",
        "SEARCH_WEIGHT_POPULARITY",
        "SEARCH_WEIGHT_QUALITY",
        "SEARCH_RECENCY_HALF_LIFE_DAYS",
        "SEARCH_RECENCY_MAX_AGE_DAYS",
        "SEARCH_MIN_QUERY_LENGTH",
        "SEARCH_MAX_QUERY_LENGTH",
        "SEARCH_MAX_RESULTS_PER_ENTITY",
        "SEARCH_DEFAULT_PAGE_SIZE",
        "SEARCH_MAX_PAGE_SIZE",
        "SEARCH_ADAPTER_TIMEOUT_SECONDS",
        "SEARCH_ESTIMATE_TIMEOUT_SECONDS",
        "SPELLING_TRIGGER_MAX_RESULTS",
        "SPELLING_MIN_SIMILARITY",
        "SPELLING_IMPROVEMENT_FACTOR",
        "SPELLING_CORPUS_REFRESH_SECONDS",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)

    # Reset settings singleton
    reset_settings()

    yield

    # Reset again after test
    reset_settings()


@pytest.fixture(scope="function")
def database_url(tmp_path):
    """
    File-backed SQLite URL.

    Search runs each entity kind in its own session on a worker thread, so
    the database must be shared across connections (in-memory SQLite is not).
    """
    return f"sqlite:///{tmp_path / 'catalog.db'}"


@pytest.fixture(scope="function")
def session_factory(database_url):
    """Fresh database and session factory for each test."""
    engine = create_engine(database_url, connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    yield factory

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def test_db(session_factory):
    """Session on the test database."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def db_session(test_db):
    """
    Alias for test_db fixture.
    """
    yield test_db


# =============================================================================
# Catalog Fixtures
# =============================================================================


@pytest.fixture
def sample_catalog(test_db):
    """
    A small catalog.

    Records matching "logo": 2 assets (one by title, one by description),
    1 creator (bio), 1 project (name) and 1 license (asset title).
    A soft-deleted "logo" asset must never appear.
    """
    now = datetime.utcnow()

    creator_user = User(email="aurora@example.com", name="Aurora", role=UserRole.CREATOR)
    other_creator_user = User(email="forge@example.com", name="Forge", role=UserRole.CREATOR)
    brand_user = User(email="acme@example.com", name="Acme", role=UserRole.BRAND)
    admin_user = User(email="admin@example.com", name="Admin", role=UserRole.ADMIN)
    test_db.add_all([creator_user, other_creator_user, brand_user, admin_user])
    test_db.flush()

    aurora = Creator(
        user_id=creator_user.id,
        stage_name="Studio Aurora",
        bio="Logo design and brand identity",
        verification_status="approved",
        availability_status="available",
        performance_metrics={"totalCollaborations": 25, "totalRevenue": 50000, "averageRating": 4.0},
        verified_at=now - timedelta(days=100),
        created_at=now - timedelta(days=10),
        updated_at=now - timedelta(days=10),
    )
    forge = Creator(
        user_id=other_creator_user.id,
        stage_name="Pixel Forge",
        bio="3D animation and motion graphics",
        verification_status="pending",
        created_at=now - timedelta(days=20),
        updated_at=now - timedelta(days=20),
    )
    test_db.add_all([aurora, forge])
    test_db.flush()
    test_db.add_all([
        CreatorSpecialty(creator_id=aurora.id, name="branding"),
        CreatorSpecialty(creator_id=aurora.id, name="illustration"),
        CreatorSpecialty(creator_id=forge.id, name="animation"),
    ])

    acme = Brand(user_id=brand_user.id, company_name="Acme Beverages")
    test_db.add(acme)
    test_db.flush()

    campaign = Project(
        brand_id=acme.id,
        name="Summer Logo Campaign",
        description="Refresh of the summer packaging",
        status="ACTIVE",
        project_type="CAMPAIGN",
        budget_cents=500000,
        created_at=now - timedelta(days=5),
        updated_at=now - timedelta(days=5),
    )
    test_db.add(campaign)
    test_db.flush()

    logo_pack = IpAsset(
        project_id=campaign.id,
        title="Logo Design Pack",
        description="Vector files for print and web",
        asset_type="IMAGE",
        status="APPROVED",
        storage_key="assets/logo-pack.zip",
        file_size=2048,
        mime_type="application/zip",
        created_by=creator_user.id,
        created_at=now - timedelta(days=2),
        updated_at=now - timedelta(days=2),
    )
    guidelines = IpAsset(
        title="Brand Guidelines",
        description="Logo usage rules and color palette",
        asset_type="DOCUMENT",
        status="DRAFT",
        storage_key="assets/guidelines.pdf",
        file_size=1024,
        mime_type="application/pdf",
        created_by=creator_user.id,
        created_at=now - timedelta(days=40),
        updated_at=now - timedelta(days=40),
    )
    soundtrack = IpAsset(
        title="Ocean Soundtrack",
        description="Ambient music for video",
        asset_type="AUDIO",
        status="APPROVED",
        storage_key="assets/ocean.mp3",
        file_size=4096,
        mime_type="audio/mpeg",
        created_by=other_creator_user.id,
        created_at=now - timedelta(days=400),
        updated_at=now - timedelta(days=400),
    )
    deleted = IpAsset(
        title="Deleted Logo",
        description="Removed asset",
        asset_type="IMAGE",
        status="ARCHIVED",
        storage_key="assets/deleted.png",
        file_size=10,
        mime_type="image/png",
        created_by=creator_user.id,
        created_at=now - timedelta(days=1),
        updated_at=now - timedelta(days=1),
        deleted_at=now,
    )
    test_db.add_all([logo_pack, guidelines, soundtrack, deleted])
    test_db.flush()

    test_db.add_all([
        AssetTag(asset_id=logo_pack.id, tag="logo"),
        AssetTag(asset_id=logo_pack.id, tag="vector"),
        AssetTag(asset_id=guidelines.id, tag="logo"),
        IpOwnership(asset_id=logo_pack.id, creator_id=aurora.id),
        IpOwnership(asset_id=guidelines.id, creator_id=aurora.id),
        IpOwnership(asset_id=soundtrack.id, creator_id=forge.id),
    ])

    license = License(
        ip_asset_id=logo_pack.id,
        brand_id=acme.id,
        license_type="EXCLUSIVE",
        status="ACTIVE",
        fee_cents=100000,
        start_date=now - timedelta(days=1),
        end_date=now + timedelta(days=365),
        created_at=now - timedelta(days=1),
        updated_at=now - timedelta(days=1),
    )
    test_db.add(license)
    test_db.commit()

    return SimpleNamespace(
        now=now,
        creator_user=creator_user,
        other_creator_user=other_creator_user,
        brand_user=brand_user,
        admin_user=admin_user,
        aurora=aurora,
        forge=forge,
        acme=acme,
        campaign=campaign,
        logo_pack=logo_pack,
        guidelines=guidelines,
        soundtrack=soundtrack,
        deleted=deleted,
        license=license,
    )


@pytest.fixture
def search_engine(session_factory):
    """Search engine over the test database without visibility constraints."""
    return SearchEngine(
        session_factory=session_factory,
        visibility=UnrestrictedVisibility(),
        analytics=SqlAnalyticsSink(session_factory),
    )
