"""
Tests for the per-entity search adapters against a SQLite catalog.
"""
import pytest
from datetime import timedelta

from catalog_search.search.adapters import (
    AssetSearchAdapter,
    CreatorSearchAdapter,
    LicenseSearchAdapter,
    ProjectSearchAdapter,
    build_adapters,
)
from catalog_search.search.scoring import ScoringEngine
from catalog_search.search.types import (
    AssetMetadata,
    CreatorMetadata,
    EntityKind,
    LicenseMetadata,
    SearchFilters,
)
from catalog_search.search.visibility import RoleBasedVisibility, UNRESTRICTED


def run_search(adapter, session, query, filters=None, visibility=None, limit=100):
    return adapter.search(session, query, filters or SearchFilters(), visibility, limit, ScoringEngine())


class TestAssetAdapter:

    @pytest.mark.unit
    def test_matches_title_and_description(self, db_session, sample_catalog):
        results = run_search(AssetSearchAdapter(), db_session, "logo")

        ids = {r.id for r in results}
        assert ids == {sample_catalog.logo_pack.id, sample_catalog.guidelines.id}

    @pytest.mark.unit
    def test_soft_deleted_excluded(self, db_session, sample_catalog):
        results = run_search(AssetSearchAdapter(), db_session, "deleted")
        assert results == []

    @pytest.mark.unit
    def test_case_insensitive(self, db_session, sample_catalog):
        results = run_search(AssetSearchAdapter(), db_session, "OCEAN")
        assert [r.id for r in results] == [sample_catalog.soundtrack.id]

    @pytest.mark.unit
    def test_result_shape(self, db_session, sample_catalog):
        results = run_search(AssetSearchAdapter(), db_session, "logo design pack")

        assert len(results) == 1
        result = results[0]
        assert result.entity_type == EntityKind.ASSETS
        assert isinstance(result.metadata, AssetMetadata)
        assert result.metadata.tags == ("logo", "vector")
        assert result.score_breakdown.textual_relevance == 1.0
        assert 0.0 <= result.relevance_score <= 1.0
        assert result.highlights.title == "<mark>Logo Design Pack</mark>"

    @pytest.mark.unit
    def test_all_tags_required(self, db_session, sample_catalog):
        adapter = AssetSearchAdapter()

        both = run_search(adapter, db_session, "logo", SearchFilters(tags=("logo",)))
        vector = run_search(adapter, db_session, "logo", SearchFilters(tags=("logo", "vector")))

        assert len(both) == 2
        assert [r.id for r in vector] == [sample_catalog.logo_pack.id]

    @pytest.mark.unit
    def test_asset_type_filter_matches_any(self, db_session, sample_catalog):
        filters = SearchFilters(asset_type=("IMAGE", "AUDIO"))
        results = run_search(AssetSearchAdapter(), db_session, "o", filters)

        assert {r.metadata.asset_type for r in results} == {"IMAGE", "AUDIO"}

    @pytest.mark.unit
    def test_creator_filter(self, db_session, sample_catalog):
        filters = SearchFilters(creator_id=sample_catalog.forge.id)
        results = run_search(AssetSearchAdapter(), db_session, "o", filters)

        assert [r.id for r in results] == [sample_catalog.soundtrack.id]

    @pytest.mark.unit
    def test_date_filter(self, db_session, sample_catalog):
        filters = SearchFilters(date_from=sample_catalog.now - timedelta(days=7))
        results = run_search(AssetSearchAdapter(), db_session, "logo", filters)

        assert [r.id for r in results] == [sample_catalog.logo_pack.id]

    @pytest.mark.unit
    def test_limit_keeps_newest(self, db_session, sample_catalog):
        results = run_search(AssetSearchAdapter(), db_session, "logo", limit=1)
        assert [r.id for r in results] == [sample_catalog.logo_pack.id]

    @pytest.mark.unit
    def test_like_wildcards_escaped(self, db_session, sample_catalog):
        assert run_search(AssetSearchAdapter(), db_session, "%") == []


class TestOtherAdapters:

    @pytest.mark.unit
    def test_creator_matches_bio(self, db_session, sample_catalog):
        results = run_search(CreatorSearchAdapter(), db_session, "logo")

        assert [r.id for r in results] == [sample_catalog.aurora.id]
        metadata = results[0].metadata
        assert isinstance(metadata, CreatorMetadata)
        assert metadata.specialties == ("branding", "illustration")
        assert metadata.performance_metrics.average_rating == 4.0
        assert results[0].score_breakdown.quality_score == 1.0

    @pytest.mark.unit
    def test_creator_specialty_filter(self, db_session, sample_catalog):
        filters = SearchFilters(specialties=("animation",))
        results = run_search(CreatorSearchAdapter(), db_session, "i", filters)

        assert [r.id for r in results] == [sample_catalog.forge.id]

    @pytest.mark.unit
    def test_project_matches_name(self, db_session, sample_catalog):
        results = run_search(ProjectSearchAdapter(), db_session, "logo")

        assert [r.id for r in results] == [sample_catalog.campaign.id]
        assert results[0].metadata.brand_name == "Acme Beverages"

    @pytest.mark.unit
    def test_license_matches_asset_title(self, db_session, sample_catalog):
        results = run_search(LicenseSearchAdapter(), db_session, "logo")

        assert len(results) == 1
        result = results[0]
        assert result.title == "EXCLUSIVE License - Logo Design Pack"
        assert result.description == "License for Acme Beverages"
        assert isinstance(result.metadata, LicenseMetadata)

    @pytest.mark.unit
    def test_license_matches_brand_name(self, db_session, sample_catalog):
        results = run_search(LicenseSearchAdapter(), db_session, "acme")
        assert [r.id for r in results] == [sample_catalog.license.id]

    @pytest.mark.unit
    def test_registry_covers_every_kind(self):
        assert set(build_adapters()) == set(EntityKind)


class TestCountsAndSuggestions:

    @pytest.mark.unit
    def test_count(self, db_session, sample_catalog):
        assert AssetSearchAdapter().count(db_session, "logo") == 2
        assert AssetSearchAdapter().count(db_session, None) == 3

    @pytest.mark.unit
    def test_facet_counts(self, db_session, sample_catalog):
        adapter = AssetSearchAdapter()
        facet = adapter.facet_fields[0]

        counts = adapter.facet_counts(db_session, facet, None, SearchFilters())

        assert counts == {"IMAGE": 1, "DOCUMENT": 1, "AUDIO": 1}

    @pytest.mark.unit
    def test_asset_suggestions_match_title_only(self, db_session, sample_catalog):
        suggestions = AssetSearchAdapter().suggest(db_session, "logo", None, 10)

        assert [s.title for s in suggestions] == ["Logo Design Pack"]
        assert suggestions[0].type == "asset"

    @pytest.mark.unit
    def test_corpus_texts(self, db_session, sample_catalog):
        texts = list(AssetSearchAdapter().corpus_texts(db_session, 100))

        assert "Logo Design Pack" in texts
        assert "Logo usage rules and color palette" in texts
        assert "Deleted Logo" not in texts
        assert list(LicenseSearchAdapter().corpus_texts(db_session, 100)) == []


class TestVisibility:

    @pytest.mark.unit
    def test_anonymous_is_unrestricted(self, db_session, sample_catalog):
        assert RoleBasedVisibility().resolve(db_session, None) is UNRESTRICTED

    @pytest.mark.unit
    def test_admin_is_unrestricted(self, db_session, sample_catalog):
        scope = RoleBasedVisibility().resolve(db_session, sample_catalog.admin_user.id)
        assert scope.clause_for(EntityKind.ASSETS) is None

    @pytest.mark.unit
    def test_creator_sees_owned_assets_only(self, db_session, sample_catalog):
        scope = RoleBasedVisibility().resolve(db_session, sample_catalog.other_creator_user.id)
        adapter = AssetSearchAdapter()

        results = run_search(adapter, db_session, "o", visibility=scope.clause_for(EntityKind.ASSETS))

        assert [r.id for r in results] == [sample_catalog.soundtrack.id]
        assert scope.clause_for(EntityKind.CREATORS) is None

    @pytest.mark.unit
    def test_creator_licenses_limited_to_owned_assets(self, db_session, sample_catalog):
        owner = RoleBasedVisibility().resolve(db_session, sample_catalog.creator_user.id)
        stranger = RoleBasedVisibility().resolve(db_session, sample_catalog.other_creator_user.id)
        adapter = LicenseSearchAdapter()

        assert len(run_search(adapter, db_session, "logo", visibility=owner.clause_for(EntityKind.LICENSES))) == 1
        assert run_search(adapter, db_session, "logo", visibility=stranger.clause_for(EntityKind.LICENSES)) == []

    @pytest.mark.unit
    def test_brand_sees_project_and_licensed_assets(self, db_session, sample_catalog):
        scope = RoleBasedVisibility().resolve(db_session, sample_catalog.brand_user.id)

        assets = run_search(AssetSearchAdapter(), db_session, "o", visibility=scope.clause_for(EntityKind.ASSETS))
        projects = run_search(
            ProjectSearchAdapter(), db_session, "logo", visibility=scope.clause_for(EntityKind.PROJECTS)
        )

        assert [r.id for r in assets] == [sample_catalog.logo_pack.id]
        assert [r.id for r in projects] == [sample_catalog.campaign.id]
