"""catalog baseline

Revision ID: 5d2a7c41e8b3
Revises:
Create Date: 2026-10-17 09:12:44.318204

Record-store tables searched by the service plus the search analytics and
saved search tables. New databases may also use create_all() (see
catalog_search/main.py lifespan) and then be stamped with:

    alembic stamp head
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5d2a7c41e8b3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(soft_delete: bool = True):
    columns = [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]
    if soft_delete:
        columns.append(sa.Column('deleted_at', sa.DateTime(), nullable=True))
    return columns


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('avatar', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'creators',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('user_id', sa.String(32), sa.ForeignKey('users.id'), nullable=False, unique=True),
        sa.Column('stage_name', sa.String(255), nullable=False),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('verification_status', sa.String(20), nullable=False),
        sa.Column('portfolio_url', sa.String(500), nullable=True),
        sa.Column('availability_status', sa.String(20), nullable=True),
        sa.Column('next_available', sa.String(50), nullable=True),
        sa.Column('performance_metrics', sa.JSON(), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_creators_verification_status', 'creators', ['verification_status'])

    op.create_table(
        'creator_specialties',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('creator_id', sa.String(32), sa.ForeignKey('creators.id'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.UniqueConstraint('creator_id', 'name', name='uq_creator_specialty'),
    )
    op.create_index('ix_creator_specialties_creator_id', 'creator_specialties', ['creator_id'])

    op.create_table(
        'brands',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('user_id', sa.String(32), sa.ForeignKey('users.id'), nullable=False, unique=True),
        sa.Column('company_name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'projects',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('brand_id', sa.String(32), sa.ForeignKey('brands.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('project_type', sa.String(30), nullable=False),
        sa.Column('budget_cents', sa.BigInteger(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_projects_brand_id', 'projects', ['brand_id'])
    op.create_index('ix_projects_status', 'projects', ['status'])
    op.create_index('ix_projects_project_type', 'projects', ['project_type'])

    op.create_table(
        'ip_assets',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('project_id', sa.String(32), sa.ForeignKey('projects.id'), nullable=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('asset_type', sa.String(30), nullable=False),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('storage_key', sa.String(500), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=False),
        sa.Column('mime_type', sa.String(100), nullable=False),
        sa.Column('thumbnail_url', sa.String(500), nullable=True),
        sa.Column('created_by', sa.String(32), sa.ForeignKey('users.id'), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_ip_assets_project_id', 'ip_assets', ['project_id'])
    op.create_index('ix_ip_assets_asset_type', 'ip_assets', ['asset_type'])
    op.create_index('ix_ip_assets_status', 'ip_assets', ['status'])
    op.create_index('ix_ip_assets_created_by', 'ip_assets', ['created_by'])

    op.create_table(
        'asset_tags',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('asset_id', sa.String(32), sa.ForeignKey('ip_assets.id'), nullable=False),
        sa.Column('tag', sa.String(100), nullable=False),
        sa.UniqueConstraint('asset_id', 'tag', name='uq_asset_tag'),
    )
    op.create_index('ix_asset_tags_asset_id', 'asset_tags', ['asset_id'])
    op.create_index('ix_asset_tags_tag', 'asset_tags', ['tag'])

    op.create_table(
        'ip_ownerships',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('asset_id', sa.String(32), sa.ForeignKey('ip_assets.id'), nullable=False),
        sa.Column('creator_id', sa.String(32), sa.ForeignKey('creators.id'), nullable=False),
        sa.Column('share_bps', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_ip_ownerships_asset_id', 'ip_ownerships', ['asset_id'])
    op.create_index('ix_ip_ownerships_creator_id', 'ip_ownerships', ['creator_id'])

    op.create_table(
        'licenses',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('ip_asset_id', sa.String(32), sa.ForeignKey('ip_assets.id'), nullable=False),
        sa.Column('brand_id', sa.String(32), sa.ForeignKey('brands.id'), nullable=False),
        sa.Column('license_type', sa.String(30), nullable=False),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('fee_cents', sa.BigInteger(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_licenses_ip_asset_id', 'licenses', ['ip_asset_id'])
    op.create_index('ix_licenses_brand_id', 'licenses', ['brand_id'])
    op.create_index('ix_licenses_license_type', 'licenses', ['license_type'])
    op.create_index('ix_licenses_status', 'licenses', ['status'])

    op.create_table(
        'search_analytics_events',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('query', sa.String(500), nullable=False),
        sa.Column('entities', sa.JSON(), nullable=False),
        sa.Column('filters', sa.JSON(), nullable=True),
        sa.Column('results_count', sa.Integer(), nullable=False),
        sa.Column('execution_time_ms', sa.Float(), nullable=False),
        sa.Column('user_id', sa.String(32), nullable=True),
        sa.Column('session_id', sa.String(100), nullable=True),
        sa.Column('clicked_result_id', sa.String(32), nullable=True),
        sa.Column('clicked_result_position', sa.Integer(), nullable=True),
        sa.Column('clicked_result_entity_type', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_search_analytics_events_query', 'search_analytics_events', ['query'])
    op.create_index('ix_search_analytics_events_user_id', 'search_analytics_events', ['user_id'])
    op.create_index('ix_search_analytics_events_created_at', 'search_analytics_events', ['created_at'])
    op.create_index('idx_search_events_query_created', 'search_analytics_events', ['query', 'created_at'])

    op.create_table(
        'saved_searches',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('user_id', sa.String(32), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('search_query', sa.String(500), nullable=False),
        sa.Column('entities', sa.JSON(), nullable=False),
        sa.Column('filters', sa.JSON(), nullable=True),
        *_timestamps(soft_delete=False),
    )
    op.create_index('ix_saved_searches_user_id', 'saved_searches', ['user_id'])


def downgrade() -> None:
    for table in (
        'saved_searches',
        'search_analytics_events',
        'licenses',
        'ip_ownerships',
        'asset_tags',
        'ip_assets',
        'projects',
        'brands',
        'creator_specialties',
        'creators',
        'users',
    ):
        op.drop_table(table)
