"""Add adsets, assets, ad_copies and ad_combinations tables

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'adsets',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('facebook_adset_id', sa.String(100), nullable=True),
        sa.Column('landing_page_url', sa.Text(), nullable=True),
        sa.Column('angle', sa.Text(), nullable=True),
        sa.Column('targeting', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'assets',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('adset_id', sa.Uuid(), sa.ForeignKey('adsets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('metadata_json', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_assets_adset_id', 'assets', ['adset_id'])

    op.create_table(
        'ad_copies',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('adset_id', sa.Uuid(), sa.ForeignKey('adsets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('variant_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('generated_by_ai', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_ad_copies_adset_type_variant', 'ad_copies', ['adset_id', 'type', 'variant_index'])

    op.create_table(
        'ad_combinations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('adset_id', sa.Uuid(), sa.ForeignKey('adsets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('asset_ids', sa.JSON(), nullable=False),
        sa.Column('headline_id', sa.Uuid(), sa.ForeignKey('ad_copies.id', ondelete='SET NULL'), nullable=True),
        sa.Column('body_id', sa.Uuid(), sa.ForeignKey('ad_copies.id', ondelete='SET NULL'), nullable=True),
        sa.Column('description_id', sa.Uuid(), sa.ForeignKey('ad_copies.id', ondelete='SET NULL'), nullable=True),
        sa.Column('cta_type', sa.String(50), nullable=False),
        sa.Column('url', sa.Text(), nullable=True),
        sa.Column('scores', sa.JSON(), nullable=False),
        sa.Column('overall_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('predicted_ctr', sa.Float(), nullable=False, server_default='0'),
        sa.Column('deployed_to_facebook', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('facebook_ad_id', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_ad_combinations_adset_position', 'ad_combinations', ['adset_id', 'position'])
    op.create_index('ix_ad_combinations_overall_score', 'ad_combinations', ['overall_score'])


def downgrade():
    op.drop_index('ix_ad_combinations_overall_score', table_name='ad_combinations')
    op.drop_index('ix_ad_combinations_adset_position', table_name='ad_combinations')
    op.drop_table('ad_combinations')
    op.drop_index('ix_ad_copies_adset_type_variant', table_name='ad_copies')
    op.drop_table('ad_copies')
    op.drop_index('ix_assets_adset_id', table_name='assets')
    op.drop_table('assets')
    op.drop_table('adsets')
