"""Add sellers and product categories.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create sellers and categories, and link products to a category."""
    op.create_table(
        "sellers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(256), nullable=False, unique=True),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(256), nullable=False),
        sa.Column("mobile_number", sa.String(15), nullable=True),
        sa.Column(
            "registration_date",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("last_login_date", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
    )

    # batch mode so the foreign key also applies on SQLite
    with op.batch_alter_table("products") as batch:
        batch.add_column(sa.Column("category_id", sa.Integer, nullable=True))
        batch.create_foreign_key(
            "fk_products_category_id",
            "categories",
            ["category_id"],
            ["id"],
            ondelete="SET NULL",
        )
        batch.create_index("ix_products_category_id", ["category_id"])


def downgrade() -> None:
    """Drop sellers and categories."""
    with op.batch_alter_table("products") as batch:
        batch.drop_index("ix_products_category_id")
        batch.drop_constraint("fk_products_category_id", type_="foreignkey")
        batch.drop_column("category_id")

    op.drop_table("categories")
    op.drop_table("sellers")
