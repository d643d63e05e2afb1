from alembic import op
import sqlalchemy as sa

revision = "0002_ledger_markers"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade():
    op.add_column("users", sa.Column("ledger_seq", sa.Integer(), nullable=False, server_default="0"))
    op.add_column("users", sa.Column("ledger_inflight", sa.Integer(), nullable=False, server_default="0"))
    op.add_column("users", sa.Column("ledger_touched_at", sa.DateTime(), nullable=True))


def downgrade():
    op.drop_column("users", "ledger_touched_at")
    op.drop_column("users", "ledger_inflight")
    op.drop_column("users", "ledger_seq")
