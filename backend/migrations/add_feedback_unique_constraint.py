"""
Migration: Enforce one feedback per (grievance, user) pair.

Older databases accepted duplicate feedback when two submissions raced.
Duplicates are collapsed to the earliest row before the constraint is added.
Anonymous feedback (user_id NULL) is not affected.
"""
from sqlalchemy import create_engine, text
import os

# Use same DB URL pattern as main app
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/civiceye"
)

CONSTRAINT_NAME = "uq_feedback_grievance_user"


def run_migration():
    """Remove duplicate feedback rows and add the unique constraint."""
    engine = create_engine(DATABASE_URL)

    with engine.connect() as conn:
        result = conn.execute(text("""
            SELECT constraint_name
            FROM information_schema.table_constraints
            WHERE table_name = 'feedbacks' AND constraint_name = :name
        """), {"name": CONSTRAINT_NAME})

        if result.fetchone():
            print(f"{CONSTRAINT_NAME} already exists")
            return

        result = conn.execute(text("""
            DELETE FROM feedbacks f
            USING feedbacks earlier
            WHERE f.grievance_id = earlier.grievance_id
              AND f.user_id = earlier.user_id
              AND (f.created_at, f.id) > (earlier.created_at, earlier.id)
        """))
        print(f"Removed {result.rowcount} duplicate feedback row(s)")

        conn.execute(text(f"""
            ALTER TABLE feedbacks
            ADD CONSTRAINT {CONSTRAINT_NAME} UNIQUE (grievance_id, user_id)
        """))
        print(f"Added {CONSTRAINT_NAME} to feedbacks table")

        conn.commit()

if __name__ == "__main__":
    run_migration()
