#!/usr/bin/env python3
"""
Migration: Enforce one open invitation and one application per (job, candidate).

This migration:
1. Adds source_type, sourced_by and sourced_at columns to applications
2. Expires duplicate open invitations, keeping the most recently sent one
3. Creates the partial unique index on open invitations
4. Creates the unique index on applications (skipped while duplicates remain)
5. Adds dispatched_at to the notification outbox

Run from the project root:
    python -m scripts.migrate_add_open_invitation_index
"""

import sqlite3
from pathlib import Path

OPEN_INVITATION_INDEX = "uq_job_invitations_open_pair"
APPLICATION_INDEX = "uq_applications_job_user"


def migrate(db_path: str = "data/talentpool.db"):
    """Run the migration."""
    db_path = Path(db_path)
    if not db_path.exists():
        print(f"Database not found at {db_path}")
        return

    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    try:
        # Step 1: Sourcing columns on applications
        cursor.execute("PRAGMA table_info(applications)")
        columns = {row[1] for row in cursor.fetchall()}

        for name, ddl in [
            ("source_type", "ALTER TABLE applications ADD COLUMN source_type VARCHAR(20) NOT NULL DEFAULT 'direct'"),
            ("sourced_by", "ALTER TABLE applications ADD COLUMN sourced_by VARCHAR"),
            ("sourced_at", "ALTER TABLE applications ADD COLUMN sourced_at DATETIME"),
        ]:
            if name not in columns:
                print(f"Adding {name} column...")
                cursor.execute(ddl)
                conn.commit()
                print("  Done.")
            else:
                print(f"{name} column already exists.")

        # Step 2: Resolve duplicate open invitations
        print("Looking for duplicate open invitations...")
        cursor.execute("""
            SELECT job_id, candidate_id, COUNT(*) as cnt
            FROM job_invitations
            WHERE status IN ('sent', 'viewed')
            GROUP BY job_id, candidate_id
            HAVING cnt > 1
        """)
        duplicate_pairs = cursor.fetchall()
        print(f"  Found {len(duplicate_pairs)} pairs with more than one open invitation.")

        total_expired = 0
        for job_id, candidate_id, count in duplicate_pairs:
            # Newest first; the first one stays open
            cursor.execute("""
                SELECT id FROM job_invitations
                WHERE job_id = ? AND candidate_id = ? AND status IN ('sent', 'viewed')
                ORDER BY sent_at DESC
            """, (job_id, candidate_id))
            invitation_ids = [row[0] for row in cursor.fetchall()]

            for invitation_id in invitation_ids[1:]:
                cursor.execute(
                    "UPDATE job_invitations SET status = 'expired' WHERE id = ?",
                    (invitation_id,)
                )
                total_expired += 1

        conn.commit()
        print(f"  Expired {total_expired} superseded invitations.")

        # Step 3: Partial unique index on open invitations
        print(f"Creating index {OPEN_INVITATION_INDEX}...")
        cursor.execute(f"""
            CREATE UNIQUE INDEX IF NOT EXISTS {OPEN_INVITATION_INDEX}
            ON job_invitations(job_id, candidate_id)
            WHERE status IN ('sent', 'viewed')
        """)
        conn.commit()
        print("  Done.")

        # Step 4: Unique index on applications
        cursor.execute("""
            SELECT COUNT(*) FROM (
                SELECT job_id, user_id FROM applications
                GROUP BY job_id, user_id
                HAVING COUNT(*) > 1
            )
        """)
        duplicate_applications = cursor.fetchone()[0]
        if duplicate_applications:
            print(
                f"Skipping {APPLICATION_INDEX}: {duplicate_applications} (job, candidate) pairs "
                f"have more than one application and need manual review."
            )
        else:
            print(f"Creating index {APPLICATION_INDEX}...")
            cursor.execute(f"""
                CREATE UNIQUE INDEX IF NOT EXISTS {APPLICATION_INDEX}
                ON applications(job_id, user_id)
            """)
            conn.commit()
            print("  Done.")

        # Step 5: Broker hand-off timestamp on the notification outbox
        cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='notification_outbox'")
        if cursor.fetchone():
            cursor.execute("PRAGMA table_info(notification_outbox)")
            if "dispatched_at" not in {row[1] for row in cursor.fetchall()}:
                print("Adding dispatched_at column to notification_outbox...")
                cursor.execute("ALTER TABLE notification_outbox ADD COLUMN dispatched_at DATETIME")
                conn.commit()
                print("  Done.")
            else:
                print("dispatched_at column already exists.")

        # Summary
        cursor.execute("SELECT COUNT(*) FROM job_invitations WHERE status IN ('sent', 'viewed')")
        open_count = cursor.fetchone()[0]
        cursor.execute("SELECT COUNT(*) FROM applications WHERE source_type = 'sourced'")
        sourced_count = cursor.fetchone()[0]

        print("\n=== Migration Complete ===")
        print(f"Open invitations: {open_count}")
        print(f"Sourced applications: {sourced_count}")

    except Exception as e:
        conn.rollback()
        print(f"Migration failed: {e}")
        raise
    finally:
        conn.close()


if __name__ == "__main__":
    migrate()
