#!/usr/bin/env python
"""Seed development database with a user and starter prompt presets.

Constraints:
- Refuses to run in staging or prod (LUMA_ENV check)
- Idempotent: the user is looked up by email, presets upsert by template_key
- Never runs automatically (manual invocation only)

Usage:
    cd python && DATABASE_URL=... python ../scripts/seed_dev.py
"""

import os
import sys

DEV_USER_NAME = "Dev User"
DEV_USER_EMAIL = "dev@luma.local"

STARTER_PRESETS = [
    ("formal", "Formal", "Rewrite the text in a formal, professional register."),
    ("casual", "Casual", "Rewrite the text so it sounds relaxed and friendly."),
    ("concise", "Concise", "Rewrite the text as briefly as possible without losing meaning."),
]


def main():
    # 1. Environment check (hard fail in staging/prod)
    luma_env = os.getenv("LUMA_ENV", "local")
    if luma_env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in LUMA_ENV={luma_env}")
        sys.exit(1)

    # 2. Check DATABASE_URL
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    from sqlalchemy import select

    from luma.db import User, create_schema, session_scope
    from luma.services.prompts import create_preset, ensure_default_system_prompt
    from luma.services.users import create_user

    create_schema()

    with session_scope() as db:
        # 3. Idempotent seeding
        ensure_default_system_prompt(db)

        user_id = db.scalar(select(User.id).where(User.email == DEV_USER_EMAIL))
        user_created = user_id is None
        if user_created:
            user_id = create_user(db, DEV_USER_NAME, DEV_USER_EMAIL).id

        preset_results = [
            (key, create_preset(db, user_id, name, text, template_key=key)[1])
            for key, name, text in STARTER_PRESETS
        ]

    # 4. Report
    db_display = database_url.split("@")[1] if "@" in database_url else database_url
    print(f"Database: {db_display}")
    print(f"LUMA_ENV: {luma_env}")
    print()
    print(f"{'✓ Created' if user_created else '• Exists'}: user {user_id} ({DEV_USER_EMAIL})")
    for key, created in preset_results:
        print(f"{'✓ Created' if created else '• Updated'}: preset {key}")
    print()
    print("Note: No API keys are seeded. Store one with PUT /api-keys/{provider}.")


if __name__ == "__main__":
    main()
