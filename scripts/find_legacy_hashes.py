#!/usr/bin/env python3
"""
List zones still protected by a legacy unsalted SHA-256 PIN digest.

Those zones verify fine, but their owners should be asked to set a new PIN
so the digest is replaced by a bcrypt hash.
"""

import os
import sys

from sqlmodel import Session, select

# Add the project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from db.session import engine  # noqa: E402
from models.zone import Zone  # noqa: E402
from services.pin_credential import PinCredential  # noqa: E402


def find_legacy_zones():
    with Session(engine) as session:
        zones = session.exec(select(Zone).order_by(Zone.created_at)).all()
        return [z for z in zones if PinCredential.is_legacy(z.pin_hash)]


if __name__ == "__main__":
    legacy = find_legacy_zones()
    if not legacy:
        print("✅ No legacy PIN digests found.")
        sys.exit(0)

    print(f"⚠️ {len(legacy)} zone(s) still use a legacy SHA-256 PIN digest:")
    for zone in legacy:
        print(f"  {zone.id}  owner={zone.owner_id}  created={zone.created_at}")
