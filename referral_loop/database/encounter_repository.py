"""Encounter repository. Encounters are upserted by encounter ID."""

import json
from datetime import datetime, timezone

from .connection import transaction


class EncounterRepository:
    """Stores encounter snapshots as FHIR JSON."""

    def upsert(self, encounter_id: str, patient_id: str, status: str, resource: dict) -> bool:
        """Insert or replace an encounter. Returns True if it already existed."""
        now = datetime.now(timezone.utc).isoformat()
        with transaction() as cursor:
            cursor.execute("SELECT 1 FROM encounters WHERE id = ?", (encounter_id,))
            is_update = cursor.fetchone() is not None
            if is_update:
                cursor.execute(
                    """UPDATE encounters
                       SET patient_id = ?, status = ?, resource = ?, updated_at = ?
                       WHERE id = ?""",
                    (patient_id, status, json.dumps(resource), now, encounter_id),
                )
            else:
                cursor.execute(
                    """INSERT INTO encounters (id, patient_id, status, resource, received_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (encounter_id, patient_id, status, json.dumps(resource), now, now),
                )
        return is_update

    def get(self, encounter_id: str) -> dict | None:
        with transaction() as cursor:
            cursor.execute("SELECT resource FROM encounters WHERE id = ?", (encounter_id,))
            row = cursor.fetchone()
        return json.loads(row["resource"]) if row else None

    def list_for_patient(self, patient_id: str) -> list[dict]:
        with transaction() as cursor:
            cursor.execute(
                "SELECT resource FROM encounters WHERE patient_id = ? ORDER BY rowid",
                (patient_id,),
            )
            rows = cursor.fetchall()
        return [json.loads(row["resource"]) for row in rows]

    def count(self) -> int:
        with transaction() as cursor:
            cursor.execute("SELECT COUNT(*) AS n FROM encounters")
            return cursor.fetchone()["n"]
