"""Routed event repository. One event per encounter ID; later routings replace it."""

import json
from dataclasses import dataclass

from .connection import transaction


@dataclass
class RoutedEvent:
    id: str
    encounter_id: str
    patient_id: str
    physician_ref: str
    routed_at: str
    encounter: dict
    task_id: str | None = None
    match_score: float | None = None


class RoutedEventRepository:

    def upsert(self, event: RoutedEvent) -> bool:
        """Insert or replace the event for its encounter. Returns True on replace."""
        with transaction() as cursor:
            cursor.execute("SELECT 1 FROM routed_events WHERE encounter_id = ?", (event.encounter_id,))
            replaced = cursor.fetchone() is not None
            cursor.execute(
                """INSERT INTO routed_events
                       (id, encounter_id, patient_id, physician_ref, task_id, match_score, routed_at, encounter)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(encounter_id) DO UPDATE SET
                       id = excluded.id, patient_id = excluded.patient_id,
                       physician_ref = excluded.physician_ref, task_id = excluded.task_id,
                       match_score = excluded.match_score, routed_at = excluded.routed_at,
                       encounter = excluded.encounter""",
                (
                    event.id, event.encounter_id, event.patient_id, event.physician_ref,
                    event.task_id, event.match_score, event.routed_at, json.dumps(event.encounter),
                ),
            )
        return replaced

    def delete_by_encounter(self, encounter_id: str) -> bool:
        """Remove the event for an encounter that is no longer routed."""
        with transaction() as cursor:
            cursor.execute("DELETE FROM routed_events WHERE encounter_id = ?", (encounter_id,))
            return cursor.rowcount > 0

    def get_by_encounter(self, encounter_id: str) -> RoutedEvent | None:
        with transaction() as cursor:
            cursor.execute("SELECT * FROM routed_events WHERE encounter_id = ?", (encounter_id,))
            row = cursor.fetchone()
        return self._row_to_event(row) if row else None

    def list_all(self) -> list[RoutedEvent]:
        with transaction() as cursor:
            cursor.execute("SELECT * FROM routed_events ORDER BY rowid")
            rows = cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    def list_for_task(self, task_id: str) -> list[RoutedEvent]:
        with transaction() as cursor:
            cursor.execute("SELECT * FROM routed_events WHERE task_id = ? ORDER BY rowid", (task_id,))
            rows = cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    def _row_to_event(self, row) -> RoutedEvent:
        return RoutedEvent(
            id=row["id"],
            encounter_id=row["encounter_id"],
            patient_id=row["patient_id"],
            physician_ref=row["physician_ref"],
            routed_at=row["routed_at"],
            encounter=json.loads(row["encounter"]),
            task_id=row["task_id"],
            match_score=row["match_score"],
        )
