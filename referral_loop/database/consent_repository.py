"""Sharing preference repository, keyed by (patient, referring provider)."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from .connection import transaction


class ConsentMode(Enum):
    REFERRALS_ONLY = "referrals-only"
    ALL_ENCOUNTERS = "all-encounters"


@dataclass
class SharingPreference:
    patient_id: str
    physician_ref: str
    mode: ConsentMode
    granted_at: str
    active: bool = True


class ConsentRepository:
    """At most one preference per (patient, provider); setting overwrites."""

    def set_preference(
        self,
        patient_id: str,
        physician_ref: str,
        mode: ConsentMode | str = ConsentMode.REFERRALS_ONLY,
        active: bool = True,
    ) -> SharingPreference:
        pref = SharingPreference(
            patient_id=patient_id,
            physician_ref=physician_ref,
            mode=ConsentMode(mode),
            granted_at=datetime.now(timezone.utc).isoformat(),
            active=active,
        )
        with transaction() as cursor:
            cursor.execute(
                """INSERT INTO sharing_preferences (patient_id, physician_ref, mode, granted_at, active)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(patient_id, physician_ref) DO UPDATE SET
                       mode = excluded.mode, granted_at = excluded.granted_at, active = excluded.active""",
                (pref.patient_id, pref.physician_ref, pref.mode.value, pref.granted_at, int(pref.active)),
            )
        return pref

    def get_preference(self, patient_id: str, physician_ref: str) -> SharingPreference | None:
        with transaction() as cursor:
            cursor.execute(
                "SELECT * FROM sharing_preferences WHERE patient_id = ? AND physician_ref = ?",
                (patient_id, physician_ref),
            )
            row = cursor.fetchone()
        if not row:
            return None
        return SharingPreference(
            patient_id=row["patient_id"],
            physician_ref=row["physician_ref"],
            mode=ConsentMode(row["mode"]),
            granted_at=row["granted_at"],
            active=bool(row["active"]),
        )

    def revoke_preference(self, patient_id: str, physician_ref: str) -> bool:
        """Deactivate a preference. Returns False if none exists."""
        with transaction() as cursor:
            cursor.execute(
                "UPDATE sharing_preferences SET active = 0 WHERE patient_id = ? AND physician_ref = ?",
                (patient_id, physician_ref),
            )
            return cursor.rowcount > 0
