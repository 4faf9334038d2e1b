"""Broker session repository used for patient identity cross-referencing."""

from dataclasses import dataclass

from .connection import transaction


@dataclass
class BrokerSession:
    patient_id: str
    source_id: str | None = None
    broker_id: str | None = None
    access_token: str | None = None
    subscription_id: str | None = None


class SessionRepository:

    def save(self, session: BrokerSession) -> BrokerSession:
        with transaction() as cursor:
            cursor.execute(
                """INSERT INTO broker_sessions (patient_id, source_id, broker_id, access_token, subscription_id)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(patient_id) DO UPDATE SET
                       source_id = excluded.source_id, broker_id = excluded.broker_id,
                       access_token = excluded.access_token, subscription_id = excluded.subscription_id""",
                (
                    session.patient_id, session.source_id, session.broker_id,
                    session.access_token, session.subscription_id,
                ),
            )
        return session

    def get(self, patient_id: str) -> BrokerSession | None:
        with transaction() as cursor:
            cursor.execute("SELECT * FROM broker_sessions WHERE patient_id = ?", (patient_id,))
            row = cursor.fetchone()
        if not row:
            return None
        return BrokerSession(
            patient_id=row["patient_id"],
            source_id=row["source_id"],
            broker_id=row["broker_id"],
            access_token=row["access_token"],
            subscription_id=row["subscription_id"],
        )

    def resolve_patient_id(self, ehr_patient_id: str) -> str:
        """Map an upstream EHR patient ID to our canonical ID, or return it unchanged."""
        with transaction() as cursor:
            cursor.execute(
                "SELECT patient_id FROM broker_sessions WHERE source_id = ? ORDER BY rowid LIMIT 1",
                (ehr_patient_id,),
            )
            row = cursor.fetchone()
        return row["patient_id"] if row else ehr_patient_id
