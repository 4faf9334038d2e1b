"""Provider directory repository: organizations, practitioners and roles."""

from dataclasses import dataclass

from .connection import transaction


@dataclass
class Organization:
    id: str
    name: str
    npi: str | None = None
    city: str | None = None
    state: str | None = None


@dataclass
class Practitioner:
    id: str
    name: str
    npi: str | None = None
    credentials: str | None = None


@dataclass
class PractitionerRole:
    id: str
    practitioner_ref: str
    organization_ref: str
    specialty_code: str | None = None
    specialty_display: str | None = None


def _resource_id(reference: str, resource_type: str) -> str:
    prefix = f"{resource_type}/"
    return reference[len(prefix):] if reference.startswith(prefix) else reference


class DirectoryRepository:
    """Repository for organization, practitioner and role lookups."""

    def save_organization(self, org: Organization) -> Organization:
        with transaction() as cursor:
            cursor.execute(
                """INSERT INTO organizations (id, name, npi, city, state)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       name = excluded.name, npi = excluded.npi,
                       city = excluded.city, state = excluded.state""",
                (org.id, org.name, org.npi, org.city, org.state),
            )
        return org

    def save_practitioner(self, practitioner: Practitioner) -> Practitioner:
        with transaction() as cursor:
            cursor.execute(
                """INSERT INTO practitioners (id, name, npi, credentials)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       name = excluded.name, npi = excluded.npi, credentials = excluded.credentials""",
                (practitioner.id, practitioner.name, practitioner.npi, practitioner.credentials),
            )
        return practitioner

    def save_role(self, role: PractitionerRole) -> PractitionerRole:
        with transaction() as cursor:
            cursor.execute(
                """INSERT INTO practitioner_roles
                       (id, practitioner_ref, organization_ref, specialty_code, specialty_display)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       practitioner_ref = excluded.practitioner_ref,
                       organization_ref = excluded.organization_ref,
                       specialty_code = excluded.specialty_code,
                       specialty_display = excluded.specialty_display""",
                (
                    role.id, role.practitioner_ref, role.organization_ref,
                    role.specialty_code, role.specialty_display,
                ),
            )
        return role

    def get_organization(self, org_ref: str) -> Organization | None:
        """Get an organization by ID or by "Organization/<id>" reference."""
        with transaction() as cursor:
            cursor.execute(
                "SELECT * FROM organizations WHERE id = ?",
                (_resource_id(org_ref, "Organization"),),
            )
            row = cursor.fetchone()
        return self._row_to_organization(row) if row else None

    def get_practitioner(self, practitioner_ref: str) -> Practitioner | None:
        """Get a practitioner by ID or by "Practitioner/<id>" reference."""
        with transaction() as cursor:
            cursor.execute(
                "SELECT * FROM practitioners WHERE id = ?",
                (_resource_id(practitioner_ref, "Practitioner"),),
            )
            row = cursor.fetchone()
        return self._row_to_practitioner(row) if row else None

    def get_primary_role(self, practitioner_ref: str) -> PractitionerRole | None:
        """First role registered for a practitioner reference."""
        with transaction() as cursor:
            cursor.execute(
                "SELECT * FROM practitioner_roles WHERE practitioner_ref = ? ORDER BY rowid LIMIT 1",
                (practitioner_ref,),
            )
            row = cursor.fetchone()
        if not row:
            return None
        return PractitionerRole(
            id=row["id"],
            practitioner_ref=row["practitioner_ref"],
            organization_ref=row["organization_ref"],
            specialty_code=row["specialty_code"],
            specialty_display=row["specialty_display"],
        )

    def _row_to_organization(self, row) -> Organization:
        return Organization(
            id=row["id"],
            name=row["name"],
            npi=row["npi"],
            city=row["city"],
            state=row["state"],
        )

    def _row_to_practitioner(self, row) -> Practitioner:
        return Practitioner(
            id=row["id"],
            name=row["name"],
            npi=row["npi"],
            credentials=row["credentials"],
        )
