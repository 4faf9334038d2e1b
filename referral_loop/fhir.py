"""Pydantic models and parsers for the FHIR resources consumed at the boundary."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from referral_loop.database.referral_repository import Referral, TargetIdentifiers

NPI_SYSTEM = "http://hl7.org/fhir/sid/us-npi"
TARGET_IDENTIFIERS_URL = "http://example.org/fhir/StructureDefinition/referral-target-identifiers"
TRACKING_STATUS_SYSTEM = "http://example.org/fhir/CodeSystem/referral-tracking-status"

# "onleave" is the FHIR R4 code; "on-leave" is accepted as sent and stored unchanged
EncounterStatus = Literal[
    "planned", "arrived", "triaged", "in-progress", "onleave", "on-leave", "finished", "cancelled"
]


def strip_prefix(reference: str | None, resource_type: str) -> str:
    """'Patient/p-1' -> 'p-1'. References without the prefix are returned as-is."""
    if not reference:
        return ""
    prefix = f"{resource_type}/"
    return reference[len(prefix):] if reference.startswith(prefix) else reference


class FhirModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Identifier(FhirModel):
    system: str | None = None
    value: str | None = None


class Reference(FhirModel):
    reference: str | None = None
    display: str | None = None
    identifier: Identifier | None = None


class Coding(FhirModel):
    system: str | None = None
    code: str | None = None
    display: str | None = None


class Period(FhirModel):
    start: str | None = None
    end: str | None = None


class Participant(FhirModel):
    individual: Reference | None = None


class Encounter(FhirModel):
    """A clinical encounter as delivered by the upstream EHR."""

    resource_type: Literal["Encounter"] = Field("Encounter", alias="resourceType")
    id: str
    status: EncounterStatus
    class_: Coding | None = Field(None, alias="class")
    subject: Reference
    participant: list[Participant] = Field(default_factory=list)
    period: Period | None = None
    service_provider: Reference | None = Field(None, alias="serviceProvider")

    @field_validator("participant", mode="before")
    @classmethod
    def default_participants(cls, v):
        return v or []

    @property
    def patient_id(self) -> str:
        return strip_prefix(self.subject.reference, "Patient")

    @property
    def period_start(self) -> str | None:
        return self.period.start if self.period else None

    def first_practitioner(self) -> Reference | None:
        if not self.participant:
            return None
        return self.participant[0].individual

    def with_patient(self, patient_id: str) -> "Encounter":
        """Copy of this encounter with its subject rewritten to a canonical patient."""
        return self.model_copy(update={"subject": Reference(reference=f"Patient/{patient_id}")})

    def to_fhir(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def _sub_extension(extensions: list, url: str) -> dict | None:
    for ext in extensions:
        if isinstance(ext, dict) and ext.get("url") == url:
            return ext
    return None


def parse_target_identifiers(extensions: Any) -> TargetIdentifiers:
    """
    Read the referral-target-identifiers extension from a ServiceRequest.

    Missing or malformed parts yield None fields; this never raises.
    """
    if not isinstance(extensions, list):
        return TargetIdentifiers()
    target = _sub_extension(extensions, TARGET_IDENTIFIERS_URL)
    nested = target.get("extension") if target else None
    if not isinstance(nested, list):
        return TargetIdentifiers()

    def value_string(url: str) -> str | None:
        ext = _sub_extension(nested, url)
        value = ext.get("valueString") if ext else None
        return value if isinstance(value, str) and value else None

    specialty = _sub_extension(nested, "specialty")
    coding = specialty.get("valueCoding") if specialty else None
    specialty_code = coding.get("code") if isinstance(coding, dict) else None

    return TargetIdentifiers(
        organization_npi=value_string("organizationNpi"),
        organization_name=value_string("organizationName"),
        practitioner_npi=value_string("practitionerNpi"),
        specialty_code=specialty_code if isinstance(specialty_code, str) and specialty_code else None,
        specialty_display=coding.get("display") if isinstance(coding, dict) else None,
    )


def target_identifiers_extension(targets: TargetIdentifiers) -> dict | None:
    """Inverse of parse_target_identifiers, for serializing a referral back to FHIR."""
    nested = []
    if targets.organization_npi:
        nested.append({"url": "organizationNpi", "valueString": targets.organization_npi})
    if targets.organization_name:
        nested.append({"url": "organizationName", "valueString": targets.organization_name})
    if targets.practitioner_npi:
        nested.append({"url": "practitionerNpi", "valueString": targets.practitioner_npi})
    if targets.specialty_code:
        nested.append({
            "url": "specialty",
            "valueCoding": {
                "system": "http://nucc.org/provider-taxonomy",
                "code": targets.specialty_code,
                "display": targets.specialty_display,
            },
        })
    if not nested:
        return None
    return {"url": TARGET_IDENTIFIERS_URL, "extension": nested}


def referral_from_service_request(resource: dict) -> Referral:
    """Build a Referral from a FHIR ServiceRequest dict."""
    period = resource.get("occurrencePeriod") or {}
    requester = resource.get("requester") or {}
    code = resource.get("code") or {}
    reason = (resource.get("reasonCode") or [{}])[0]
    reason_coding = (reason.get("coding") or [{}])[0]
    return Referral(
        id=resource["id"],
        patient_id=strip_prefix((resource.get("subject") or {}).get("reference"), "Patient"),
        requester_ref=requester.get("reference") or "",
        requester_display=requester.get("display"),
        code_text=code.get("text"),
        reason_code=reason_coding.get("code"),
        reason_display=reason_coding.get("display"),
        authored_on=resource.get("authoredOn"),
        window_start=period.get("start"),
        window_end=period.get("end"),
        targets=parse_target_identifiers(resource.get("extension")),
    )


def referral_to_service_request(referral: Referral) -> dict:
    """Serialize a Referral as a FHIR ServiceRequest dict."""
    resource: dict[str, Any] = {
        "resourceType": "ServiceRequest",
        "id": referral.id,
        "status": "active",
        "intent": "order",
        "subject": {"reference": f"Patient/{referral.patient_id}"},
        "requester": {"reference": referral.requester_ref, "display": referral.requester_display},
        "occurrencePeriod": {"start": referral.window_start, "end": referral.window_end},
    }
    if referral.code_text:
        resource["code"] = {"text": referral.code_text}
    if referral.reason_code:
        resource["reasonCode"] = [{"coding": [{
            "system": "http://snomed.info/sct",
            "code": referral.reason_code,
            "display": referral.reason_display,
        }]}]
    if referral.authored_on:
        resource["authoredOn"] = referral.authored_on
    extension = target_identifiers_extension(referral.targets)
    if extension:
        resource["extension"] = [extension]
    return resource
