"""
Referral Loop Database Schema
Supports the provider directory, referrals with tracking tasks, encounters,
consent, routed events and broker sessions.
"""

TABLES = [
    "routed_events",
    "sharing_preferences",
    "encounters",
    "referral_tasks",
    "referrals",
    "practitioner_roles",
    "practitioners",
    "organizations",
    "broker_sessions",
]

SCHEMA = """
-- =============================================================================
-- 1. DIRECTORY - Organizations, practitioners and their roles
-- =============================================================================
CREATE TABLE IF NOT EXISTS organizations (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    npi TEXT,
    city TEXT,
    state TEXT
);

CREATE INDEX IF NOT EXISTS idx_organizations_npi ON organizations(npi);

CREATE TABLE IF NOT EXISTS practitioners (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    npi TEXT,
    credentials TEXT
);

CREATE TABLE IF NOT EXISTS practitioner_roles (
    id TEXT PRIMARY KEY,
    practitioner_ref TEXT NOT NULL,   -- "Practitioner/dr-johnson"
    organization_ref TEXT NOT NULL,   -- "Organization/org-valley"
    specialty_code TEXT,              -- NUCC taxonomy, e.g. 207RC0000X
    specialty_display TEXT
);

CREATE INDEX IF NOT EXISTS idx_roles_practitioner ON practitioner_roles(practitioner_ref);


-- =============================================================================
-- 2. REFERRALS - Immutable referral orders with target identifiers
-- =============================================================================
CREATE TABLE IF NOT EXISTS referrals (
    id TEXT PRIMARY KEY,
    patient_id TEXT NOT NULL,
    requester_ref TEXT NOT NULL,
    requester_display TEXT,
    code_text TEXT,
    reason_code TEXT,
    reason_display TEXT,
    authored_on TEXT,

    -- Validity window
    window_start TEXT,
    window_end TEXT,

    -- Target identifiers
    target_org_npi TEXT,
    target_org_name TEXT,
    target_practitioner_npi TEXT,
    target_specialty_code TEXT,
    target_specialty_display TEXT
);

CREATE INDEX IF NOT EXISTS idx_referrals_patient ON referrals(patient_id);


-- =============================================================================
-- 3. REFERRAL_TASKS - Mutable tracking record, one per referral
-- =============================================================================
-- Rows are updated in place, never replaced, so rowid keeps creation order.
CREATE TABLE IF NOT EXISTS referral_tasks (
    id TEXT PRIMARY KEY,
    referral_id TEXT NOT NULL UNIQUE,
    patient_id TEXT NOT NULL,
    requester_ref TEXT NOT NULL,
    owner_ref TEXT,
    owner_display TEXT,

    -- Status: requested, in-progress, completed, failed, cancelled
    status TEXT NOT NULL DEFAULT 'requested',
    business_status TEXT NOT NULL DEFAULT 'awaiting-scheduling',

    authored_on TEXT,
    last_modified TEXT,
    due_date TEXT,

    -- Fulfilling encounter references (JSON array: ["Encounter/enc-1"])
    output TEXT NOT NULL DEFAULT '[]',

    FOREIGN KEY (referral_id) REFERENCES referrals(id)
);

CREATE INDEX IF NOT EXISTS idx_tasks_patient ON referral_tasks(patient_id);
CREATE INDEX IF NOT EXISTS idx_tasks_status ON referral_tasks(status);


-- =============================================================================
-- 4. ENCOUNTERS - Upserted by encounter ID
-- =============================================================================
CREATE TABLE IF NOT EXISTS encounters (
    id TEXT PRIMARY KEY,
    patient_id TEXT NOT NULL,
    status TEXT NOT NULL,
    resource TEXT NOT NULL,  -- JSON snapshot
    received_at TEXT,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_encounters_patient ON encounters(patient_id);


-- =============================================================================
-- 5. SHARING_PREFERENCES - One per (patient, referring provider)
-- =============================================================================
CREATE TABLE IF NOT EXISTS sharing_preferences (
    patient_id TEXT NOT NULL,
    physician_ref TEXT NOT NULL,
    mode TEXT NOT NULL,  -- referrals-only, all-encounters
    granted_at TEXT NOT NULL,
    active INTEGER NOT NULL DEFAULT 1,
    PRIMARY KEY (patient_id, physician_ref)
);


-- =============================================================================
-- 6. ROUTED_EVENTS - Encounters surfaced to a physician, one per encounter
-- =============================================================================
CREATE TABLE IF NOT EXISTS routed_events (
    id TEXT PRIMARY KEY,
    encounter_id TEXT NOT NULL UNIQUE,
    patient_id TEXT NOT NULL,
    physician_ref TEXT NOT NULL,
    task_id TEXT,
    match_score REAL,
    routed_at TEXT NOT NULL,
    encounter TEXT NOT NULL  -- JSON snapshot
);

CREATE INDEX IF NOT EXISTS idx_routed_task ON routed_events(task_id);


-- =============================================================================
-- 7. BROKER_SESSIONS - External EHR patient ID to canonical patient ID
-- =============================================================================
CREATE TABLE IF NOT EXISTS broker_sessions (
    patient_id TEXT PRIMARY KEY,
    source_id TEXT,
    broker_id TEXT,
    access_token TEXT,
    subscription_id TEXT
);

CREATE INDEX IF NOT EXISTS idx_sessions_source ON broker_sessions(source_id);
"""
