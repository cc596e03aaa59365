"""
Lead Store

Postgres access for leads, message logs, profiles and team members. Every
query is scoped to the owning user id.

The leads table stores derived fields (priority score, sentiment, task
state...) inside the notes column via the metadata codec; deployments that
also have dedicated columns for them are read as a fallback.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Type

from ..db import as_json, fetchall_dicts, fetchone_dict, get_conn
from ..models import (
    FollowUpStage,
    Integrations,
    Lead,
    LeadSource,
    LeadStatus,
    MessageLog,
    Profile,
    Sentiment,
    TeamMember,
)
from .integrations import load_integrations
from .lead_metadata import collect_metadata, decode_notes, encode_notes

# Optional dedicated columns, per metadata key
METADATA_COLUMNS = {
    "priorityScore": "priority_score",
    "nextFollowUpTask": "next_follow_up_task",
    "sentiment": "sentiment",
    "propertyAddress": "property_address",
    "campaignSource": "campaign_source",
    "taskDueDate": "task_due_date",
    "taskCompleted": "task_completed",
    "firstContactedAt": "first_contacted_at",
}

LEAD_COLUMNS = ("name", "email", "phone", "source", "status", "stage", "notes")


def iso_timestamp(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _enum_value(value: Any, enum_cls: Type[Enum], default: Enum) -> Enum:
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _score(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return max(0, min(100, int(value)))
    except (TypeError, ValueError):
        return None


def _flag(value: Any) -> bool:
    # Older rows stored flags as strings
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return value is True or value == 1


def row_to_lead(row: Dict[str, Any]) -> Lead:
    """Map a leads row to a Lead, preferring notes metadata over columns."""
    notes, meta, _ = decode_notes(row.get("notes"))

    def pick(key: str, default: Any = None) -> Any:
        value = meta.get(key)
        if value is None:
            value = row.get(METADATA_COLUMNS[key])
        return default if value is None else value

    created = iso_timestamp(row.get("created_at")) or datetime.now(timezone.utc).isoformat()

    return Lead(
        id=str(row["id"]),
        userId=row.get("user_id"),
        name=row.get("name") or "Unknown Buyer",
        email=row.get("email") or "",
        phone=row.get("phone") or "",
        source=_enum_value(row.get("source"), LeadSource, LeadSource.MANUAL),
        status=_enum_value(row.get("status"), LeadStatus, LeadStatus.NEW),
        stage=_enum_value(row.get("stage"), FollowUpStage, FollowUpStage.INQUIRY),
        notes=notes,
        createdAt=created,
        lastContacted=iso_timestamp(row.get("last_contacted")),
        firstContactedAt=iso_timestamp(pick("firstContactedAt")),
        priorityScore=_score(pick("priorityScore")),
        nextFollowUpTask=pick("nextFollowUpTask"),
        sentiment=_enum_value(pick("sentiment"), Sentiment, Sentiment.NEUTRAL),
        propertyAddress=pick("propertyAddress", ""),
        campaignSource=pick("campaignSource", ""),
        taskDueDate=iso_timestamp(pick("taskDueDate")),
        taskCompleted=_flag(pick("taskCompleted", False)),
        emailCheckInvalid=None if meta.get("isInvalidEmail") is None else _flag(meta["isInvalidEmail"]),
    )


def lead_to_payload(fields: Dict[str, Any], is_invalid_email: Optional[bool] = None) -> Dict[str, Any]:
    """
    Column values for an insert/update built from a lead's JSON-mode dump.

    Derived fields are folded into the notes column.
    """
    meta = collect_metadata(fields)
    if is_invalid_email is not None:
        meta["isInvalidEmail"] = is_invalid_email
    return {
        "name": fields.get("name"),
        "email": fields.get("email") or "",
        "phone": fields.get("phone") or None,
        "source": fields.get("source"),
        "status": fields.get("status"),
        "stage": fields.get("stage"),
        "notes": encode_notes(fields.get("notes") or "", meta),
    }


# ============================================================
# LEADS
# ============================================================

def list_leads(user_id: str) -> List[Lead]:
    """All of the user's leads, newest first."""
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT * FROM leads
                WHERE user_id = %s
                ORDER BY created_at DESC
                """,
                (user_id,),
            )
            rows = fetchall_dicts(cur)
    return [row_to_lead(row) for row in rows]


def get_lead(user_id: str, lead_id: str) -> Optional[Lead]:
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "SELECT * FROM leads WHERE id = %s AND user_id = %s",
                (lead_id, user_id),
            )
            row = fetchone_dict(cur)
    return row_to_lead(row) if row else None


def insert_lead(user_id: str, payload: Dict[str, Any]) -> Lead:
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO leads (user_id, name, email, phone, source, status, stage, notes, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, NOW())
                RETURNING *
                """,
                (user_id, *(payload[column] for column in LEAD_COLUMNS)),
            )
            row = fetchone_dict(cur)
    return row_to_lead(row)


def _carry_email_verdict(stored_notes: Optional[str], new_notes: str) -> str:
    """Keep the stored isInvalidEmail verdict when the new notes carry none."""
    notes, meta, _ = decode_notes(new_notes)
    if "isInvalidEmail" in meta:
        return new_notes
    _, stored_meta, _ = decode_notes(stored_notes)
    if "isInvalidEmail" not in stored_meta:
        return new_notes
    meta["isInvalidEmail"] = stored_meta["isInvalidEmail"]
    return encode_notes(notes, meta)


def update_lead(user_id: str, lead_id: str, payload: Dict[str, Any]) -> Optional[Lead]:
    assignments = ", ".join(f"{column} = %s" for column in LEAD_COLUMNS)
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "SELECT notes FROM leads WHERE id = %s AND user_id = %s",
                (lead_id, user_id),
            )
            existing = fetchone_dict(cur)
            if not existing:
                return None
            payload = {**payload, "notes": _carry_email_verdict(existing.get("notes"), payload["notes"])}
            cur.execute(
                f"""
                UPDATE leads SET {assignments}
                WHERE id = %s AND user_id = %s
                RETURNING *
                """,
                (*(payload[column] for column in LEAD_COLUMNS), lead_id, user_id),
            )
            row = fetchone_dict(cur)
    return row_to_lead(row) if row else None


def mark_contacted(user_id: str, lead_ids: Sequence[str], contacted_at: str) -> int:
    """
    Stamp last_contacted on the given leads, and firstContactedAt in the
    notes metadata of those that never had one. Returns rows updated.
    """
    if not lead_ids:
        return 0
    updated = 0
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "SELECT id, notes FROM leads WHERE user_id = %s AND id = ANY(%s)",
                (user_id, list(lead_ids)),
            )
            for row in fetchall_dicts(cur):
                notes, meta, _ = decode_notes(row.get("notes"))
                raw_notes = row.get("notes")
                if not meta.get("firstContactedAt"):
                    meta["firstContactedAt"] = contacted_at
                    raw_notes = encode_notes(notes, meta)
                cur.execute(
                    "UPDATE leads SET last_contacted = %s, notes = %s WHERE id = %s AND user_id = %s",
                    (contacted_at, raw_notes, row["id"], user_id),
                )
                updated += cur.rowcount
    return updated


# ============================================================
# MESSAGE LOGS
# ============================================================

def row_to_message_log(row: Dict[str, Any]) -> MessageLog:
    return MessageLog(
        id=str(row["id"]),
        leadId=str(row["lead_id"]) if row.get("lead_id") else None,
        leadName=row.get("lead_name") or "",
        channel=row["channel"],
        status=row["status"],
        content=row.get("content") or "",
        sentAt=iso_timestamp(row.get("sent_at")) or "",
        scheduledAt=iso_timestamp(row.get("scheduled_at")),
        userId=row.get("user_id"),
    )


def insert_message_logs(user_id: str, logs: Sequence[Dict[str, Any]]) -> List[MessageLog]:
    """Append one row per outreach attempt. Logs are never updated afterwards."""
    inserted = []
    with get_conn() as conn:
        with conn.transaction():
            with conn.cursor() as cur:
                for log in logs:
                    cur.execute(
                        """
                        INSERT INTO message_logs
                            (user_id, lead_id, lead_name, channel, status, content, sent_at, scheduled_at)
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                        RETURNING *
                        """,
                        (
                            user_id,
                            log["lead_id"],
                            log["lead_name"],
                            log["channel"],
                            log["status"],
                            log["content"],
                            log["sent_at"],
                            log.get("scheduled_at"),
                        ),
                    )
                    inserted.append(row_to_message_log(fetchone_dict(cur)))
    return inserted


def list_message_logs(
    user_id: str,
    channel: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[MessageLog]:
    clauses = ["user_id = %s"]
    params: List[Any] = [user_id]
    if channel:
        clauses.append("channel = %s")
        params.append(channel)
    if search:
        clauses.append("(lead_name ILIKE %s OR content ILIKE %s)")
        params.extend([f"%{search}%", f"%{search}%"])
    params.extend([limit, offset])

    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT * FROM message_logs
                WHERE {' AND '.join(clauses)}
                ORDER BY sent_at DESC
                LIMIT %s OFFSET %s
                """,
                tuple(params),
            )
            rows = fetchall_dicts(cur)
    return [row_to_message_log(row) for row in rows]


# ============================================================
# PROFILES AND TEAM
# ============================================================

def get_profile(user_id: str) -> Optional[Dict[str, Any]]:
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT * FROM profiles WHERE id = %s", (user_id,))
            return fetchone_dict(cur)


def create_profile(user_id: str, email: str, full_name: Optional[str] = None) -> Dict[str, Any]:
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO profiles (id, email, full_name, subscription_plan, created_at)
                VALUES (%s, %s, %s, 'Starter', NOW())
                ON CONFLICT (id) DO UPDATE SET email = EXCLUDED.email
                RETURNING *
                """,
                (user_id, email, full_name),
            )
            return fetchone_dict(cur)


PROFILE_COLUMNS = {
    "fullName": "full_name",
    "companyName": "company_name",
    "logoUrl": "logo_url",
    "subscriptionPlan": "subscription_plan",
}


def row_to_profile(row: Dict[str, Any]) -> Profile:
    return Profile(
        id=str(row["id"]),
        email=row.get("email") or "",
        fullName=row.get("full_name"),
        companyName=row.get("company_name"),
        logoUrl=row.get("logo_url"),
        subscriptionPlan=row.get("subscription_plan") or "Starter",
        integrations=load_integrations(row.get("integrations")),
    )


def update_profile(user_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Update the given camelCase profile fields; unknown keys are ignored."""
    columns = [(PROFILE_COLUMNS[key], value) for key, value in updates.items() if key in PROFILE_COLUMNS]
    if not columns:
        return get_profile(user_id)
    assignments = ", ".join(f"{column} = %s" for column, _ in columns)
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                f"UPDATE profiles SET {assignments} WHERE id = %s RETURNING *",
                (*(value for _, value in columns), user_id),
            )
            return fetchone_dict(cur)


def get_integrations(user_id: str) -> Integrations:
    """The user's integration settings; all disabled when there is no profile."""
    profile = get_profile(user_id)
    return load_integrations(profile.get("integrations") if profile else None)


def save_integrations(user_id: str, integrations: Dict[str, Any]) -> None:
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "UPDATE profiles SET integrations = %s WHERE id = %s",
                (as_json(integrations), user_id),
            )


def row_to_team_member(row: Dict[str, Any]) -> TeamMember:
    return TeamMember(
        id=str(row["id"]),
        email=row.get("email") or "",
        name=row.get("name") or "",
        role=row.get("role") or "Agent",
        status=row.get("status") or "Pending",
        joinedAt=iso_timestamp(row.get("created_at")) or "",
    )


def list_team_members(owner_id: str) -> List[Dict[str, Any]]:
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "SELECT * FROM team_members WHERE owner_id = %s ORDER BY created_at",
                (owner_id,),
            )
            return fetchall_dicts(cur)


def insert_team_member(owner_id: str, email: str, name: str, role: str) -> Dict[str, Any]:
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO team_members (owner_id, email, name, role, status, created_at)
                VALUES (%s, %s, %s, %s, 'Pending', NOW())
                RETURNING *
                """,
                (owner_id, email, name, role),
            )
            return fetchone_dict(cur)


def delete_team_member(owner_id: str, member_id: str) -> bool:
    with get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "DELETE FROM team_members WHERE id = %s AND owner_id = %s",
                (member_id, owner_id),
            )
            return cur.rowcount > 0

