"""
Lead Data Cleaning

Deterministic data-quality heuristics for leads: name standardization,
fake/placeholder email detection, duplicate detection and the aging
classifier. Everything here is pure and works on the in-memory lead list;
results are recomputed on every read and never stored as ground truth.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..models import AgingStatus, DataHealth, Lead

FAKE_EMAIL_PREFIXES = (
    "test@",
    "asdf@",
    "example@",
    "qwerty@",
    "none@",
    "noemail@",
    "user@",
)

EMAIL_SYNTAX = re.compile(r"\S+@\S+\.\S+")
REPEATED_CHAR = re.compile(r"(\w)\1+", re.ASCII)
NON_DIGIT = re.compile(r"\D")

CRITICAL_AFTER = timedelta(hours=24)


# ============================================================
# NAMES AND EMAILS
# ============================================================

def standardize_name(name: str) -> str:
    """
    Title-case each space-delimited token ("SARAH johnson" -> "Sarah Johnson").

    The first letter goes through title() rather than upper() so that letters
    with a multi-character capital ("\u00df" -> "Ss") stay stable on a second pass.
    """
    if not name:
        return ""
    words = name.lower().split(" ")
    return " ".join(word[:1].title() + word[1:] for word in words).strip()


def is_valid_email_syntax(email: str) -> bool:
    return bool(EMAIL_SYNTAX.fullmatch((email or "").lower()))


def is_fake_email(email: str) -> bool:
    """Heuristic check for malformed, placeholder and keyboard-mash addresses."""
    e = (email or "").lower()

    if not EMAIL_SYNTAX.fullmatch(e):
        return True

    if e.startswith(FAKE_EMAIL_PREFIXES):
        return True

    # aaaa@..., xxxxx@...
    local_part = e.split("@")[0]
    if len(local_part) > 3 and REPEATED_CHAR.fullmatch(local_part):
        return True

    return False


def normalize_phone(phone: Optional[str]) -> str:
    return NON_DIGIT.sub("", phone or "")


def normalize_email(email: Optional[str]) -> str:
    return (email or "").lower()


# ============================================================
# DUPLICATES AND HEALTH
# ============================================================

def find_duplicates(lead: Lead, all_leads: Iterable[Lead]) -> List[str]:
    """Ids of other leads sharing this lead's digits-only phone or lower-cased email."""
    phone = normalize_phone(lead.phone)
    email = normalize_email(lead.email)
    matches = []
    for other in all_leads:
        if other.id == lead.id:
            continue
        if phone and normalize_phone(other.phone) == phone:
            matches.append(other.id)
        elif email and normalize_email(other.email) == email:
            matches.append(other.id)
    return matches


def analyze_lead_health(lead: Lead, all_leads: Sequence[Lead]) -> DataHealth:
    duplicate_ids = find_duplicates(lead, all_leads)
    return DataHealth(
        isDuplicate=bool(duplicate_ids),
        duplicateIds=duplicate_ids,
        isInvalidEmail=is_fake_email(lead.email),
        needsStandardization=lead.name != standardize_name(lead.name),
    )


def _duplicate_index(leads: Sequence[Lead]) -> Tuple[Dict[str, List[int]], Dict[str, List[int]]]:
    by_phone: Dict[str, List[int]] = {}
    by_email: Dict[str, List[int]] = {}
    for position, lead in enumerate(leads):
        phone = normalize_phone(lead.phone)
        if phone:
            by_phone.setdefault(phone, []).append(position)
        email = normalize_email(lead.email)
        if email:
            by_email.setdefault(email, []).append(position)
    return by_phone, by_email


def annotate_leads(leads: Sequence[Lead], now: Optional[datetime] = None) -> List[Lead]:
    """
    Return copies of the leads with agingStatus and health filled in.

    Same result as calling analyze_lead_health once per lead, but duplicates
    are looked up through an index keyed by normalized phone and email.
    """
    now = now or datetime.now(timezone.utc)
    by_phone, by_email = _duplicate_index(leads)

    annotated = []
    for position, lead in enumerate(leads):
        positions = set(by_phone.get(normalize_phone(lead.phone), [])) if lead.phone else set()
        if lead.email:
            positions.update(by_email.get(normalize_email(lead.email), []))
        duplicate_ids = [
            leads[p].id for p in sorted(positions)
            if p != position and leads[p].id != lead.id
        ]

        health = DataHealth(
            isDuplicate=bool(duplicate_ids),
            duplicateIds=duplicate_ids,
            isInvalidEmail=is_fake_email(lead.email),
            needsStandardization=lead.name != standardize_name(lead.name),
        )
        annotated.append(lead.model_copy(update={
            "agingStatus": calculate_aging(lead, now),
            "health": health,
        }))
    return annotated


# ============================================================
# AGING
# ============================================================

def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO timestamp (or datetime) into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def calculate_aging(lead: Lead, now: Optional[datetime] = None) -> AgingStatus:
    """
    critical: never contacted and older than 24h.
    warning: open task past its due date.
    healthy: everything else. First match wins.
    """
    now = now or datetime.now(timezone.utc)
    created = parse_timestamp(lead.createdAt) or now
    last_contact = parse_timestamp(lead.lastContacted)
    task_due = parse_timestamp(lead.taskDueDate)

    if last_contact is None and now - created > CRITICAL_AFTER:
        return AgingStatus.CRITICAL
    if task_due is not None and not lead.taskCompleted and now > task_due:
        return AgingStatus.WARNING
    return AgingStatus.HEALTHY
