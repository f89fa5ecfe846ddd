"""
CSV export of referral rows for spreadsheet tools.

Every field is quoted, the document starts with a UTF-8 BOM so Excel picks
the right encoding, and rows are joined with "\\n".
"""

import csv
import io
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional
from zoneinfo import ZoneInfo

from app.platform.config import settings

BOM = "\ufeff"

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193
SECOND_SEED = 0x9747B28C
CODE_WIDTH = 15

EXPORT_HEADERS = [
    "Fecha registro",
    "Estado",
    "Código",
    "Referidor",
    "Correo referidor",
    "¿Tiene Verisure?",
    "Referido",
    "Teléfono referido",
    "Correo referido",
    "Campaña",
    "Landing",
    "Notas",
]

STATUS_LABELS = {
    "registered": "Registrado",
    "contacted": "Contactado",
    "quoted": "Cotización",
    "contracted": "Contratado",
    "invalid": "No válido",
}

NAME_SEPARATORS = re.compile(r"[._-]+")


def fnv1a32(value: str, seed: int = FNV_OFFSET_BASIS) -> int:
    h = seed & 0xFFFFFFFF
    for char in value:
        h ^= ord(char)
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return h


def code_from_id(referral_id: Optional[str]) -> str:
    """
    15-digit display code derived from a referral id.

    Not unique and not secret: it only gives operators something shorter
    than a UUID to read over the phone.
    """
    value = (referral_id or "").strip()
    if not value:
        return "0" * CODE_WIDTH

    h1 = fnv1a32(value, FNV_OFFSET_BASIS)
    h2 = fnv1a32(value, SECOND_SEED)
    return str(h1 * 1_000_000 + h2 % 1_000_000).zfill(CODE_WIDTH)


def format_datetime(value: Any, tz_name: Optional[str] = None) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    local = value.astimezone(ZoneInfo(tz_name or settings.EXPORT_TIMEZONE))
    return local.strftime("%d/%m/%Y, %H:%M")


def format_yes_no(value: Optional[bool]) -> str:
    if not isinstance(value, bool):
        return "—"
    return "Sí" if value else "No"


def display_name(full_name: Optional[str], email: Optional[str]) -> str:
    """Profile name, else a readable name guessed from the email's local part."""
    name = (full_name or "").strip()
    if name:
        return name

    email = (email or "").strip()
    if not email:
        return "—"

    local = email.split("@")[0]
    if not local:
        return email

    cleaned = " ".join(NAME_SEPARATORS.sub(" ", local).split())
    if not cleaned:
        return email
    return " ".join(word[0].upper() + word[1:] for word in cleaned.split(" "))


def export_row(row: Mapping[str, Any]) -> list:
    profile = row.get("referrer_profile") or {}
    status = row.get("status") or ""
    return [
        format_datetime(row.get("created_at")),
        STATUS_LABELS.get(status, status),
        code_from_id(row.get("id")),
        display_name(profile.get("full_name"), row.get("referrer_email")),
        row.get("referrer_email") or "",
        format_yes_no(profile.get("has_verisure")),
        row.get("referred_name") or "",
        row.get("referred_phone") or "",
        row.get("referred_email") or "",
        row.get("camp") or "",
        row.get("landing_path") or "",
        row.get("notes") or "",
    ]


def _encode_line(values: list) -> str:
    buffer = io.StringIO()
    csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="").writerow(values)
    return buffer.getvalue()


def build_csv(rows: Iterable[Mapping[str, Any]]) -> str:
    """Rows are plain dicts as produced by AdminReferralOut.model_dump()."""
    lines = [_encode_line(EXPORT_HEADERS)]
    lines.extend(_encode_line(export_row(row)) for row in rows)
    return BOM + "\n".join(lines)


def export_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"referidos-export-{now.strftime('%Y-%m-%d-%H-%M-%S')}.csv"
