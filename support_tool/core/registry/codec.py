from __future__ import annotations

from pydantic import ValidationError

from support_tool.core.errors import CorruptRecordError
from support_tool.core.registry.models import AccountRecord


FIELD_SEPARATOR = ":"
FIELD_COUNT = 5


def _parse_int(raw: str, name: str, *, line_no: int, line: str) -> int:
    if not (raw.isascii() and raw.isdigit()):
        raise CorruptRecordError(f"Field {name} is not a non-negative integer.", line_no=line_no, line=line, field=name)
    return int(raw)


def parse_line(line: str, line_no: int = 0) -> AccountRecord:
    """
    <id>:<state>:<created_at>:<first_login_at>:<last_active_at>
    """
    text = line.rstrip("\r\n")
    parts = text.split(FIELD_SEPARATOR)
    if len(parts) != FIELD_COUNT:
        raise CorruptRecordError(
            f"Expected {FIELD_COUNT} fields, found {len(parts)}.",
            line_no=line_no,
            line=text,
        )
    account_id, state, created_raw, first_raw, last_raw = parts
    created_at = _parse_int(created_raw, "created_at", line_no=line_no, line=text)
    first_login_at = _parse_int(first_raw, "first_login_at", line_no=line_no, line=text)
    last_active_at = _parse_int(last_raw, "last_active_at", line_no=line_no, line=text)
    try:
        return AccountRecord(
            id=account_id,
            state=state,
            created_at=created_at,
            first_login_at=first_login_at,
            last_active_at=last_active_at,
        )
    except ValidationError as e:
        raise CorruptRecordError("Record fields are invalid.", line_no=line_no, line=text, error=str(e)) from e


def format_line(record: AccountRecord) -> str:
    return FIELD_SEPARATOR.join(
        [
            record.id,
            record.state,
            str(int(record.created_at)),
            str(int(record.first_login_at)),
            str(int(record.last_active_at)),
        ]
    )
