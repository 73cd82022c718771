# priority_crm/csv_io.py
import csv
import io
import logging
import math
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from .crud import ContactStore
from .errors import DuplicateError, ImportFormatError, ValidationError
from .filters import cleared_contacts
from .schemas import Contact, ImportResult, Priority, format_tags
from .sorting import sort_by_priority

logger = logging.getLogger(__name__)

CONTACT_HEADERS = ["Name", "Company", "Email", "Phone", "Priority", "Notes", "Tags", "Created", "Last Updated"]
COMPLETED_HEADERS = [
    "Name", "Company", "Email", "Phone", "Priority", "Notes", "Tags",
    "Completed Date", "Completed Time", "Created Date", "Deal Duration (Days)",
]

# 가져오기 시 헤더 이름에 포함되어야 하는 키워드 (대소문자 무시)
IMPORT_COLUMNS = ("name", "company", "email", "phone", "priority", "notes", "tags")

SECONDS_PER_DAY = 24 * 60 * 60


# ==========================================================================
# 내보내기
# ==========================================================================

def _local_date(value: datetime) -> str:
    return value.astimezone().strftime("%Y-%m-%d")


def _local_time(value: datetime) -> str:
    return value.astimezone().strftime("%H:%M:%S")


def _render(headers: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    """헤더 행과 큰따옴표로 감싼 데이터 행을 \\n으로 이은 CSV 텍스트를 만듭니다."""
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(headers)
    csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n").writerows(rows)
    return buffer.getvalue()[:-1]


def _base_fields(contact: Contact) -> List[str]:
    return [
        contact.name,
        contact.company,
        contact.email,
        contact.phone,
        contact.priority.value,
        contact.notes,
        format_tags(contact.tags),
    ]


def completion_days(contact: Contact) -> int:
    """생성부터 완료까지 걸린 일수 (올림)."""
    if contact.last_cleared is None:
        return 0
    elapsed = (contact.last_cleared - contact.created_at).total_seconds()
    return math.ceil(elapsed / SECONDS_PER_DAY)


def export_contacts(contacts: Iterable[Contact]) -> str:
    """모든 연락처를 우선순위 순으로 CSV 텍스트로 변환합니다."""
    rows = [
        _base_fields(contact) + [_local_date(contact.created_at), _local_date(contact.updated_at)]
        for contact in sort_by_priority(contacts)
    ]
    return _render(CONTACT_HEADERS, rows)


def export_completed(contacts: Iterable[Contact]) -> str:
    """완료된 연락처를 완료 일시와 소요 일수와 함께 CSV 텍스트로 변환합니다."""
    rows = []
    for contact in cleared_contacts(contacts):
        completed = contact.last_cleared or contact.updated_at
        rows.append(_base_fields(contact) + [
            _local_date(completed),
            _local_time(completed),
            _local_date(contact.created_at),
            str(completion_days(contact)),
        ])
    return _render(COMPLETED_HEADERS, rows)


def export_filename(prefix: str, day: Optional[date] = None) -> str:
    day = day or date.today()
    return f"{prefix}-{day.isoformat()}.csv"


# ==========================================================================
# 가져오기
# ==========================================================================

def normalize_priority(value: Optional[str]) -> str:
    """high/medium/low 이외의 값은 medium으로 정규화합니다."""
    normalized = (value or "").strip().lower()
    valid = {p.value for p in Priority}
    return normalized if normalized in valid else Priority.MEDIUM.value


def read_rows(text: str) -> Tuple[List[str], List[List[str]]]:
    """CSV 텍스트를 (소문자 헤더, 데이터 행) 으로 분리합니다."""
    # 내보낸 파일의 긴 메모도 다시 가져올 수 있도록 필드 크기 제한을 입력 길이에 맞춤
    if len(text) > csv.field_size_limit():
        csv.field_size_limit(len(text))
    try:
        rows = [row for row in csv.reader(io.StringIO(text), strict=True) if any(cell.strip() for cell in row)]
    except csv.Error as e:
        raise ImportFormatError(f"Error importing CSV: {e}") from e
    if len(rows) < 2:
        raise ImportFormatError("CSV file appears to be empty or invalid!")
    headers = [header.replace('"', "").strip().lower() for header in rows[0]]
    return headers, rows[1:]


def locate_columns(headers: Sequence[str]) -> dict:
    """각 키워드를 포함하는 첫 번째 헤더의 위치를 찾습니다 (없으면 -1)."""
    columns = {}
    for keyword in IMPORT_COLUMNS:
        columns[keyword] = next((i for i, header in enumerate(headers) if keyword in header), -1)
    if columns["name"] == -1:
        raise ImportFormatError('CSV must contain a "Name" column!')
    return columns


def _cell(row: Sequence[str], index: int) -> str:
    if 0 <= index < len(row):
        return row[index].strip()
    return ""


def import_contacts(store: ContactStore, text: str) -> ImportResult:
    """CSV 텍스트의 각 행을 수동 입력과 같은 경로(store.add)로 추가합니다."""
    headers, rows = read_rows(text)
    columns = locate_columns(headers)
    result = ImportResult()

    for row_no, row in enumerate(rows, start=2):
        name = _cell(row, columns["name"])
        if not name:
            result.skipped += 1
            continue

        data = {
            "name": name,
            "company": _cell(row, columns["company"]),
            "email": _cell(row, columns["email"]),
            "phone": _cell(row, columns["phone"]),
            "priority": normalize_priority(_cell(row, columns["priority"])),
            "notes": _cell(row, columns["notes"]),
            "tags": _cell(row, columns["tags"]),
        }
        try:
            store.add(data)
            result.imported += 1
        except DuplicateError:
            result.duplicates += 1
        except ValidationError as e:
            logger.warning("Error importing contact on row %d: %s", row_no, e)
            result.failed += 1

    logger.info(
        "CSV import finished: %d imported, %d duplicates, %d skipped, %d failed",
        result.imported, result.duplicates, result.skipped, result.failed,
    )
    return result
