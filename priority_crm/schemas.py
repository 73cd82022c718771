# priority_crm/schemas.py
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ViewMode(str, Enum):
    CARD = "card"
    TABLE = "table"


class FocusState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COUNTDOWN = "countdown"
    EXHAUSTED = "exhausted"


def parse_tags(value: Union[str, Iterable[str], None]) -> List[str]:
    """쉼표로 구분된 태그 문자열(또는 목록)을 정리된 태그 목록으로 변환합니다."""
    if not value:
        return []
    parts = value.split(",") if isinstance(value, str) else value
    tags: List[str] = []
    for part in parts:
        tag = str(part).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def format_tags(tags: Iterable[str]) -> str:
    return ", ".join(tags)


# 공통 필드를 가진 기본 스키마
class ContactBase(BaseModel):
    name: str
    company: str = ""
    email: str = ""
    phone: str = ""
    priority: Priority
    notes: str = ""
    tags: List[str] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _require_name(cls, value):
        if value is None:
            value = ""
        if isinstance(value, str):
            value = value.strip()
        if value == "":
            raise ValueError("Name is required!")
        return value

    @field_validator("company", "email", "phone", "notes", mode="before")
    @classmethod
    def _clean_optional(cls, value):
        if value is None:
            return ""
        return value.strip() if isinstance(value, str) else value

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value):
        return parse_tags(value)


# 연락처 생성을 위한 스키마 (수동 입력 및 CSV 가져오기)
class ContactCreate(ContactBase):
    pass


# 연락처 수정을 위한 스키마 (변경 가능한 모든 필드를 교체)
class ContactUpdate(ContactBase):
    pass


# 저장 및 조회용 연락처 레코드 (JSON 키는 camelCase)
class Contact(ContactBase):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    created_at: datetime
    updated_at: datetime
    cleared_today: bool = False
    last_cleared: Optional[datetime] = None


class ContactStats(BaseModel):
    high: int = 0
    medium: int = 0
    low: int = 0
    total: int = 0


class DashboardStats(BaseModel):
    active: ContactStats
    completed: ContactStats


class ImportResult(BaseModel):
    imported: int = 0
    duplicates: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def message(self) -> str:
        text = f"Successfully imported {self.imported} contacts!"
        if self.duplicates:
            text += f" ({self.duplicates} duplicates were skipped)"
        return text


class FocusView(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    state: FocusState
    contact: Optional[Contact] = None
    position: int = 0
    total: int = 0
    seconds_remaining: Optional[int] = None


class ViewPreference(BaseModel):
    mode: ViewMode
