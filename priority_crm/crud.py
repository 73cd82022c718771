# priority_crm/crud.py
import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from . import schemas
from .database import Persistence
from .errors import DuplicateError, ValidationError

logger = logging.getLogger(__name__)

CONTACTS_KEY = "priorityCRM_contacts"
VIEW_MODE_KEY = "priorityCRM_viewMode"

_contact_list = TypeAdapter(List[schemas.Contact])
_ID_ALPHABET = string.ascii_lowercase + string.digits

ContactInput = Union[schemas.ContactCreate, schemas.ContactUpdate, dict]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id() -> str:
    """contact_<밀리초>_<랜덤 9자> 형식의 ID를 생성합니다."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"contact_{int(time.time() * 1000)}_{suffix}"


def identity_key(name: str, company: str) -> tuple:
    """중복 검사용 (이름, 회사) 키 - 앞뒤 공백 제거, 대소문자 무시"""
    return (name or "").strip().lower(), (company or "").strip().lower()


def _validated(data: ContactInput, schema):
    """dict 입력을 스키마로 검증하고, 실패하면 ValidationError로 변환합니다."""
    if isinstance(data, (schemas.ContactCreate, schemas.ContactUpdate)):
        return data
    try:
        return schema.model_validate(data)
    except PydanticValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        raise ValidationError(messages) from e


class ContactStore:
    """메모리 상의 연락처 목록과 그 영속화를 담당합니다.

    모든 변경 작업은 먼저 검증을 끝낸 뒤 새 목록을 저장소에 기록하고, 저장이
    성공한 경우에만 메모리 목록을 교체합니다. 조회 결과는 복사본이므로 외부에서 수정해도 저장소에는
    영향이 없습니다.
    """

    def __init__(self, persistence: Persistence, clock: Callable[[], datetime] = utcnow):
        self._persistence = persistence
        self._clock = clock
        self._contacts: List[schemas.Contact] = []
        self._loaded = False

    @classmethod
    def open(cls, persistence: Persistence, clock: Callable[[], datetime] = utcnow) -> "ContactStore":
        """저장소를 만들고 마지막으로 저장된 스냅샷을 한 번 불러옵니다."""
        store = cls(persistence, clock=clock)
        store.load()
        return store

    # --- 영속화 ---

    def load(self) -> None:
        if self._loaded:
            logger.debug("Contact store already loaded; skipping reload")
            return
        raw = self._persistence.load(CONTACTS_KEY)
        self._contacts = _contact_list.validate_json(raw) if raw else []
        self._loaded = True
        logger.info("Loaded %d contacts", len(self._contacts))

    def _save(self, contacts: Optional[List[schemas.Contact]] = None) -> None:
        contacts = self._contacts if contacts is None else contacts
        self._persistence.save(CONTACTS_KEY, _contact_list.dump_json(contacts, by_alias=True))

    def _commit(self, contacts: List[schemas.Contact]) -> None:
        # 저장에 성공한 목록만 메모리에 반영
        self._save(contacts)
        self._contacts = contacts

    def _replaced(self, index: int, contact: schemas.Contact) -> List[schemas.Contact]:
        contacts = list(self._contacts)
        contacts[index] = contact
        return contacts

    @property
    def view_mode(self) -> schemas.ViewMode:
        raw = self._persistence.load(VIEW_MODE_KEY)
        try:
            return schemas.ViewMode(raw.decode("utf-8")) if raw else schemas.ViewMode.CARD
        except (UnicodeDecodeError, ValueError):
            logger.warning("Ignoring invalid stored view mode %r", raw)
            return schemas.ViewMode.CARD

    def set_view_mode(self, mode: Union[schemas.ViewMode, str]) -> schemas.ViewMode:
        mode = schemas.ViewMode(mode)
        self._persistence.save(VIEW_MODE_KEY, mode.value.encode("utf-8"))
        return mode

    # --- 조회 ---

    def __len__(self) -> int:
        return len(self._contacts)

    def __iter__(self) -> Iterator[schemas.Contact]:
        return iter(self.all())

    def all(self) -> List[schemas.Contact]:
        return [contact.model_copy(deep=True) for contact in self._contacts]

    def get(self, contact_id: str) -> Optional[schemas.Contact]:
        """ID로 특정 연락처를 조회합니다."""
        index = self._index_of(contact_id)
        return None if index is None else self._contacts[index].model_copy(deep=True)

    def _index_of(self, contact_id: str) -> Optional[int]:
        for index, contact in enumerate(self._contacts):
            if contact.id == contact_id:
                return index
        return None

    def _find_duplicate(self, data: schemas.ContactBase, exclude_index: Optional[int] = None) -> bool:
        key = identity_key(data.name, data.company)
        return any(
            identity_key(existing.name, existing.company) == key
            for index, existing in enumerate(self._contacts)
            if index != exclude_index
        )

    def _new_id(self) -> str:
        existing = {contact.id for contact in self._contacts}
        contact_id = generate_id()
        while contact_id in existing:
            contact_id = generate_id()
        return contact_id

    # --- 생성 / 수정 / 삭제 ---

    def add(self, data: ContactInput) -> schemas.Contact:
        """새로운 연락처를 검증 후 추가하고 저장합니다."""
        data = _validated(data, schemas.ContactCreate)
        if self._find_duplicate(data):
            raise DuplicateError(data.name, data.company)

        now = self._clock()
        contact = schemas.Contact(
            id=self._new_id(),
            **data.model_dump(),
            created_at=now,
            updated_at=now,
            cleared_today=False,
            last_cleared=None,
        )
        self._commit(self._contacts + [contact])
        logger.info("Added contact %s (%s)", contact.id, contact.name)
        return contact.model_copy(deep=True)

    def update(self, contact_id: str, data: ContactInput) -> Optional[schemas.Contact]:
        """ID로 특정 연락처를 찾아 변경 가능한 모든 필드를 교체합니다."""
        index = self._index_of(contact_id)
        if index is None:
            return None
        data = _validated(data, schemas.ContactUpdate)
        if self._find_duplicate(data, exclude_index=index):
            raise DuplicateError(data.name, data.company)

        updated = self._contacts[index].model_copy(
            update={**data.model_dump(), "updated_at": self._clock()}
        )
        self._commit(self._replaced(index, updated))
        logger.info("Updated contact %s", contact_id)
        return updated.model_copy(deep=True)

    def delete(self, contact_id: str) -> Optional[schemas.Contact]:
        """ID로 특정 연락처를 삭제합니다. 없는 ID는 무시합니다."""
        index = self._index_of(contact_id)
        if index is None:
            self._save()
            return None
        removed = self._contacts[index]
        self._commit(self._contacts[:index] + self._contacts[index + 1:])
        logger.info("Deleted contact %s", contact_id)
        return removed.model_copy(deep=True)

    # --- 완료 처리 ---

    def _set_cleared(self, contact_id: str, cleared: bool) -> Optional[schemas.Contact]:
        index = self._index_of(contact_id)
        if index is None:
            return None
        updated = self._contacts[index].model_copy(
            update={"cleared_today": cleared, "last_cleared": self._clock() if cleared else None}
        )
        self._commit(self._replaced(index, updated))
        return updated.model_copy(deep=True)

    def mark_cleared(self, contact_id: str) -> Optional[schemas.Contact]:
        """오늘 처리 완료로 표시하고 완료 시각을 기록합니다."""
        return self._set_cleared(contact_id, True)

    def reactivate(self, contact_id: str) -> Optional[schemas.Contact]:
        """완료된 연락처를 다시 활성 상태로 되돌립니다."""
        return self._set_cleared(contact_id, False)

    def delete_all_cleared(self) -> int:
        """완료된 연락처를 모두 영구 삭제하고 삭제 개수를 반환합니다."""
        remaining = [contact for contact in self._contacts if not contact.cleared_today]
        removed = len(self._contacts) - len(remaining)
        self._commit(remaining)
        logger.info("Deleted %d cleared contacts", removed)
        return removed
