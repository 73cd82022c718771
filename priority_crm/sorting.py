# priority_crm/sorting.py
import unicodedata
from typing import Iterable, List, Tuple, TypeVar

T = TypeVar("T")

PRIORITY_ORDER = {"high": 1, "medium": 2, "low": 3}
UNKNOWN_PRIORITY_RANK = 4


def priority_rank(priority) -> int:
    """우선순위 순위를 반환합니다 (high=1, medium=2, low=3, 그 외=4)."""
    value = getattr(priority, "value", priority)
    if not isinstance(value, str):
        return UNKNOWN_PRIORITY_RANK
    return PRIORITY_ORDER.get(value, UNKNOWN_PRIORITY_RANK)


def name_collation_key(name: str) -> Tuple[str, str, str]:
    """로캘 비교와 비슷한 이름 정렬 키.

    악센트와 대소문자를 무시한 비교가 먼저이고, 같으면 대소문자 무시 비교,
    그래도 같으면 소문자가 대문자보다 앞에 옵니다.
    """
    name = name or ""
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), name.casefold(), name.swapcase()


def priority_sort_key(contact) -> tuple:
    return priority_rank(contact.priority), name_collation_key(contact.name)


def sort_by_priority(contacts: Iterable[T]) -> List[T]:
    """우선순위, 이름 순으로 정렬한 새 목록을 반환합니다 (안정 정렬)."""
    return sorted(contacts, key=priority_sort_key)
