# priority_crm/filters.py
from typing import Iterable, List, Optional

from .schemas import Contact, ContactStats, Priority
from .sorting import sort_by_priority


def filter_contacts(
    contacts: Iterable[Contact],
    search_term: str = "",
    priority: Optional[Priority] = None,
    tag: Optional[str] = None,
) -> List[Contact]:
    """대시보드에 표시할 미완료 연락처를 검색/필터 조건에 맞춰 반환합니다."""
    # 완료 처리된 연락처는 메인 화면에서 제외
    filtered = [contact for contact in contacts if not contact.cleared_today]

    if search_term:
        term = search_term.lower()
        filtered = [
            contact for contact in filtered
            if term in contact.name.lower()
            or term in contact.company.lower()
            or any(term in t.lower() for t in contact.tags)
        ]

    if priority:
        filtered = [contact for contact in filtered if contact.priority == priority]

    if tag:
        filtered = [contact for contact in filtered if tag in contact.tags]

    return sort_by_priority(filtered)


def cleared_contacts(contacts: Iterable[Contact]) -> List[Contact]:
    """완료된 연락처만 우선순위 순으로 반환합니다."""
    return sort_by_priority(contact for contact in contacts if contact.cleared_today)


def count_by_priority(contacts: Iterable[Contact]) -> ContactStats:
    stats = ContactStats()
    for contact in contacts:
        if contact.priority == Priority.HIGH:
            stats.high += 1
        elif contact.priority == Priority.MEDIUM:
            stats.medium += 1
        elif contact.priority == Priority.LOW:
            stats.low += 1
        stats.total += 1
    return stats


def all_tags(contacts: Iterable[Contact]) -> List[str]:
    """모든 연락처에 사용된 태그를 중복 없이 정렬해 반환합니다."""
    return sorted({tag for contact in contacts for tag in contact.tags})
