# priority_crm/errors.py


class CRMError(Exception):
    """모든 Priority CRM 오류의 기본 클래스."""


class ValidationError(CRMError):
    """필수 항목 누락 등 입력값 검증 실패."""


class DuplicateError(CRMError):
    """같은 이름과 회사를 가진 연락처가 이미 존재함."""

    def __init__(self, name: str, company: str = ""):
        self.name = name
        self.company = company
        at = f' at "{company}"' if company else ""
        super().__init__(f'A contact with the name "{name}"{at} already exists.')


class ImportFormatError(CRMError):
    """CSV 가져오기 입력이 비어 있거나 필수 열이 없음."""


class EmptyFocusQueueError(CRMError):
    """포커스 모드를 시작할 미완료 연락처가 없음."""


class FocusSessionError(CRMError):
    """진행 중인 포커스 세션 없이 세션 동작을 요청함."""
