"""Priority CRM: 우선순위 기반 연락처 관리 코어."""

__version__ = "1.0.0"
