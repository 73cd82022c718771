# priority_crm/focus.py
import logging
import random
from typing import Callable, List, Optional

from . import config
from .crud import ContactStore
from .errors import EmptyFocusQueueError, FocusSessionError
from .schemas import Contact, FocusState, FocusView
from .sorting import sort_by_priority
from .timers import TimerHandle, TimerService

logger = logging.getLogger(__name__)

TICK_INTERVAL_SECONDS = 1.0


class FocusSession:
    """미완료 연락처를 우선순위 순으로 하나씩 처리하는 포커스 모드.

    세션 시작 시점의 스냅샷을 순회하며, 연락처를 완료 처리하면 10~15초 카운트다운
    뒤에 자동으로 다음 연락처로 넘어갑니다. 타이머는 항상 최대 하나만 존재합니다.
    """

    def __init__(
        self,
        store: ContactStore,
        timer_service: TimerService,
        *,
        rng: Optional[random.Random] = None,
        on_refresh: Optional[Callable[[], None]] = None,
    ):
        self._store = store
        self._timers = timer_service
        self._rng = rng or random.Random()
        self._on_refresh = on_refresh
        self._queue: List[Contact] = []
        self._index = 0
        self._active = False
        self._timer: Optional[TimerHandle] = None
        self._seconds_remaining: Optional[int] = None

    # --- 상태 조회 ---

    @property
    def state(self) -> FocusState:
        if not self._active:
            return FocusState.IDLE
        if self._timer is not None:
            return FocusState.COUNTDOWN
        if self._index >= len(self._queue):
            return FocusState.EXHAUSTED
        return FocusState.ACTIVE

    @property
    def index(self) -> int:
        return self._index

    @property
    def queue(self) -> List[Contact]:
        return [contact.model_copy(deep=True) for contact in self._queue]

    @property
    def current(self) -> Optional[Contact]:
        if self._active and self._index < len(self._queue):
            return self._queue[self._index].model_copy(deep=True)
        return None

    @property
    def seconds_remaining(self) -> Optional[int]:
        return self._seconds_remaining

    def view(self) -> FocusView:
        """현재 화면에 표시할 포커스 모드 상태를 반환합니다."""
        total = len(self._queue)
        current = self.current
        return FocusView(
            state=self.state,
            contact=current,
            position=self._index + 1 if current else min(self._index, total),
            total=total,
            seconds_remaining=self._seconds_remaining,
        )

    # --- 상태 전이 ---

    def start(self) -> FocusView:
        """미완료 연락처 스냅샷으로 새 세션을 시작합니다."""
        self._cancel_timer()
        queue = sort_by_priority(contact for contact in self._store.all() if not contact.cleared_today)
        if not queue:
            self._reset()
            raise EmptyFocusQueueError("No contacts available for focus mode. Add some contacts first!")

        self._queue = queue
        self._index = 0
        self._active = True
        logger.info("Focus session started with %d contacts", len(queue))
        return self.view()

    def clear_current(self) -> FocusView:
        """현재 연락처를 완료 처리하고 자동 진행 카운트다운을 시작합니다."""
        self._require_active()
        if self._index >= len(self._queue):
            raise FocusSessionError("All contacts in this session have been handled.")

        contact = self._queue[self._index]
        updated = self._store.mark_cleared(contact.id)
        if updated is None:
            logger.warning("Contact %s no longer exists; nothing to clear", contact.id)
        else:
            self._queue[self._index] = updated

        self._start_countdown()
        return self.view()

    def tick(self) -> None:
        """카운트다운 1초 경과. 0이 되면 다음 연락처로 넘어갑니다."""
        if self._timer is None or self._seconds_remaining is None:
            return
        self._seconds_remaining -= 1
        if self._seconds_remaining <= 0:
            self._advance()

    def skip(self) -> FocusView:
        """남은 카운트다운을 취소하고 다음 연락처로 넘어갑니다."""
        self._require_active()
        self._advance()
        return self.view()

    def restart(self) -> FocusView:
        """같은 스냅샷의 처음부터 다시 시작합니다."""
        self._require_active()
        self._cancel_timer()
        self._index = 0
        return self.view()

    def exit(self) -> None:
        """세션을 종료하고 대시보드 갱신을 알립니다."""
        self._cancel_timer()
        self._reset()
        self._notify_refresh()

    def edit(self, contact_id: str) -> Optional[Contact]:
        """세션을 종료하고 수정할 연락처를 반환합니다 (자동 재개 없음)."""
        self.exit()
        return self._store.get(contact_id)

    # --- 내부 헬퍼 ---

    def _require_active(self) -> None:
        if not self._active:
            raise FocusSessionError("No active focus session.")

    def _reset(self) -> None:
        self._active = False
        self._queue = []
        self._index = 0

    def _start_countdown(self) -> None:
        # 새 카운트다운 전에 기존 타이머를 반드시 취소
        self._cancel_timer()
        self._seconds_remaining = self._rng.randint(config.COUNTDOWN_MIN_SECONDS, config.COUNTDOWN_MAX_SECONDS)
        self._timer = self._timers.start(TICK_INTERVAL_SECONDS, self.tick)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._seconds_remaining = None

    def _advance(self) -> None:
        self._cancel_timer()
        if self._index < len(self._queue):
            self._index += 1
        self._notify_refresh()

    def _notify_refresh(self) -> None:
        if self._on_refresh is not None:
            self._on_refresh()
