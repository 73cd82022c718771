# priority_crm/timers.py
import asyncio
from typing import Callable, Optional, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerService(Protocol):
    """반복 타이머를 시작하고 핸들로 취소할 수 있는 스케줄러."""

    def start(self, interval: float, callback: Callable[[], None]) -> TimerHandle: ...


class _RepeatingCall:
    """interval 초마다 callback을 호출하는 이벤트 루프 타이머."""

    def __init__(self, loop: asyncio.AbstractEventLoop, interval: float, callback: Callable[[], None]):
        self._loop = loop
        self._interval = interval
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self.cancelled = False
        self._schedule()

    def _schedule(self) -> None:
        self._handle = self._loop.call_later(self._interval, self._run)

    def _run(self) -> None:
        if self.cancelled:
            return
        # 콜백 안에서 cancel()이 호출되면 다음 예약도 함께 취소됩니다.
        self._schedule()
        self._callback()

    def cancel(self) -> None:
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class AsyncioTimerService:
    """실행 중인 asyncio 이벤트 루프 위에서 동작하는 타이머 서비스.

    틱 콜백은 요청 핸들러와 같은 스레드에서 실행되므로 별도의 잠금이 필요 없습니다.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def start(self, interval: float, callback: Callable[[], None]) -> _RepeatingCall:
        loop = self._loop or asyncio.get_running_loop()
        return _RepeatingCall(loop, interval, callback)
