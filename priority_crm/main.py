# priority_crm/main.py
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

# 내부 모듈 import
from . import __version__, config, csv_io, filters, schemas
from .crud import ContactStore
from .database import open_persistence
from .errors import (
    DuplicateError,
    EmptyFocusQueueError,
    FocusSessionError,
    ImportFormatError,
)
from .focus import FocusSession
from .timers import AsyncioTimerService, TimerService


def create_app(
    store: Optional[ContactStore] = None,
    timer_service: Optional[TimerService] = None,
) -> FastAPI:
    """연락처 저장소와 포커스 세션을 가진 FastAPI 앱을 생성합니다."""
    app = FastAPI(title="Priority CRM", version=__version__)

    # --- CORS 설정 ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 저장소는 앱 시작 시 한 번만 불러옵니다.
    if store is None:
        store = ContactStore.open(open_persistence(config.DATABASE_URL))
    if timer_service is None:
        timer_service = AsyncioTimerService()
    app.state.store = store

    # 포커스 모드가 진행하거나 종료될 때마다 대시보드 리비전을 올립니다.
    app.state.dashboard_revision = 0

    def refresh_dashboard() -> None:
        app.state.dashboard_revision += 1

    app.state.focus = FocusSession(store, timer_service, on_refresh=refresh_dashboard)

    _register_routes(app)
    return app


def get_store(request: Request) -> ContactStore:
    return request.app.state.store


def get_focus(request: Request) -> FocusSession:
    return request.app.state.focus


def _csv_response(content: str, filename: str) -> Response:
    headers = {'Content-Disposition': f'attachment; filename="{filename}"'}
    return Response(content=content.encode("utf-8"), media_type="text/csv; charset=utf-8", headers=headers)


def _register_routes(app: FastAPI) -> None:

    # ==========================================================================
    # 연락처 CRUD
    # ==========================================================================

    @app.get("/api/contacts/", response_model=List[schemas.Contact])
    async def read_contacts(
        search: str = "",
        priority: Optional[schemas.Priority] = None,
        tag: Optional[str] = None,
        store: ContactStore = Depends(get_store),
    ):
        """대시보드용 미완료 연락처 목록 (검색/필터, 우선순위 정렬)"""
        return filters.filter_contacts(store.all(), search, priority, tag)

    @app.post("/api/contacts/", response_model=schemas.Contact, status_code=201)
    async def create_contact(contact: schemas.ContactCreate, store: ContactStore = Depends(get_store)):
        """새로운 연락처를 추가합니다."""
        try:
            return store.add(contact)
        except DuplicateError as e:
            raise HTTPException(status_code=409, detail=str(e))

    @app.get("/api/contacts/{contact_id}", response_model=schemas.Contact)
    async def read_contact(contact_id: str, store: ContactStore = Depends(get_store)):
        """특정 ID의 연락처 정보 조회"""
        db_contact = store.get(contact_id)
        if db_contact is None:
            raise HTTPException(status_code=404, detail="Contact not found")
        return db_contact

    @app.put("/api/contacts/{contact_id}", response_model=schemas.Contact)
    async def update_contact(
        contact_id: str, contact: schemas.ContactUpdate, store: ContactStore = Depends(get_store)
    ):
        """특정 ID의 연락처 정보를 수정합니다."""
        try:
            db_contact = store.update(contact_id, contact)
        except DuplicateError as e:
            raise HTTPException(status_code=409, detail=str(e))
        if db_contact is None:
            raise HTTPException(status_code=404, detail="Contact not found")
        return db_contact

    @app.delete("/api/contacts/{contact_id}", response_model=schemas.Contact)
    async def delete_contact(contact_id: str, store: ContactStore = Depends(get_store)):
        """특정 ID의 연락처를 삭제합니다."""
        db_contact = store.delete(contact_id)
        if db_contact is None:
            raise HTTPException(status_code=404, detail="Contact not found")
        return db_contact

    @app.get("/api/tags", response_model=List[str])
    async def read_tags(store: ContactStore = Depends(get_store)):
        """태그 필터용 전체 태그 목록"""
        return filters.all_tags(store.all())

    @app.get("/api/stats", response_model=schemas.DashboardStats)
    async def read_stats(store: ContactStore = Depends(get_store)):
        """우선순위별 진행 중 / 완료 연락처 개수"""
        contacts = store.all()
        return schemas.DashboardStats(
            active=filters.count_by_priority(c for c in contacts if not c.cleared_today),
            completed=filters.count_by_priority(c for c in contacts if c.cleared_today),
        )

    # ==========================================================================
    # 완료된 연락처 관리
    # ==========================================================================

    @app.get("/api/completed/", response_model=List[schemas.Contact])
    async def read_completed(store: ContactStore = Depends(get_store)):
        return filters.cleared_contacts(store.all())

    @app.post("/api/completed/{contact_id}/reactivate", response_model=schemas.Contact)
    async def reactivate_contact(contact_id: str, store: ContactStore = Depends(get_store)):
        """완료된 연락처를 다시 활성화합니다."""
        db_contact = store.reactivate(contact_id)
        if db_contact is None:
            raise HTTPException(status_code=404, detail="Contact not found")
        return db_contact

    @app.delete("/api/completed/{contact_id}", response_model=schemas.Contact)
    async def delete_completed_contact(contact_id: str, store: ContactStore = Depends(get_store)):
        db_contact = store.get(contact_id)
        if db_contact is None or not db_contact.cleared_today:
            raise HTTPException(status_code=404, detail="Completed contact not found")
        return store.delete(contact_id)

    @app.delete("/api/completed/")
    async def delete_all_completed(confirm: bool = False, store: ContactStore = Depends(get_store)):
        """완료된 연락처를 모두 영구 삭제합니다 (confirm=true 필요)."""
        if not confirm:
            raise HTTPException(status_code=400, detail="Deleting all completed deals requires confirm=true.")
        return {"deleted": store.delete_all_cleared()}

    # ==========================================================================
    # 보기 설정
    # ==========================================================================

    @app.get("/api/preferences/view", response_model=schemas.ViewPreference)
    async def read_view_preference(store: ContactStore = Depends(get_store)):
        return schemas.ViewPreference(mode=store.view_mode)

    @app.put("/api/preferences/view", response_model=schemas.ViewPreference)
    async def update_view_preference(preference: schemas.ViewPreference, store: ContactStore = Depends(get_store)):
        return schemas.ViewPreference(mode=store.set_view_mode(preference.mode))

    # ==========================================================================
    # CSV 가져오기 / 내보내기
    # ==========================================================================

    @app.post("/api/import", response_model=schemas.ImportResult)
    async def import_csv(file: UploadFile = File(...), store: ContactStore = Depends(get_store)):
        """CSV 파일에서 연락처를 가져옵니다 (중복은 건너뜀)."""
        raw = await file.read()
        try:
            return csv_io.import_contacts(store, raw.decode("utf-8-sig"))
        except UnicodeDecodeError:
            raise HTTPException(status_code=400, detail="CSV file must be UTF-8 encoded.")
        except ImportFormatError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @app.get("/api/export")
    async def export_csv(store: ContactStore = Depends(get_store)):
        contacts = store.all()
        if not contacts:
            raise HTTPException(status_code=404, detail="No contacts to export!")
        return _csv_response(csv_io.export_contacts(contacts), csv_io.export_filename("priority-crm-contacts"))

    @app.get("/api/export/completed")
    async def export_completed_csv(store: ContactStore = Depends(get_store)):
        contacts = filters.cleared_contacts(store.all())
        if not contacts:
            raise HTTPException(status_code=404, detail="No completed deals to export!")
        return _csv_response(csv_io.export_completed(contacts), csv_io.export_filename("completed-deals"))

    # ==========================================================================
    # 포커스 모드
    # ==========================================================================

    @app.get("/api/focus", response_model=schemas.FocusView)
    async def read_focus(focus: FocusSession = Depends(get_focus)):
        return focus.view()

    @app.post("/api/focus/start", response_model=schemas.FocusView)
    async def start_focus(focus: FocusSession = Depends(get_focus)):
        """미완료 연락처 스냅샷으로 포커스 세션을 시작합니다."""
        try:
            return focus.start()
        except EmptyFocusQueueError as e:
            raise HTTPException(status_code=409, detail=str(e))

    @app.post("/api/focus/clear", response_model=schemas.FocusView)
    async def clear_focus_contact(focus: FocusSession = Depends(get_focus)):
        """현재 연락처를 완료 처리하고 자동 진행 카운트다운을 시작합니다."""
        try:
            return focus.clear_current()
        except FocusSessionError as e:
            raise HTTPException(status_code=409, detail=str(e))

    @app.post("/api/focus/skip", response_model=schemas.FocusView)
    async def skip_focus_contact(focus: FocusSession = Depends(get_focus)):
        try:
            return focus.skip()
        except FocusSessionError as e:
            raise HTTPException(status_code=409, detail=str(e))

    @app.post("/api/focus/restart", response_model=schemas.FocusView)
    async def restart_focus(focus: FocusSession = Depends(get_focus)):
        try:
            return focus.restart()
        except FocusSessionError as e:
            raise HTTPException(status_code=409, detail=str(e))

    @app.post("/api/focus/exit", response_model=schemas.DashboardStats)
    async def exit_focus(focus: FocusSession = Depends(get_focus), store: ContactStore = Depends(get_store)):
        """포커스 세션을 종료하고 갱신된 대시보드 통계를 반환합니다."""
        focus.exit()
        return await read_stats(store)

    @app.post("/api/focus/edit/{contact_id}", response_model=schemas.Contact)
    async def edit_focus_contact(contact_id: str, focus: FocusSession = Depends(get_focus)):
        """포커스 세션을 종료하고 수정할 연락처를 반환합니다."""
        db_contact = focus.edit(contact_id)
        if db_contact is None:
            raise HTTPException(status_code=404, detail="Contact not found")
        return db_contact

    @app.get("/api/health")
    async def health_check(request: Request, store: ContactStore = Depends(get_store)):
        """헬스 체크"""
        return {
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.now().isoformat(),
            "contacts": len(store),
            "dashboard_revision": request.app.state.dashboard_revision,
        }
