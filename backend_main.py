import logging

import uvicorn

from priority_crm import __version__, config
from priority_crm.main import create_app

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = create_app()

if __name__ == '__main__':
    print(f"🚀 Priority CRM 백엔드 v{__version__} 시작!")
    print("=========================================")
    print(f"💾 데이터베이스: {config.DATABASE_URL}")
    print(f"📇 불러온 연락처: {len(app.state.store)}개")
    print(f"\n🔗 API 서버가 http://localhost:{config.PORT} 에서 실행 중입니다.")
    print("🛑 종료하려면 Ctrl+C를 누르세요.")
    uvicorn.run(app, host=config.HOST, port=config.PORT)
