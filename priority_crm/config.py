# priority_crm/config.py
import os

import dotenv

# --- .env 파일에서 환경 변수 로드 ---
dotenv.load_dotenv()

# 1. 데이터베이스 접속 주소 (기본값: 프로젝트 루트의 SQLite 파일)
DATABASE_URL = os.environ.get('PRIORITY_CRM_DATABASE_URL', 'sqlite:///./priority_crm.db')

# 2. 허용할 CORS 출처 목록 (쉼표로 구분)
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get(
        'PRIORITY_CRM_CORS_ORIGINS', 'http://localhost,http://localhost:5173'
    ).split(',')
    if origin.strip()
]

# 3. 서버 실행 설정
HOST = os.environ.get('PRIORITY_CRM_HOST', '0.0.0.0')
PORT = int(os.environ.get('PRIORITY_CRM_PORT', '8000'))
LOG_LEVEL = os.environ.get('PRIORITY_CRM_LOG_LEVEL', 'INFO').upper()

# 포커스 모드 자동 진행 카운트다운 범위 (초, 양끝 포함)
COUNTDOWN_MIN_SECONDS = 10
COUNTDOWN_MAX_SECONDS = 15
