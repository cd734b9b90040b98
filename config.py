"""
봇 설정 및 상수 정의
"""
import os
import logging
from pathlib import Path

# 네트워크 설정
PING_INTERVAL_SECONDS = 180
HEALTH_CHECK_PORT = 8000

# Discord 제한
DISCORD_FIELD_MAX_LENGTH = 1024

# 캐릭터 카탈로그 (CHARACTERS_PATH 환경변수로 덮어쓰기 가능)
DEFAULT_CHARACTERS_PATH = Path(__file__).parent / "character_vote" / "data" / "characters.json"

# Supabase 설정
VOTES_TABLE = "votes"
VOTES_SCHEMA = "public"
VOTES_CHANNEL = "votes"
FETCH_PAGE_SIZE = 1000  # PostgREST 기본 최대 행 수

# 로깅 설정
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# 로깅 메시지
LOG_MESSAGES = {
    'ping_success': "✓ Ping 성공 ({status})",
    'ping_warning': "⚠️ Ping 응답 이상: {status}",
    'ping_failed': "❌ Ping 실패: {error}",
    'vote_saved': "✅ 투표 저장: {key} ({vote_type}, user_id={user_id})",
    'vote_duplicate': "⚠️ 중복 투표 방지됨: {key} (user_id={user_id})",
    'ranking_refreshed': "📊 순위 갱신 완료 (투표 {count}개)",
    'ranking_stale': "⏭️ 오래된 순위 응답 무시 (ticket={ticket}, 적용된 ticket={applied})",
}


def setup_logging() -> None:
    """로깅 시스템 초기화 (LOG_LEVEL 환경변수, 기본값 INFO)"""
    level_name = os.environ.get('LOG_LEVEL', 'INFO').upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT
    )
    # discord.py HTTP 로그는 너무 많으므로 WARNING 이상만
    logging.getLogger('discord.http').setLevel(logging.WARNING)
