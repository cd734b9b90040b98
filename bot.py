"""
캐릭터 투표봇 - Discord Bot

주요 기능:
- 캐릭터 투표 패널 (/캐릭터투표)
- 캐릭터 좋아요/싫어요 투표 (/투표)
- 전체 순위 통계 (/통계, 새 투표마다 자동 갱신)
"""
import os
import logging
import asyncio
from functools import wraps

import discord
import aiohttp
from aiohttp import web
from discord.ext import commands

from character_vote import (
    VotingFlowManager,
    RankingBoard,
    SupabaseVoteStore,
    InMemoryVoteStore,
    MainPanelView,
    RankingMessageTracker,
    load_catalog,
    open_vote_tab,
    open_stats_tab,
    create_panel_embed
)
from config import (
    PING_INTERVAL_SECONDS,
    HEALTH_CHECK_PORT,
    DEFAULT_CHARACTERS_PATH,
    LOG_MESSAGES,
    setup_logging
)

# 로거 설정
logger = logging.getLogger(__name__)


# ==================== Web Server ====================

async def health_check(request: web.Request) -> web.Response:
    """헬스체크 엔드포인트"""
    return web.Response(text="OK", status=200)


async def start_web_server() -> None:
    """백그라운드 웹 서버 시작 (헬스체크용)"""
    app = web.Application()
    app.router.add_get('/health', health_check)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, '0.0.0.0', HEALTH_CHECK_PORT)
    await site.start()
    logger.info(f"웹 서버 시작됨 (포트 {HEALTH_CHECK_PORT})")


# ==================== Bot Setup ====================

def create_vote_store():
    """SUPABASE_URL/SUPABASE_KEY가 없으면 메모리 저장소 사용"""
    url = os.environ.get('SUPABASE_URL')
    key = os.environ.get('SUPABASE_KEY')
    if url and key:
        return SupabaseVoteStore(url, key)

    logger.warning("⚠️ SUPABASE_URL/SUPABASE_KEY가 없어 메모리 저장소를 사용합니다 (재시작 시 투표 초기화)")
    return InMemoryVoteStore()


intents = discord.Intents.default()
bot = commands.Bot(command_prefix='!', intents=intents)

# 캐릭터 카탈로그 (시작 시 1회 로드)
characters = load_catalog(os.environ.get('CHARACTERS_PATH', DEFAULT_CHARACTERS_PATH))

# 투표 저장소 / 세션 관리자 / 순위 보드
vote_store = create_vote_store()
flow_manager = VotingFlowManager(characters)
ranking_board = RankingBoard(characters, vote_store)
ranking_tracker = RankingMessageTracker(bot)
ranking_board.add_listener(ranking_tracker.update_all)

# Realtime 구독 핸들 (on_ready가 여러 번 호출되어도 1회만 구독)
_subscription = None


# ==================== Error Handling ====================

def handle_interaction_errors(func):
    """
    Discord Interaction 에러 처리 데코레이터

    - NotFound 에러 처리 (타이밍 이슈)
    - 일반 예외 처리 및 로깅
    - 사용자에게 에러 메시지 전송
    """
    @wraps(func)
    async def wrapper(interaction: discord.Interaction, *args, **kwargs):
        try:
            return await func(interaction, *args, **kwargs)

        except discord.errors.NotFound:
            logger.warning("⚠️ 인터랙션 타이밍 에러 - 무시함")

        except Exception as e:
            logger.error(f"❌ {func.__name__} 중 에러 발생: {e}", exc_info=True)

            try:
                error_msg = "❌ 오류가 발생했습니다. 잠시 후 다시 시도해주세요."
                if not interaction.response.is_done():
                    await interaction.response.send_message(error_msg, ephemeral=True)
                else:
                    await interaction.followup.send(error_msg, ephemeral=True)
            except discord.HTTPException as send_error:
                logger.debug(f"에러 메시지 전송 실패: {send_error}")

    return wrapper


# ==================== Background Tasks ====================

async def ping_self() -> None:
    """주기적으로 자신에게 ping하여 활성 상태 유지 (무료 호스팅용)"""
    await bot.wait_until_ready()
    koyeb_url = os.environ.get('KOYEB_URL', f'http://localhost:{HEALTH_CHECK_PORT}/health')

    while not bot.is_closed():
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(koyeb_url) as response:
                    if response.status == 200:
                        logger.debug(LOG_MESSAGES['ping_success'].format(status=response.status))
                    else:
                        logger.warning(LOG_MESSAGES['ping_warning'].format(status=response.status))

        except Exception as e:
            logger.error(LOG_MESSAGES['ping_failed'].format(error=e))

        await asyncio.sleep(PING_INTERVAL_SECONDS)


async def subscribe_vote_inserts() -> None:
    """저장소 연결 및 INSERT 알림 구독 (알림마다 순위 전체 재계산)"""
    global _subscription
    if _subscription is not None:
        return

    try:
        if isinstance(vote_store, SupabaseVoteStore) and not vote_store.is_connected:
            await vote_store.connect()
        _subscription = await vote_store.subscribe_inserts(ranking_board.request_refresh)
    except Exception as e:
        logger.error(f"❌ 투표 알림 구독 실패: {e}", exc_info=True)


async def unsubscribe_vote_inserts() -> None:
    """INSERT 알림 구독 해제 (봇 종료 시)"""
    global _subscription
    if _subscription is None:
        return

    try:
        await vote_store.unsubscribe(_subscription)
        logger.info("투표 알림 구독 해제")
    except Exception as e:
        logger.warning(f"⚠️ 투표 알림 구독 해제 실패: {e}")
    finally:
        _subscription = None


# ==================== Bot Events ====================

@bot.event
async def on_ready() -> None:
    """봇 시작 이벤트"""
    logger.info(f'{bot.user.name}으로 로그인했습니다!')
    logger.info(f'봇 ID: {bot.user.id}')

    try:
        synced = await bot.tree.sync()
        logger.info(f'{len(synced)}개의 슬래시 명령어가 동기화되었습니다.')
    except Exception as e:
        logger.error(f'동기화 실패: {e}')

    logger.info('------')

    # 재시작 후에도 패널 버튼이 동작하도록 영구 뷰 등록
    bot.add_view(MainPanelView(flow_manager, vote_store, ranking_board, ranking_tracker))

    await subscribe_vote_inserts()

    # 백그라운드 태스크 시작
    bot.loop.create_task(start_web_server())
    bot.loop.create_task(ping_self())


# ==================== Character Voting Commands ====================

@bot.tree.command(name='캐릭터투표', description='캐릭터 투표 패널을 띄웁니다 (투표 / 통계)')
@handle_interaction_errors
async def voting_panel(interaction: discord.Interaction) -> None:
    """투표 패널 명령어"""
    embed = create_panel_embed()
    view = MainPanelView(flow_manager, vote_store, ranking_board, ranking_tracker)
    await interaction.response.send_message(embed=embed, view=view)
    logger.info(f"투표 패널 생성 (사용자: {interaction.user.name})")


@bot.tree.command(name='투표', description='아직 투표하지 않은 캐릭터에 좋아요/싫어요를 누릅니다')
@handle_interaction_errors
async def vote(interaction: discord.Interaction) -> None:
    """투표 탭 명령어"""
    await open_vote_tab(interaction, flow_manager, vote_store)


@bot.tree.command(name='통계', description='전체 사용자의 투표로 매긴 캐릭터 순위를 보여줍니다')
@handle_interaction_errors
async def stats(interaction: discord.Interaction) -> None:
    """통계 탭 명령어"""
    await open_stats_tab(interaction, ranking_board, ranking_tracker)


# ==================== Bot Start ====================

async def run_bot(token: str) -> None:
    """봇 실행 (종료 시 Realtime 채널 정리)"""
    async with bot:
        try:
            await bot.start(token)
        finally:
            await unsubscribe_vote_inserts()


if __name__ == "__main__":
    # 로깅 시스템 초기화
    setup_logging()

    token = os.environ.get('TOKEN')
    if not token:
        logger.error("❌ TOKEN 환경변수가 설정되지 않았습니다!")
    else:
        logger.info(f"봇 시작 중... (캐릭터 {len(characters)}명)")
        asyncio.run(run_bot(token))
