"""
应用启动前检查脚本

启动前等待数据库就绪，并确认 Apple 凭证可以用来签发 JWT。
数据库容器可能还在初始化，所以连接检查会按固定间隔重试；
凭证检查不重试，私钥格式错误时直接失败。

执行顺序（见 scripts/prestart.sh）：
1. backend_pre_start（本脚本）
2. alembic upgrade head
3. initial_data
"""
import logging

from sqlalchemy import Engine
from sqlmodel import Session, select
from tenacity import after_log, before_log, retry, stop_after_attempt, wait_fixed

from app.core.config import settings
from app.core.db import engine
from app.core.logging_config import configure_logging
from app.storekit.config import AppStoreConfig
from app.storekit.signer import AppStoreTokenSigner

logger = logging.getLogger(__name__)

max_tries = 60 * 5  # 5 分钟
wait_seconds = 1


@retry(
    stop=stop_after_attempt(max_tries),
    wait=wait_fixed(wait_seconds),
    before=before_log(logger, logging.INFO),
    after=after_log(logger, logging.WARN),
)
def init(db_engine: Engine) -> None:
    """
    检查数据库连接

    执行 select(1)，失败时由 tenacity 重试，最多 5 分钟。
    """
    try:
        with Session(db_engine) as session:
            session.exec(select(1))
    except Exception as e:
        logger.error(e)
        raise e


def check_apple_credentials(config: AppStoreConfig) -> None:
    """
    签发一次 JWT，提前暴露私钥格式问题

    dev 模式或未配置凭证时只记录日志，请求时会返回 SERVER_NOT_CONFIGURED。
    """
    if config.dev_mode:
        logger.warning("IAP dev mode is on, App Store verification is skipped")
        return
    if not config.has_credentials:
        logger.warning("Apple credentials are not configured")
        return
    AppStoreTokenSigner(config).token()
    logger.info("Apple credentials loaded")


def main() -> None:
    configure_logging()
    logger.info("Initializing service")
    init(engine)
    check_apple_credentials(AppStoreConfig.from_settings(settings))
    logger.info("Service finished initializing")


if __name__ == "__main__":  # pragma: no cover
    main()
