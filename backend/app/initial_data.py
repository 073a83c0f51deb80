"""
初始数据脚本

在数据库迁移完成后写入种子数据：默认订阅套餐（premium_monthly）
和它解锁的功能权益。重复执行不会产生重复数据。

执行时机：
- 在数据库迁移完成后执行（见 scripts/prestart.sh）
"""
import logging  # 日志记录

from sqlmodel import Session  # 数据库会话

from app.core.config import settings
from app.core.db import engine, init_db  # 数据库引擎和种子数据函数

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def init() -> None:
    """写入默认套餐和权益"""
    with Session(engine) as session:
        plan = init_db(session, product_id=settings.IAP_PREMIUM_PRODUCT_ID)
        logger.info(f"Plan {plan.code} ready (product_id={plan.product_id})")


def main() -> None:
    logger.info("Creating initial data")
    init()
    logger.info("Initial data created")


if __name__ == "__main__":  # pragma: no cover
    main()
