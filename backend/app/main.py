"""
StayHub 主应用入口
调价规则与退款服务
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.config import settings
from app.database import init_db, SessionLocal
from app.routers import pricing, refunds, configuration, wallet

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    # 初始化数据库
    init_db()

    # 注册事件处理器
    from app.services.event_handlers import register_event_handlers
    register_event_handlers()

    # 写入缺失的默认配置（退款档位表等）
    from app.services.configuration_service import ConfigurationService
    seed_db = SessionLocal()
    try:
        created = ConfigurationService(seed_db).initialize_defaults()
        if created:
            logger.info(f"✓ 默认配置已初始化: {created} 项")
    finally:
        seed_db.close()

    logger.info(f"{settings.APP_NAME} started")
    yield


# 创建应用
app = FastAPI(
    title="StayHub - 酒店预订定价与退款服务",
    description="调价规则、有效价格解析、取消退款",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应限制具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(pricing.router)
app.include_router(refunds.router)
app.include_router(configuration.router)
app.include_router(wallet.router)


@app.get("/")
def root():
    """根路径"""
    return {"message": "StayHub API", "version": "1.0.0"}


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
