"""
API 路由聚合模块

将所有业务路由模块聚合到一个统一的 router 中。
这个 router 会被注册到主应用（app/main.py）上。

路由模块说明：
- iap: 应用内购买（校验、套餐、我的订阅）
- utils: 工具相关（健康检查等）
"""
from fastapi import APIRouter

from app.api.routes import iap, utils

api_router = APIRouter()

api_router.include_router(iap.router)  # /iap/*
api_router.include_router(utils.router)  # /utils/*
