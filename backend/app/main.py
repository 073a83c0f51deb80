"""
FastAPI 应用主入口

这是应用的启动文件，负责：
1. 创建 FastAPI 应用实例
2. 配置日志和全局中间件（CORS、Sentry）
3. 注册全局异常处理器
4. 注册 API 路由

运行方式：
    uvicorn app.main:app --reload  # 开发模式
    fastapi dev app/main.py  # 或使用 FastAPI CLI
"""
import logging
from typing import Any

import sentry_sdk  # Sentry 错误监控
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError  # 请求验证错误
from fastapi.middleware.cors import CORSMiddleware  # CORS 中间件
from fastapi.responses import JSONResponse  # JSON 响应
from fastapi.routing import APIRoute  # 路由类型

from app.api.errors import AppError, UpstreamError
from app.api.main import api_router
from app.core.config import settings
from app.core.logging_config import configure_logging

configure_logging()
logger = logging.getLogger(__name__)


def custom_generate_unique_id(route: APIRoute) -> str:
    """
    自定义 OpenAPI 操作 ID 生成函数

    格式：{tag}-{route_name}，例如 "iap-verify"
    """
    return f"{route.tags[0]}-{route.name}"


# 初始化 Sentry 错误监控（仅在生产/测试环境）
if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":  # pragma: no cover
    sentry_sdk.init(dsn=str(settings.SENTRY_DSN), enable_tracing=True)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    generate_unique_id_function=custom_generate_unique_id,
)


def error_body(code: int, error: str, message: str, detail: Any = None) -> dict[str, Any]:
    """
    统一的错误响应体

    detail 只在 DEBUG_ERRORS 打开时返回，避免把 Apple 的原始响应暴露给客户端。
    """
    body: dict[str, Any] = {"code": code, "error": error, "message": message, "data": None}
    if settings.DEBUG_ERRORS and detail is not None:
        body["detail"] = detail
    return body


@app.exception_handler(AppError)
async def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
    """
    应用自定义异常处理器

    捕获所有 AppError 异常，返回统一的错误响应格式。
    """
    detail: Any = None
    if isinstance(exc, UpstreamError) and exc.attempts:
        detail = {
            "attempts": [
                {"environment": env, "status": status, "body": body}
                for env, status, body in exc.attempts
            ]
        }
    elif exc.__cause__ is not None:
        detail = str(exc.__cause__)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.error, exc.message, detail),
    )


@app.exception_handler(HTTPException)
async def http_error_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """
    HTTP 异常处理器

    捕获 FastAPI 的 HTTPException（如 404 路由不存在），转换为统一的响应格式。
    错误码为 状态码 * 1000。
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code * 1000, "HTTP_ERROR", str(exc.detail)),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    """
    请求验证错误处理器

    字段缺失、类型错误、平台取值不合法等统一返回 400 INVALID_REQUEST。
    """
    return JSONResponse(
        status_code=400,
        content=error_body(
            400001, "INVALID_REQUEST", "Invalid request", {"errors": jsonable_encoder(exc.errors())}
        ),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(_: Request, exc: Exception) -> JSONResponse:
    """
    未捕获异常处理器

    记录完整堆栈，客户端只看到 500 INTERNAL_ERROR。
    """
    logger.exception(f"Unhandled error: {exc.__class__.__name__}")
    return JSONResponse(
        status_code=500,
        content=error_body(500000, "INTERNAL_ERROR", "Internal server error", repr(exc)),
    )


# 配置 CORS（跨域资源共享）中间件
if settings.all_cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.all_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# 所有路由都会添加 /api/v1 前缀
app.include_router(api_router, prefix=settings.API_V1_STR)
