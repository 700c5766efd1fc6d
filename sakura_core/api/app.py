"""HTTP 入口（FastAPI）。

- GET  /ping          健康检查。
- POST /interactions  平台 webhook：先校验签名，再解析并分发 interaction。

签名校验基于原始请求体字节，因此这里直接读取 request.body()，
不使用 pydantic 的请求体绑定。
"""

import time
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from sakura_core.api.service import build_talk_agent, process_interaction
from sakura_core.config.settings import Settings, settings
from sakura_core.discord.client import DiscordClient
from sakura_core.domain.exceptions import AuthenticationError, BusinessError
from sakura_core.domain.interactions import parse_interaction
from sakura_core.domain.models import SignedRequest
from sakura_core.infrastructure.logging.logger import logger
from sakura_core.security.verify import SIGNATURE_HEADER, TIMESTAMP_HEADER, require_valid_signature


def create_app(cfg: Optional[Settings] = None) -> FastAPI:
    cfg = cfg or settings
    app = FastAPI(title="sakura")
    app.state.settings = cfg
    app.state.discord = DiscordClient(cfg)
    app.state.agent = None

    def get_agent():
        # 延迟创建：ping 等请求不需要上游配置
        if app.state.agent is None:
            app.state.agent = build_talk_agent(cfg)
        return app.state.agent

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={"extra": {"elapsed_ms": round((time.perf_counter() - started) * 1000, 1)}},
        )
        return response

    @app.exception_handler(AuthenticationError)
    async def handle_auth_error(request: Request, exc: AuthenticationError):
        return PlainTextResponse(exc.message, status_code=exc.http_status)

    @app.exception_handler(BusinessError)
    async def handle_business_error(request: Request, exc: BusinessError):
        logger.error(f"Request failed: {exc.message}", extra={"extra": {"code": exc.code, "path": request.url.path}})
        return JSONResponse({"code": exc.code, "message": exc.message}, status_code=exc.http_status)

    @app.get("/ping")
    async def ping():
        return {"message": "pong"}

    @app.post("/interactions")
    async def interactions(request: Request, background_tasks: BackgroundTasks):
        raw_body = await request.body()
        require_valid_signature(
            SignedRequest(
                raw_body=raw_body,
                signature_hex=request.headers.get(SIGNATURE_HEADER),
                timestamp=request.headers.get(TIMESTAMP_HEADER),
                public_key_hex=cfg.discord_public_key,
            )
        )
        interaction = parse_interaction(raw_body)
        response = process_interaction(
            interaction,
            schedule=background_tasks.add_task,
            agent=get_agent(),
            discord=app.state.discord,
        )
        return JSONResponse(response.to_payload())

    return app


app = create_app()
