"""FastAPI application exposing the MCP endpoint and a health check."""
from __future__ import annotations

import asyncio
import os
from datetime import UTC, datetime
from functools import partial

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from deploy_orchestrator.credentials import get_credentials_status
from deploy_orchestrator.rpc import SERVER_NAME, RpcDispatcher

SESSION_HEADER = "Mcp-Session-Id"

router = APIRouter()


def get_dispatcher(request: Request) -> RpcDispatcher:
    return request.app.state.dispatcher


@router.get("/health")
def health_check() -> dict[str, object]:
    """Report liveness and which platform tokens are configured."""
    return {
        "status": "healthy",
        "service": SERVER_NAME,
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": get_credentials_status(),
    }


@router.get("/mcp")
def mcp_discovery(dispatcher: RpcDispatcher = Depends(get_dispatcher)) -> JSONResponse:
    """Browser-friendly description of the server's tools and endpoints."""
    return JSONResponse(dispatcher.discovery())


@router.options("/mcp")
def mcp_options() -> Response:
    return Response(status_code=status.HTTP_200_OK)


@router.post("/mcp")
async def mcp_post(request: Request, dispatcher: RpcDispatcher = Depends(get_dispatcher)) -> Response:
    """Handle one JSON-RPC message.

    Dispatch may block on provider HTTP calls, so it runs in the default
    executor rather than on the event loop.
    """

    body = await request.body()
    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(
        None, partial(dispatcher.handle, body, request.headers.get(SESSION_HEADER))
    )

    headers = {SESSION_HEADER: result.session_id}
    if result.envelope is None:
        return Response(status_code=status.HTTP_202_ACCEPTED, headers=headers)
    return JSONResponse(result.envelope, status_code=result.status_code, headers=headers)


@router.delete("/mcp")
def mcp_delete(request: Request, dispatcher: RpcDispatcher = Depends(get_dispatcher)) -> JSONResponse:
    """Tear down the caller's session; always acknowledged."""
    return JSONResponse(dispatcher.teardown(request.headers.get(SESSION_HEADER)))


def create_app(dispatcher: RpcDispatcher | None = None) -> FastAPI:
    """Build the application around ``dispatcher`` (a default one when omitted)."""

    application = FastAPI(title="Deployment Orchestrator MCP Server")
    application.state.dispatcher = dispatcher if dispatcher is not None else RpcDispatcher()
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS", "DELETE"],
        allow_headers=["*"],
        expose_headers=[SESSION_HEADER],
    )
    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Entry-point for serving the app with uvicorn on ``HOST``/``PORT``."""

    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "3000")))


if __name__ == "__main__":
    run()


__all__ = ["app", "create_app", "run"]
