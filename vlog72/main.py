import os
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .routes import router
from .core import redis_startup, init_metrics, shutdown_connections
from .errors import DomainError
import logging
from pythonjsonlogger import jsonlogger

# setup structured logging
logger = logging.getLogger('vlog72')
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
logger.setLevel(os.getenv('LOG_LEVEL', 'INFO').upper())

app = FastAPI(title="Vlog72 API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv('CORS_ORIGINS', '*').split(','),
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(router, prefix="/api")


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    logger.info({'msg': 'domain_error', 'code': exc.code, 'path': request.url.path})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get('/healthz')
async def healthz():
    return {'status': 'ok'}


@app.middleware('http')
async def log_requests(request: Request, call_next):
    logger.info({'msg': 'request_start', 'method': request.method, 'path': request.url.path})
    response = await call_next(request)
    logger.info({'msg': 'request_end', 'status': response.status_code})
    return response


@app.on_event("startup")
async def startup():
    # Best-effort init, don't block app from starting if a dependency fails
    await redis_startup()
    try:
        init_metrics()
    except OSError as e:
        logger.warning({'msg': 'metrics_init_failed', 'error': str(e)})


@app.on_event("shutdown")
async def shutdown():
    await shutdown_connections()
