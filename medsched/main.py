import logging

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from medsched.core import config
from medsched.core.errors import ServiceError
from medsched.database import engine, init_db
from medsched.middleware import RequestLoggingMiddleware
from medsched.routes import (
    admin_routes,
    appointment_routes,
    auth_routes,
    doctor_routes,
    patient_routes,
    user_routes,
)

app = FastAPI(title='medsched', version='1.0.0')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
    expose_headers=['X-Request-ID'],
)
app.add_middleware(RequestLoggingMiddleware)

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'error': message})


@app.exception_handler(ServiceError)
async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={'error': message}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = '.'.join(str(part) for part in first.get('loc', ()) if part != 'body')
        message = f"Invalid request: {field}: {first.get('msg')}" if field else f"Invalid request: {first.get('msg')}"
    else:
        message = 'Invalid request format'
    return _error(status.HTTP_400_BAD_REQUEST, message)


@app.exception_handler(SQLAlchemyError)
async def handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error('Database error on %s %s', request.method, request.url.path, exc_info=exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, 'Internal server error')


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error('Unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, 'Internal server error')


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        init_db()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.on_event('shutdown')
def close_database() -> None:
    logger.info('Disposing database connections')
    engine.dispose()


@app.get('/api/health')
def health():
    return {'status': 'ok'}


API_PREFIX = '/api/v1'

app.include_router(auth_routes.router, prefix=f'{API_PREFIX}/auth')
app.include_router(user_routes.router, prefix=f'{API_PREFIX}/users')
app.include_router(doctor_routes.router, prefix=f'{API_PREFIX}/doctors')
app.include_router(patient_routes.router, prefix=f'{API_PREFIX}/patients')
app.include_router(appointment_routes.router, prefix=f'{API_PREFIX}/appointments')
app.include_router(admin_routes.router, prefix=f'{API_PREFIX}/admin')


def run() -> None:
    config.configure_logging()
    uvicorn.run(app, host=config.HOST, port=config.PORT)


if __name__ == '__main__':
    run()
