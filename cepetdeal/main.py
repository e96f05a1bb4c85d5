from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from cepetdeal.db import Base, engine
import cepetdeal.models  # noqa: F401 ensure models are imported so tables are known
from cepetdeal.api.admin import router as admin_router
from cepetdeal.api.content import router as content_router
from cepetdeal.api.routes import router as api_router
from cepetdeal.api.users import router as users_router
from cepetdeal.errors import AppError
from cepetdeal.utils import logger

# create FastAPI instance
app = FastAPI(title="CepetDeal API")

app.include_router(api_router)
app.include_router(users_router)
app.include_router(admin_router)
app.include_router(content_router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # malformed bodies are plain 400s like every other validation failure
    first = exc.errors()[0] if exc.errors() else {}
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path", "header")]
    content = {"error": first.get("msg", "Invalid request")}
    if loc:
        content["field"] = ".".join(loc)
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": str(exc) or "Internal server error"})


@app.on_event("startup")
def on_startup_create_tables():
    # Ensure database tables are created on startup
    Base.metadata.create_all(bind=engine)
