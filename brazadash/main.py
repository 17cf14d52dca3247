import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from brazadash import admin_routes, config, order_routes, routes, terminal_routes
from brazadash.database import Base, engine
from brazadash.errors import BrazaDashError

logging.basicConfig(
    level=config.log_level(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="BrazaDash Payments")

app.include_router(routes.router)
app.include_router(order_routes.router)
app.include_router(terminal_routes.router)
app.include_router(admin_routes.router)

Base.metadata.create_all(bind=engine)


@app.exception_handler(BrazaDashError)
async def brazadash_error_handler(request: Request, exc: BrazaDashError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    else:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
