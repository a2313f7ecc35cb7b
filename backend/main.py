# backend/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

load_dotenv()

from config import settings
from database import init_db
from services.errors import StockError

# Import routers
from routes.auth import router as auth_router
from routes.admin import router as admin_router
from routes.logs import router as logs_router
from routes.categories import router as categories_router
from routes.employees import router as employees_router
from routes.products import router as products_router
from routes.movements import router as movements_router
from routes.integrity import router as integrity_router
from routes.imports import router as imports_router
from routes.reports import router as reports_router
from routes.stats import router as stats_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialisation
init_db()

app = FastAPI(title="StashKeeper API", version="1.0.0")

# CORS Configuration
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Domain errors from the services layer carry their own HTTP status
@app.exception_handler(StockError)
async def stock_error_handler(request: Request, exc: StockError):
    logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Register routers
app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(logs_router)
app.include_router(categories_router)
app.include_router(employees_router)
app.include_router(products_router)
app.include_router(movements_router)
app.include_router(integrity_router)
app.include_router(imports_router)
app.include_router(reports_router)
app.include_router(stats_router)


@app.get("/")
def read_root():
    return {"message": "StashKeeper API is running!"}
