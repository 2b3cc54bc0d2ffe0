import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jotter.db.couchdb import ensure_database
from jotter.errors import register_error_handlers
from jotter.routers import auth, posts
from jotter.settings import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        ensure_database()
        logger.info(f"Using CouchDB database {settings.COUCHDB_DATABASE}")
    except Exception as e:
        logger.error(f"Could not prepare CouchDB database: {e}")
    yield


app = FastAPI(title="Jotter API", description="Personal blog backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)

app.include_router(auth.router, prefix=settings.API_PREFIX)
app.include_router(posts.router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    return {"message": "Jotter API is running"}
