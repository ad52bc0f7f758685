"""
Quizforge API — Main Application
FastAPI application that turns uploaded course material into quizzes and
records learners' attempts on them.
"""

from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auth.identity import BearerTokenIdentityResolver, ClaimsIdentityResolver, CompositeIdentityResolver
from database.database import engine, Base
from generation.gpt_client import OpenAIQuizGenerator
from routers import quizzes

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create tables, build the generator (fails fast without OPENAI_API_KEY)."""
    Base.metadata.create_all(bind=engine)
    if getattr(app.state, "generator", None) is None:
        app.state.generator = OpenAIQuizGenerator.from_env()
    if getattr(app.state, "identity_resolver", None) is None:
        app.state.identity_resolver = CompositeIdentityResolver([
            BearerTokenIdentityResolver(),
            ClaimsIdentityResolver(),
        ])
    log.info("startup: model=%s", getattr(app.state.generator, "model", type(app.state.generator).__name__))
    yield


app = FastAPI(
    title="Quizforge API",
    description="Quiz generation from uploaded course material, attempts and result summaries",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ─── Routers ───────────────────────────────────────────────────────────────────

app.include_router(quizzes.router)           # /quizzes/*


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "quizforge"}
