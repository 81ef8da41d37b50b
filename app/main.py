"""Auth² identity service: JWT login, five-tier roles, email/phone verification and password reset.

Wiring only: settings, CORS and the v1 routers (health, auth, verification, admin).
"""

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import router as v1_router
from app.core.config import settings

app = FastAPI(
    title="Auth² API",
    description="Account registration, role-gated administration, verification codes and password reset.",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    """Root route; names the service and points at the docs."""
    return {"message": "Auth² API", "docs": "/docs"}
