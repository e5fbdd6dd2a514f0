import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from prolance import __version__
from prolance.admin.routes import router as admin_router
from prolance.applications.routes import router as applications_router
from prolance.assist.routes import router as assist_router
from prolance.auth.routes import router as auth_router
from prolance.contracts.routes import router as contracts_router
from prolance.database import init_db
from prolance.errors import install_exception_handlers
from prolance.messaging.routes import router as chat_router
from prolance.notifications.routes import router as notifications_router
from prolance.payments.routes import router as payments_router
from prolance.projects.routes import router as projects_router
from prolance.projects.workspace import router as workspace_router
from prolance.ratings.routes import router as ratings_router
from prolance.users.routes import router as users_router

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEFAULT_ORIGINS = ["http://localhost:5173", "http://localhost:3000"]
FRONTEND_ORIGINS = [
    origin.strip() for origin in os.getenv("FRONTEND_ORIGINS", "").split(",") if origin.strip()
]

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(
    title="Prolance API",
    description="Freelance marketplace backend: projects, proposals, contracts, escrow payments and chat",
    version=__version__
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=DEFAULT_ORIGINS + FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_exception_handlers(app)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(projects_router)
app.include_router(workspace_router)
app.include_router(applications_router)
app.include_router(contracts_router)
app.include_router(payments_router)
app.include_router(chat_router)
app.include_router(notifications_router)
app.include_router(ratings_router)
app.include_router(admin_router)
app.include_router(assist_router)


@app.on_event("startup")
async def startup_event():
    init_db()


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "prolance-api"}


@app.get("/ping", response_class=PlainTextResponse)
def ping():
    return "PONG"
