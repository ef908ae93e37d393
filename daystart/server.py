"""HTTP settings service: per-user day start time behind a bearer token.

Accounts live elsewhere. A request is trusted when it carries an HS256 token
signed with ``JWT_SECRET`` whose ``user_id`` claim names the caller; that id
keys the caller's settings document.
"""
from fastapi import FastAPI, APIRouter, HTTPException, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient
import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from datetime import datetime, timezone, timedelta
import jwt

from .day_boundary import (
    DEFAULT_DAY_START_TIME,
    format_logical_day,
    is_valid_day_start_time,
    logical_day_bounds,
    normalize_day_start_time,
    today,
)
from .models import (
    DayResponse,
    IdentityResponse,
    UserSettingsResponse,
    UserSettingsUpdate,
    UserSettingsUpdateResponse,
)
from .settings_store import JsonSettingsStore, MongoSettingsStore

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')

logger = logging.getLogger(__name__)

APP_ENV = os.environ.get("APP_ENV") or "development"
IS_PROD = APP_ENV.lower() in {"prod", "production"}

JWT_SECRET = os.environ.get("JWT_SECRET") or "daystart-dev-secret"
JWT_SECRET_FROM_ENV = bool(os.environ.get("JWT_SECRET"))
JWT_ALGORITHM = "HS256"
TOKEN_LIFETIME = timedelta(hours=24)

app = FastAPI(title="DayStart Settings API")
api_router = APIRouter(prefix="/api")
bearer = HTTPBearer()


# ============== TOKENS ==============

def create_access_token(user_id: str, email: Optional[str] = None, lifetime: timedelta = TOKEN_LIFETIME) -> str:
    """Sign a token the service accepts. Used by tests and operator tooling."""
    claims: Dict[str, Any] = {"user_id": user_id, "exp": datetime.now(timezone.utc) + lifetime}
    if email:
        claims["email"] = email
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_token(credentials: HTTPAuthorizationCredentials = Depends(bearer)) -> Dict[str, Any]:
    try:
        claims = jwt.decode(credentials.credentials, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if not claims.get("user_id"):
        raise HTTPException(status_code=401, detail="Invalid token")
    return claims


def settings_store(request: Request):
    store = getattr(request.app.state, "settings_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Settings store unavailable")
    return store


async def saved_day_start_time(store, user_id: str) -> str:
    saved = await store.load(user_id) or {}
    value = saved.get("day_start_time")
    if is_valid_day_start_time(value):
        return normalize_day_start_time(value)
    return DEFAULT_DAY_START_TIME


# ============== ROUTES ==============

@api_router.get("/auth/me", response_model=IdentityResponse)
async def whoami(claims: dict = Depends(verify_token)):
    return IdentityResponse(id=claims["user_id"], email=claims.get("email"))


@api_router.get("/user/settings", response_model=UserSettingsResponse)
async def read_settings(claims: dict = Depends(verify_token), store=Depends(settings_store)):
    return UserSettingsResponse(day_start_time=await saved_day_start_time(store, claims["user_id"]))


@api_router.put("/user/settings", response_model=UserSettingsUpdateResponse)
async def write_settings(update: UserSettingsUpdate, claims: dict = Depends(verify_token), store=Depends(settings_store)):
    user_id = claims["user_id"]
    if update.day_start_time is None:
        return UserSettingsUpdateResponse(day_start_time=await saved_day_start_time(store, user_id))
    if not is_valid_day_start_time(update.day_start_time):
        raise HTTPException(status_code=400, detail="Invalid time format. Use HH:MM")

    value = normalize_day_start_time(update.day_start_time)
    await store.save(user_id, {"day_start_time": value})
    logger.info("Day start time updated: user=%s value=%s", user_id, value)
    return UserSettingsUpdateResponse(day_start_time=value)


@api_router.get("/day", response_model=DayResponse)
async def current_day(claims: dict = Depends(verify_token), store=Depends(settings_store)):
    day_start_time = await saved_day_start_time(store, claims["user_id"])
    day = today(day_start_time)
    start, end = logical_day_bounds(day, day_start_time)
    return DayResponse(
        date=format_logical_day(day),
        day_start_time=day_start_time,
        start=start.isoformat(),
        end=end.isoformat(),
    )


@api_router.get("/health")
async def health_check():
    return {"status": "healthy"}


app.include_router(api_router)

cors_origins = [o.strip() for o in os.environ.get('CORS_ORIGINS', '*').split(',') if o.strip()] or ['*']
app.add_middleware(
    CORSMiddleware,
    # Browsers reject credentials combined with a wildcard origin.
    allow_credentials=cors_origins != ['*'],
    allow_origins=cors_origins,
    allow_methods=["GET", "PUT"],
    allow_headers=["*"],
)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


async def open_settings_store():
    """Mongo when MONGO_URL answers a ping, the JSON file otherwise."""
    mongo_url = os.environ.get("MONGO_URL")
    if mongo_url:
        mongo = AsyncIOMotorClient(mongo_url, serverSelectionTimeoutMS=2000)
        try:
            await mongo.admin.command("ping")
        except Exception as e:
            logger.warning("MongoDB not available (%s). Using the settings file.", str(e))
            mongo.close()
        else:
            db_name = os.environ.get("DB_NAME", "daystart")
            logger.info("Settings stored in MongoDB: %s / %s", mongo_url, db_name)
            return MongoSettingsStore(mongo[db_name]["user_settings"]), mongo

    data_file = os.environ.get("DATA_FILE")
    path = Path(data_file) if data_file else ROOT_DIR / "data" / "settings.json"
    logger.warning("Settings stored in %s", str(path))
    return JsonSettingsStore(path), None


@app.on_event("startup")
async def startup():
    if not JWT_SECRET_FROM_ENV:
        if IS_PROD:
            raise RuntimeError("JWT_SECRET must be set in production.")
        logger.warning("JWT_SECRET not set; tokens are signed with a development secret.")
    app.state.settings_store, app.state.mongo = await open_settings_store()


@app.on_event("shutdown")
async def shutdown():
    mongo = getattr(app.state, "mongo", None)
    if mongo is not None:
        mongo.close()
    app.state.settings_store = None
    app.state.mongo = None
