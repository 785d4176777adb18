from fastapi import FastAPI, HTTPException, Query, Request, Response, Depends, Cookie
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator
import os
import time
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any
from openai import OpenAI

from storage.listings_db import (
    DB_PATH as DEFAULT_DB_PATH,
    ensure_db,
    create_user,
    get_user_by_id,
    get_user_by_email,
    update_user_subscription,
    record_listing_generated,
    create_listing,
    get_listing,
    query_listings,
    update_listing,
    delete_listing,
    save_compliance_check,
    latest_compliance_check,
    save_seo_analysis,
    latest_seo_analysis,
)
from services import subscriptions
from services.auth import (
    SESSION_COOKIE,
    DEMO_USERS,
    hash_password,
    verify_password,
    create_session_token,
    parse_session_token,
)
from services.compliance import check_compliance, check_with_llm
from services.copywriter import ListingDraft, generate_listing_copy, suggest_title
from services.demo_data import DEMO_WARNING, demo_listing_copy, mock_listings
from services.export import listings_to_frame, frame_to_csv
from services.llm import DEFAULT_MODEL, make_client
from services.rate_limit import RateLimiter, DEFAULT_MESSAGE as RATE_LIMIT_MESSAGE
from services.seo import analyze_seo, analyze_with_llm

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

# Configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", DEFAULT_MODEL)
DEMO_MODE = os.getenv("DEMO_MODE", "false").lower() == "true"
DB_PATH = os.getenv("FAIRLIST_DB_PATH", DEFAULT_DB_PATH)
SESSION_SECRET = os.getenv("SESSION_SECRET", "fallback-secret-key-change-in-production")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(60 * 60 * 24 * 7)))
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5000").split(",") if o.strip()]
RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "20"))
SEED_DEMO_USERS = os.getenv("SEED_DEMO_USERS", "true").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

openai_client: Optional[OpenAI] = None
if OPENAI_API_KEY and not DEMO_MODE:
    openai_client = make_client(OPENAI_API_KEY)
    print(f"LLM copy generation enabled (model={OPENAI_MODEL})")
else:
    print("OPENAI_API_KEY not set or DEMO_MODE=true: running in static/demo mode")

llm_rate_limiter = RateLimiter(RATE_LIMIT_PER_MINUTE, window_seconds=60.0)

app = FastAPI(title="FairList API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)

SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data:; font-src 'self' data:;"
    ),
    "X-XSS-Protection": "1; mode=block",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}

@app.middleware("http")
async def log_and_secure(request: Request, call_next):
    """Request timing log for /api routes plus security headers on every response."""
    start = time.perf_counter()
    response = await call_next(request)
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)

    path = request.url.path
    if path.startswith("/api"):
        duration_ms = int((time.perf_counter() - start) * 1000)
        log_line = f"{request.method} {path} {response.status_code} in {duration_ms}ms"
        if len(log_line) > 80:
            log_line = log_line[:79] + "…"
        logger.info(log_line)
    return response

def llm_available() -> bool:
    return openai_client is not None and not DEMO_MODE

@app.on_event("startup")
async def init_storage():
    """Create the database and seed the demo accounts"""
    db_recreated = ensure_db(DB_PATH)
    if db_recreated:
        print(f"Listings DB was corrupted and has been recreated empty: {DB_PATH}")

    if SEED_DEMO_USERS:
        seeded = 0
        for demo in DEMO_USERS:
            if get_user_by_email(DB_PATH, demo["email"]) is None:
                create_user(DB_PATH, demo["email"], hash_password(demo["password"]), demo["name"], demo["role"])
                seeded += 1
        print(f"Listings DB ready: path={DB_PATH}, seeded {seeded} demo user(s)")
    else:
        print(f"Listings DB ready: path={DB_PATH}")

# ---------- Request/Response models ----------

class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6, max_length=100)
    name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def email_has_at(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("Invalid email address")
        return v

class LoginRequest(BaseModel):
    email: str
    password: str

class UserOut(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    role: str
    subscription_tier: str
    is_premium: bool

def parse_features(v):
    # The old form posted a comma-separated string
    if isinstance(v, str):
        return [part.strip() for part in v.split(",") if part.strip()]
    return v

class ListingFields(BaseModel):
    property_type: str = Field(..., min_length=1)
    bedrooms: int = Field(..., ge=0)
    bathrooms: float = Field(..., ge=0)
    square_feet: Optional[int] = Field(None, ge=1)
    price: Optional[int] = Field(None, ge=1)
    location: str = ""
    features: List[str] = []
    title: Optional[str] = None

    @field_validator("features", mode="before")
    @classmethod
    def split_features(cls, v):
        return parse_features(v)

class GenerateListingRequest(ListingFields):
    additional_notes: str = ""
    template: str = "standard"
    style: str = "professional"
    include_video_script: bool = False

class CreateListingRequest(ListingFields):
    description: str = ""
    tone: Optional[str] = None
    template: Optional[str] = None
    status: str = "draft"
    social_media: Optional[Dict[str, str]] = None
    hashtags: Optional[List[str]] = None
    video_script: Optional[str] = None

class UpdateListingRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    property_type: Optional[str] = None
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[float] = Field(None, ge=0)
    square_feet: Optional[int] = Field(None, ge=1)
    price: Optional[int] = Field(None, ge=1)
    location: Optional[str] = None
    features: Optional[List[str]] = None
    tone: Optional[str] = None
    status: Optional[str] = None
    social_media: Optional[Dict[str, str]] = None
    hashtags: Optional[List[str]] = None
    video_script: Optional[str] = None

    @field_validator("features", mode="before")
    @classmethod
    def split_features(cls, v):
        return parse_features(v)

    @field_validator("title", "description", "property_type")
    @classmethod
    def not_null(cls, v):
        # These columns are NOT NULL; omit the field to leave it unchanged
        if v is None:
            raise ValueError("Field cannot be null")
        return v

LISTING_STATUSES = {"draft", "published", "archived"}

class ComplianceCheckRequest(BaseModel):
    text: str = Field(..., min_length=1)
    listing_id: Optional[int] = None
    use_ai: bool = False

class SeoAnalyzeRequest(BaseModel):
    title: str
    description: str
    location: str = ""
    image_descriptions: List[str] = []
    listing_id: Optional[int] = None
    use_ai: bool = False

class UpgradeRequest(BaseModel):
    tier: str

class AddonRequest(BaseModel):
    addon: str

# ---------- Auth helpers ----------

def user_out(user: Dict[str, Any]) -> UserOut:
    return UserOut(
        id=user["id"],
        email=user["email"],
        name=user.get("name"),
        role=user["role"],
        subscription_tier=user["subscription_tier"],
        is_premium=subscriptions.is_premium(user),
    )

def set_session_cookie(response: Response, user: Dict[str, Any]) -> None:
    token = create_session_token(user["id"], user["role"], SESSION_SECRET, SESSION_MAX_AGE)
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=SESSION_MAX_AGE,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="strict" if COOKIE_SECURE else "lax",
        path="/",
    )

def get_current_user(session: Optional[str] = Cookie(None)) -> Dict[str, Any]:
    parsed = parse_session_token(session or "", SESSION_SECRET)
    if parsed is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    user = get_user_by_id(DB_PATH, parsed.user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid authentication token")
    return user

def require_feature(user: Dict[str, Any], feature: str) -> None:
    if not subscriptions.has_feature(user, feature):
        tier = subscriptions.get_tier(user["subscription_tier"])
        raise HTTPException(status_code=403, detail=f"The {tier.label} plan does not include {feature.replace('_', ' ')}")

def enforce_rate_limit(request: Request) -> None:
    client = request.client.host if request.client else "unknown"
    if not llm_rate_limiter.hit(client, request.url.path):
        raise HTTPException(status_code=429, detail=RATE_LIMIT_MESSAGE)

def owned_listing(listing_id: int, user: Dict[str, Any], allow_admin: bool = False) -> Dict[str, Any]:
    listing = get_listing(DB_PATH, listing_id)
    if listing is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    if listing["user_id"] != user["id"] and not (allow_admin and user["role"] == "admin"):
        raise HTTPException(status_code=404, detail="Listing not found")
    return listing

# ---------- Health ----------

@app.get("/health")
def health():
    return {"status": "ok", "demo_mode": not llm_available()}

# ---------- Auth ----------

@app.post("/api/auth/register", response_model=UserOut, status_code=201)
def register(request: RegisterRequest, response: Response):
    user = create_user(DB_PATH, request.email, hash_password(request.password), request.name)
    if user is None:
        raise HTTPException(status_code=409, detail="An account with this email already exists")
    set_session_cookie(response, user)
    logger.info(f"Registered user {user['id']}")
    return user_out(user)

@app.post("/api/auth/login", response_model=UserOut)
def login(request: LoginRequest, response: Response):
    user = get_user_by_email(DB_PATH, request.email)
    if user is None or not verify_password(request.password, user["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    set_session_cookie(response, user)
    return user_out(user)

@app.post("/api/auth/logout")
def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE, path="/")
    return {"message": "Logged out successfully"}

@app.get("/api/auth/me")
def me(user: Dict[str, Any] = Depends(get_current_user)):
    return {
        "user": user_out(user),
        "subscription": subscriptions.subscription_summary(user),
    }

# ---------- Subscriptions ----------

@app.get("/api/subscriptions/plans")
def plans():
    return subscriptions.list_plans()

@app.get("/api/subscriptions/me")
def my_subscription(user: Dict[str, Any] = Depends(get_current_user)):
    return subscriptions.subscription_summary(user)

@app.post("/api/subscriptions/upgrade")
def upgrade(request: UpgradeRequest, user: Dict[str, Any] = Depends(get_current_user)):
    """Switch plans. Billing is simulated, so this only records the new tier."""
    try:
        tier = subscriptions.get_tier(request.tier)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    # Add-ons only exist on tiers that can buy them
    addons = user.get("addons") or []
    if tier.name not in subscriptions.ADDON_ELIGIBLE_TIERS:
        addons = []
    updated = update_user_subscription(DB_PATH, user["id"], subscription_tier=tier.name, addons=addons)
    if updated is None:
        raise HTTPException(status_code=500, detail="Failed to update subscription")
    logger.info(f"User {user['id']} moved from {user['subscription_tier']} to {tier.name}")
    return subscriptions.subscription_summary(updated)

@app.post("/api/subscriptions/addons")
def add_addon(request: AddonRequest, user: Dict[str, Any] = Depends(get_current_user)):
    try:
        addon = subscriptions.check_addon(user["subscription_tier"], request.addon)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))

    addons = list(user.get("addons") or [])
    if addon.code not in addons:
        addons.append(addon.code)
        user = update_user_subscription(DB_PATH, user["id"], addons=addons)
        if user is None:
            raise HTTPException(status_code=500, detail="Failed to update subscription")
    return subscriptions.subscription_summary(user)

# ---------- Listings ----------

@app.post("/api/listings/generate", status_code=201)
def generate_listing(
    request: GenerateListingRequest,
    http_request: Request,
    user: Dict[str, Any] = Depends(get_current_user),
):
    """Generate marketing copy for a property, score it, and save it as a draft listing."""
    enforce_rate_limit(http_request)

    if not subscriptions.can_generate(user):
        tier = subscriptions.get_tier(user["subscription_tier"])
        raise HTTPException(
            status_code=403,
            detail=f"{tier.label} tier limit of {tier.listing_limit} listings this month reached. Please upgrade for more listings.",
        )

    draft = ListingDraft(
        property_type=request.property_type,
        bedrooms=request.bedrooms,
        bathrooms=request.bathrooms,
        square_feet=request.square_feet,
        price=request.price,
        location=request.location,
        features=request.features,
        additional_notes=request.additional_notes,
        template=request.template,
        style=request.style,
        title=request.title,
    )
    include_social = subscriptions.has_feature(user, subscriptions.SOCIAL_CAPTIONS)
    include_hashtags = subscriptions.has_feature(user, subscriptions.HASHTAGS)
    include_video = request.include_video_script and subscriptions.has_feature(user, subscriptions.VIDEO_SCRIPT)

    warnings = []
    if request.include_video_script and not include_video:
        warnings.append("Video scripts are not included in your plan")

    if llm_available():
        try:
            copy = generate_listing_copy(
                openai_client, OPENAI_MODEL, draft,
                include_social=include_social,
                include_hashtags=include_hashtags,
                include_video=include_video,
            )
        except Exception as e:
            logger.error(f"Listing generation failed for user {user['id']}: {e}")
            raise HTTPException(status_code=502, detail=f"Failed to generate listing: {str(e)}")
    else:
        copy = demo_listing_copy(draft, include_social, include_hashtags, include_video)
        warnings.append("Demo mode: copy generated from a template, not the LLM")

    title = request.title or suggest_title(draft)
    compliance = check_compliance(copy.description)
    seo = analyze_seo(copy.description, title, request.location)

    listing = create_listing(DB_PATH, user["id"], {
        "title": title,
        "description": copy.description,
        "property_type": request.property_type,
        "bedrooms": request.bedrooms,
        "bathrooms": request.bathrooms,
        "square_feet": request.square_feet,
        "price": request.price,
        "location": request.location,
        "features": request.features,
        "tone": request.style,
        "template": request.template,
        "social_media": copy.social_media,
        "hashtags": copy.hashtags,
        "video_script": copy.video_script,
    })
    if listing is None:
        raise HTTPException(status_code=500, detail="Failed to save listing")

    save_compliance_check(DB_PATH, listing["id"], compliance)
    save_seo_analysis(DB_PATH, listing["id"], seo)
    record_listing_generated(DB_PATH, user["id"], subscriptions.current_month())

    return {
        "listing": get_listing(DB_PATH, listing["id"]),
        "generated": copy.to_dict(),
        "compliance": compliance,
        "seo": seo,
        "warnings": warnings,
    }

@app.post("/api/listings", status_code=201)
def save_listing(request: CreateListingRequest, user: Dict[str, Any] = Depends(get_current_user)):
    if request.status not in LISTING_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status: {request.status}")
    item = request.model_dump()
    if not item.get("title"):
        item["title"] = suggest_title(ListingDraft(
            property_type=request.property_type,
            bedrooms=request.bedrooms,
            bathrooms=request.bathrooms,
            location=request.location,
        ))
    listing = create_listing(DB_PATH, user["id"], item)
    if listing is None:
        raise HTTPException(status_code=500, detail="Failed to save listing")
    return listing

@app.get("/api/listings")
def list_listings(
    user: Dict[str, Any] = Depends(get_current_user),
    property_type: Optional[str] = None,
    min_bedrooms: Optional[int] = Query(None, ge=0),
    max_bedrooms: Optional[int] = Query(None, ge=0),
    min_bathrooms: Optional[float] = Query(None, ge=0),
    max_bathrooms: Optional[float] = Query(None, ge=0),
    min_price: Optional[int] = Query(None, ge=0),
    max_price: Optional[int] = Query(None, ge=0),
    location: Optional[str] = None,
    status: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    """The caller's listings with filters and pagination (newest first by default)"""
    filters = {
        "user_id": user["id"],
        "property_type": property_type,
        "min_bedrooms": min_bedrooms,
        "max_bedrooms": max_bedrooms,
        "min_bathrooms": min_bathrooms,
        "max_bathrooms": max_bathrooms,
        "min_price": min_price,
        "max_price": max_price,
        "location": location,
        "status": status,
        "sort_by": sort_by,
        "sort_order": sort_order,
        "page": page,
        "limit": limit,
    }
    rows, total = query_listings(DB_PATH, filters)
    return {
        "listings": rows,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "pages": (total + limit - 1) // limit,
        },
    }

@app.get("/api/listings/export")
def export_listings(user: Dict[str, Any] = Depends(get_current_user)):
    require_feature(user, subscriptions.CSV_EXPORT)

    rows = []
    page = 1
    while True:
        batch, total = query_listings(DB_PATH, {"user_id": user["id"], "page": page, "limit": 100})
        rows.extend(batch)
        if len(rows) >= total or not batch:
            break
        page += 1

    brand = None if subscriptions.has_feature(user, subscriptions.WHITE_LABEL) else "FairList"
    csv_text = frame_to_csv(listings_to_frame(rows, brand=brand))
    filename = f"listings_{datetime.now().strftime('%Y-%m-%d')}.csv"
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )

@app.get("/api/listings/{listing_id}")
def read_listing(listing_id: int, user: Dict[str, Any] = Depends(get_current_user)):
    return owned_listing(listing_id, user, allow_admin=True)

@app.patch("/api/listings/{listing_id}")
def edit_listing(listing_id: int, request: UpdateListingRequest, user: Dict[str, Any] = Depends(get_current_user)):
    fields = request.model_dump(exclude_unset=True)
    if "status" in fields and fields["status"] not in LISTING_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status: {fields['status']}")
    owned_listing(listing_id, user)
    updated = update_listing(DB_PATH, listing_id, user["id"], fields)
    if updated is None:
        raise HTTPException(status_code=500, detail="Failed to update listing")
    return updated

@app.delete("/api/listings/{listing_id}")
def remove_listing(listing_id: int, user: Dict[str, Any] = Depends(get_current_user)):
    owned_listing(listing_id, user)
    if not delete_listing(DB_PATH, listing_id, user["id"]):
        raise HTTPException(status_code=500, detail="Failed to delete listing")
    return {"message": "Listing deleted"}

@app.get("/api/listings/{listing_id}/compliance")
def listing_compliance(listing_id: int, user: Dict[str, Any] = Depends(get_current_user)):
    owned_listing(listing_id, user, allow_admin=True)
    check = latest_compliance_check(DB_PATH, listing_id)
    if check is None:
        raise HTTPException(status_code=404, detail="No compliance check for this listing")
    return check

@app.get("/api/listings/{listing_id}/seo")
def listing_seo(listing_id: int, user: Dict[str, Any] = Depends(get_current_user)):
    owned_listing(listing_id, user, allow_admin=True)
    analysis = latest_seo_analysis(DB_PATH, listing_id)
    if analysis is None:
        raise HTTPException(status_code=404, detail="No SEO analysis for this listing")
    return analysis

# ---------- Compliance / SEO ----------

@app.post("/api/compliance/check")
def compliance_check(
    request: ComplianceCheckRequest,
    http_request: Request,
    user: Dict[str, Any] = Depends(get_current_user),
):
    """Lint listing text for Fair Housing issues, optionally adding an LLM review"""
    enforce_rate_limit(http_request)
    require_feature(user, subscriptions.COMPLIANCE_CHECK)
    if request.listing_id is not None:
        owned_listing(request.listing_id, user)

    result = check_compliance(request.text)
    warnings = []
    ai_issues = None
    if request.use_ai:
        require_feature(user, subscriptions.AI_COMPLIANCE)
        if llm_available():
            try:
                ai_issues = check_with_llm(openai_client, OPENAI_MODEL, request.text)
            except Exception as e:
                logger.error(f"LLM compliance check failed: {e}")
                ai_issues = []
                warnings.append(f"AI review unavailable: {str(e)}")
        else:
            ai_issues = []
            warnings.append(DEMO_WARNING)
    result["ai_issues"] = ai_issues

    if request.listing_id is not None:
        save_compliance_check(DB_PATH, request.listing_id, result)

    result["warnings"] = warnings
    return result

@app.post("/api/seo/analyze")
def seo_analyze(
    request: SeoAnalyzeRequest,
    http_request: Request,
    user: Dict[str, Any] = Depends(get_current_user),
):
    """Score a listing for SEO, optionally adding LLM metrics"""
    enforce_rate_limit(http_request)
    require_feature(user, subscriptions.SEO_ANALYSIS)
    if request.listing_id is not None:
        owned_listing(request.listing_id, user)

    result = analyze_seo(request.description, request.title, request.location, request.image_descriptions)
    warnings = []
    ai_metrics = None
    if request.use_ai:
        if llm_available():
            try:
                ai_metrics = analyze_with_llm(openai_client, OPENAI_MODEL, request.title, request.description)
            except Exception as e:
                logger.error(f"LLM SEO analysis failed: {e}")
                ai_metrics = []
                warnings.append(f"AI review unavailable: {str(e)}")
        else:
            ai_metrics = []
            warnings.append(DEMO_WARNING)
    result["ai_metrics"] = ai_metrics

    if request.listing_id is not None:
        save_seo_analysis(DB_PATH, request.listing_id, result)

    result["warnings"] = warnings
    return result

# ---------- Static/demo mode ----------

@app.get("/api/demo/listings")
def demo_listings():
    return {"listings": mock_listings()}
