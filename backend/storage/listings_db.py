"""
SQLite listings database layer.
Handles storage of users, listings, and the compliance/SEO history per listing.
"""
import sqlite3
from contextlib import closing
import os
import json
import shutil
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

DB_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "data", "fairlist.db")

# Columns stored as JSON text
USER_JSON_FIELDS = ("addons",)
LISTING_JSON_FIELDS = ("features", "hashtags", "social_media")

LISTING_FIELDS = [
    "title", "description", "property_type", "bedrooms", "bathrooms", "square_feet",
    "price", "location", "features", "tone", "template", "status", "social_media",
    "hashtags", "video_script", "compliance_score", "seo_score",
]

SORTABLE_COLUMNS = {
    "created_at", "updated_at", "price", "bedrooms", "bathrooms",
    "square_feet", "title", "seo_score", "compliance_score",
}

def _now_iso() -> str:
    return datetime.now().isoformat()

def _connect(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn

def _decode_row(row: Optional[sqlite3.Row], json_fields: Tuple[str, ...]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    d = dict(row)
    for field in json_fields:
        raw = d.get(field)
        if isinstance(raw, str):
            try:
                d[field] = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning(f"Could not decode JSON column {field}: {raw[:40]}")
                d[field] = None
    return d

def _encode(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value)

def health_check_db(db_path: str) -> bool:
    """
    Check database integrity using PRAGMA integrity_check.
    Returns True if healthy, False if corrupted.
    """
    if not os.path.exists(db_path):
        return True  # Missing is not corrupted

    try:
        with closing(sqlite3.connect(db_path)) as conn:
            result = conn.execute("PRAGMA integrity_check").fetchone()

        if result and result[0] == "ok":
            return True
        logger.warning(f"DB integrity check failed: {result}")
        return False
    except sqlite3.DatabaseError as e:
        logger.warning(f"DB integrity check raised DatabaseError: {e}")
        return False

def ensure_db(db_path: str = DB_PATH) -> bool:
    """
    Create database and tables if they don't exist.
    If DB is corrupted, back it up and recreate it.
    Returns True if DB was recreated (fresh/empty), False otherwise.
    """
    os.makedirs(os.path.dirname(db_path), exist_ok=True)

    db_recreated = False
    if os.path.exists(db_path) and not health_check_db(db_path):
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_path = f"{db_path}.corrupt.{timestamp}"
        try:
            shutil.move(db_path, backup_path)
            logger.warning(f"DB corrupted → backed up to {backup_path} and recreated")
        except OSError as e:
            logger.error(f"Failed to backup corrupted DB: {e}")
            os.remove(db_path)
        db_recreated = True

    with closing(_connect(db_path)) as conn, conn:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                email TEXT NOT NULL UNIQUE,
                name TEXT,
                password_hash TEXT NOT NULL,
                role TEXT NOT NULL DEFAULT 'agent',
                subscription_tier TEXT NOT NULL DEFAULT 'free',
                addons TEXT NOT NULL DEFAULT '[]',
                listings_this_month INTEGER NOT NULL DEFAULT 0,
                quota_month TEXT,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS listings (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                title TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                property_type TEXT NOT NULL,
                bedrooms INTEGER,
                bathrooms REAL,
                square_feet INTEGER,
                price INTEGER,
                location TEXT,
                features TEXT,
                tone TEXT,
                template TEXT,
                status TEXT NOT NULL DEFAULT 'draft',
                social_media TEXT,
                hashtags TEXT,
                video_script TEXT,
                compliance_score INTEGER,
                seo_score INTEGER,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS compliance_checks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                listing_id INTEGER NOT NULL REFERENCES listings(id) ON DELETE CASCADE,
                score INTEGER NOT NULL,
                is_compliant INTEGER NOT NULL,
                issues TEXT,
                ai_issues TEXT,
                improved_text TEXT,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS seo_analyses (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                listing_id INTEGER NOT NULL REFERENCES listings(id) ON DELETE CASCADE,
                score INTEGER NOT NULL,
                keywords TEXT,
                suggestions TEXT,
                ai_metrics TEXT,
                improved_text TEXT,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_listings_user ON listings(user_id, created_at)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_checks_listing ON compliance_checks(listing_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_seo_listing ON seo_analyses(listing_id)")

    logger.info(f"Database ensured at {db_path}")
    return db_recreated
# ---------- Users ----------

def create_user(
    db_path: str,
    email: str,
    password_hash: str,
    name: Optional[str] = None,
    role: str = "agent",
    subscription_tier: str = "free",
) -> Optional[Dict[str, Any]]:
    """
    Insert a user. Returns the stored user, or None if the email is taken.
    """
    try:
        with closing(_connect(db_path)) as conn, conn:
            cursor = conn.execute("""
                INSERT INTO users (email, name, password_hash, role, subscription_tier, addons, created_at)
                VALUES (?, ?, ?, ?, ?, '[]', ?)
            """, (email.strip().lower(), name, password_hash, role, subscription_tier, _now_iso()))
            user_id = cursor.lastrowid
    except sqlite3.IntegrityError:
        logger.info(f"User already exists: {email}")
        return None
    return get_user_by_id(db_path, user_id)

def get_user_by_id(db_path: str, user_id: int) -> Optional[Dict[str, Any]]:
    try:
        with closing(_connect(db_path)) as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _decode_row(row, USER_JSON_FIELDS)
    except sqlite3.DatabaseError as e:
        logger.warning(f"DB error in get_user_by_id: {e}")
        return None

def get_user_by_email(db_path: str, email: str) -> Optional[Dict[str, Any]]:
    try:
        with closing(_connect(db_path)) as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email.strip().lower(),)).fetchone()
        return _decode_row(row, USER_JSON_FIELDS)
    except sqlite3.DatabaseError as e:
        logger.warning(f"DB error in get_user_by_email: {e}")
        return None

def update_user_subscription(
    db_path: str,
    user_id: int,
    subscription_tier: Optional[str] = None,
    addons: Optional[List[str]] = None,
) -> Optional[Dict[str, Any]]:
    """Change tier and/or add-ons. Fields left as None are not touched."""
    sets = []
    params: List[Any] = []
    if subscription_tier is not None:
        sets.append("subscription_tier = ?")
        params.append(subscription_tier)
    if addons is not None:
        sets.append("addons = ?")
        params.append(json.dumps(addons))
    if not sets:
        return get_user_by_id(db_path, user_id)

    try:
        with closing(_connect(db_path)) as conn, conn:
            conn.execute(f"UPDATE users SET {', '.join(sets)} WHERE id = ?", (*params, user_id))
    except sqlite3.DatabaseError as e:
        logger.error(f"Error updating subscription for user {user_id}: {e}")
        return None
    return get_user_by_id(db_path, user_id)

def record_listing_generated(db_path: str, user_id: int, month: str) -> bool:
    """
    Bump the monthly listing counter. The counter restarts at 1 when the stored
    month differs from `month` (YYYY-MM).
    """
    try:
        with closing(_connect(db_path)) as conn, conn:
            conn.execute("""
                UPDATE users SET
                    listings_this_month = CASE WHEN quota_month = ? THEN listings_this_month + 1 ELSE 1 END,
                    quota_month = ?
                WHERE id = ?
            """, (month, month, user_id))
        return True
    except sqlite3.DatabaseError as e:
        logger.error(f"Error recording generated listing for user {user_id}: {e}")
        return False

# ---------- Listings ----------

def create_listing(db_path: str, user_id: int, item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Insert a listing owned by user_id.
    Returns the stored listing, or None on failure.
    """
    now = _now_iso()
    values = {field: item.get(field) for field in LISTING_FIELDS}
    values["status"] = values["status"] or "draft"
    values["description"] = values["description"] or ""
    for field in LISTING_JSON_FIELDS:
        values[field] = _encode(values[field])

    columns = ["user_id", *LISTING_FIELDS, "created_at", "updated_at"]
    params = [user_id, *(values[f] for f in LISTING_FIELDS), now, now]
    placeholders = ", ".join("?" for _ in columns)

    try:
        with closing(_connect(db_path)) as conn, conn:
            cursor = conn.execute(
                f"INSERT INTO listings ({', '.join(columns)}) VALUES ({placeholders})",
                params,
            )
            listing_id = cursor.lastrowid
    except sqlite3.DatabaseError as e:
        logger.error(f"Error creating listing for user {user_id}: {e}")
        return None
    return get_listing(db_path, listing_id)

def get_listing(db_path: str, listing_id: int) -> Optional[Dict[str, Any]]:
    try:
        with closing(_connect(db_path)) as conn:
            row = conn.execute("SELECT * FROM listings WHERE id = ?", (listing_id,)).fetchone()
        return _decode_row(row, LISTING_JSON_FIELDS)
    except sqlite3.DatabaseError as e:
        logger.warning(f"DB error in get_listing: {e}")
        return None

def query_listings(db_path: str, filters: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], int]:
    """
    Query listings with optional filters, sorting and pagination.

    Supported filter keys: user_id, property_type, min_bedrooms, max_bedrooms,
    min_bathrooms, max_bathrooms, min_price, max_price, location (substring,
    case-insensitive), status, sort_by, sort_order ("asc"|"desc"), page, limit.

    Returns (rows for the page, total rows matching the filters).
    """
    clauses = []
    params: List[Any] = []

    exact = {"user_id": "user_id", "property_type": "property_type", "status": "status"}
    for key, column in exact.items():
        if filters.get(key) is not None:
            clauses.append(f"{column} = ?")
            params.append(filters[key])

    ranges = [
        ("min_bedrooms", "bedrooms", ">="), ("max_bedrooms", "bedrooms", "<="),
        ("min_bathrooms", "bathrooms", ">="), ("max_bathrooms", "bathrooms", "<="),
        ("min_price", "price", ">="), ("max_price", "price", "<="),
    ]
    for key, column, op in ranges:
        if filters.get(key) is not None:
            clauses.append(f"{column} {op} ?")
            params.append(filters[key])

    if filters.get("location"):
        clauses.append("LOWER(location) LIKE ?")
        params.append(f"%{str(filters['location']).lower()}%")

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    sort_by = filters.get("sort_by") or "created_at"
    if sort_by not in SORTABLE_COLUMNS:
        logger.info(f"Ignoring unsupported sort column: {sort_by}")
        sort_by = "created_at"
    sort_order = "ASC" if str(filters.get("sort_order", "desc")).lower() == "asc" else "DESC"

    page = max(1, int(filters.get("page") or 1))
    limit = max(1, int(filters.get("limit") or 10))
    offset = (page - 1) * limit

    try:
        with closing(_connect(db_path)) as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM listings {where}", params).fetchone()[0]
            rows = conn.execute(
                f"SELECT * FROM listings {where} ORDER BY {sort_by} {sort_order}, id {sort_order} LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
    except sqlite3.DatabaseError as e:
        logger.warning(f"DB error in query_listings: {e}")
        return [], 0

    return [_decode_row(row, LISTING_JSON_FIELDS) for row in rows], total

def update_listing(db_path: str, listing_id: int, user_id: int, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Update the given fields of a listing owned by user_id.
    Returns the updated listing, or None if it does not exist / is not owned
    or the write was rejected (the transaction is rolled back).
    """
    updates = {k: v for k, v in fields.items() if k in LISTING_FIELDS}
    for field in LISTING_JSON_FIELDS:
        if field in updates:
            updates[field] = _encode(updates[field])
    updates["updated_at"] = _now_iso()

    assignments = ", ".join(f"{column} = ?" for column in updates)
    try:
        with closing(_connect(db_path)) as conn, conn:
            cursor = conn.execute(
                f"UPDATE listings SET {assignments} WHERE id = ? AND user_id = ?",
                (*updates.values(), listing_id, user_id),
            )
            changed = cursor.rowcount
    except sqlite3.DatabaseError as e:
        logger.error(f"Error updating listing {listing_id}: {e}")
        return None

    if not changed:
        return None
    return get_listing(db_path, listing_id)

def delete_listing(db_path: str, listing_id: int, user_id: int) -> bool:
    """Delete a listing owned by user_id. Returns True if a row was removed."""
    try:
        with closing(_connect(db_path)) as conn, conn:
            cursor = conn.execute("DELETE FROM listings WHERE id = ? AND user_id = ?", (listing_id, user_id))
            deleted = cursor.rowcount
        return deleted > 0
    except sqlite3.DatabaseError as e:
        logger.error(f"Error deleting listing {listing_id}: {e}")
        return False

# ---------- Compliance / SEO history ----------

def save_compliance_check(db_path: str, listing_id: int, result: Dict[str, Any]) -> Optional[int]:
    """Store a compliance result and mirror its score onto the listing."""
    try:
        with closing(_connect(db_path)) as conn, conn:
            cursor = conn.execute("""
                INSERT INTO compliance_checks (listing_id, score, is_compliant, issues, ai_issues, improved_text, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                listing_id,
                result["score"],
                1 if result["is_compliant"] else 0,
                json.dumps(result.get("issues", [])),
                _encode(result.get("ai_issues")),
                result.get("improved_text"),
                _now_iso(),
            ))
            check_id = cursor.lastrowid
            conn.execute("UPDATE listings SET compliance_score = ? WHERE id = ?", (result["score"], listing_id))
        return check_id
    except sqlite3.DatabaseError as e:
        logger.error(f"Error saving compliance check for listing {listing_id}: {e}")
        return None

def latest_compliance_check(db_path: str, listing_id: int) -> Optional[Dict[str, Any]]:
    try:
        with closing(_connect(db_path)) as conn:
            row = conn.execute("""
                SELECT * FROM compliance_checks WHERE listing_id = ?
                ORDER BY created_at DESC, id DESC LIMIT 1
            """, (listing_id,)).fetchone()
    except sqlite3.DatabaseError as e:
        logger.warning(f"DB error in latest_compliance_check: {e}")
        return None
    check = _decode_row(row, ("issues", "ai_issues"))
    if check is not None:
        check["is_compliant"] = bool(check["is_compliant"])
    return check

def save_seo_analysis(db_path: str, listing_id: int, result: Dict[str, Any]) -> Optional[int]:
    """Store an SEO result and mirror its score onto the listing."""
    try:
        with closing(_connect(db_path)) as conn, conn:
            cursor = conn.execute("""
                INSERT INTO seo_analyses (listing_id, score, keywords, suggestions, ai_metrics, improved_text, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                listing_id,
                result["score"],
                json.dumps(result.get("keywords", [])),
                json.dumps(result.get("suggestions", [])),
                _encode(result.get("ai_metrics")),
                result.get("improved_text"),
                _now_iso(),
            ))
            analysis_id = cursor.lastrowid
            conn.execute("UPDATE listings SET seo_score = ? WHERE id = ?", (result["score"], listing_id))
        return analysis_id
    except sqlite3.DatabaseError as e:
        logger.error(f"Error saving SEO analysis for listing {listing_id}: {e}")
        return None

def latest_seo_analysis(db_path: str, listing_id: int) -> Optional[Dict[str, Any]]:
    try:
        with closing(_connect(db_path)) as conn:
            row = conn.execute("""
                SELECT * FROM seo_analyses WHERE listing_id = ?
                ORDER BY created_at DESC, id DESC LIMIT 1
            """, (listing_id,)).fetchone()
    except sqlite3.DatabaseError as e:
        logger.warning(f"DB error in latest_seo_analysis: {e}")
        return None
    return _decode_row(row, ("keywords", "suggestions", "ai_metrics"))
