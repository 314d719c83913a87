# =============================================================================
# tests/fakes.py - In-Memory Supabase and Redis
# =============================================================================
# Stand-ins for the async Supabase client and the Redis client, covering
# exactly what the services call:
# - table(...).select/insert/update/upsert/delete with eq/neq/is_/gt/order/limit
# - auth.sign_up / sign_in_with_password / get_user / refresh_session /
#   exchange_code_for_session / sign_in_with_otp
# - auth.admin.list_users / update_user_by_id / delete_user / sign_out
#
# Unique columns raise the same PostgREST APIError (code 23505) the real
# API does. execute() yields to the event loop once so asyncio.gather can
# interleave concurrent callers between their read and their write.
# =============================================================================

import asyncio
import secrets
import uuid
from copy import deepcopy
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any

from jose import jwt
from postgrest.exceptions import APIError
from supabase import AuthApiError

from app.config import settings
from lib.utils import parse_timestamp

BASE_TIME = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)

UNIQUE_COLUMNS = {
    "profiles": ("id",),
    "invite_codes": ("code",),
    "invite_tokens": ("token",),
}

COLUMN_DEFAULTS = {
    "profiles": {"role": "friend", "avatar_url": None, "invited_by": None, "invite_code": None},
    "invite_codes": {"is_active": True, "max_uses": None, "current_uses": 0, "expires_at": None},
    "invite_tokens": {"used_at": None, "display_name": None, "created_by_email": None},
}


def _same(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is b
    return str(a) == str(b)


def _after(a: Any, b: Any) -> bool:
    """Timestamp comparison the way Postgres does it for timestamptz."""
    first, second = parse_timestamp(a), parse_timestamp(b)
    return first is not None and second is not None and first > second


class FakeResponse:
    def __init__(self, data: list[dict[str, Any]]):
        self.data = data


class FakeQuery:
    """Chainable query builder over one table of a FakeSupabase."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload: Any = None
        self.on_conflict = "id"
        self.filters: list[tuple[str, str, Any]] = []
        self.order_by: tuple[str, bool] | None = None
        self.max_rows: int | None = None

    # Operations
    def select(self, *columns: str):
        self.op = "select"
        return self

    def insert(self, rows):
        self.op, self.payload = "insert", rows
        return self

    def update(self, changes: dict[str, Any]):
        self.op, self.payload = "update", changes
        return self

    def upsert(self, rows, on_conflict: str = "id", **_):
        self.op, self.payload, self.on_conflict = "upsert", rows, on_conflict
        return self

    def delete(self):
        self.op = "delete"
        return self

    # Filters
    def eq(self, column: str, value: Any):
        self.filters.append(("eq", column, value))
        return self

    def neq(self, column: str, value: Any):
        self.filters.append(("neq", column, value))
        return self

    def is_(self, column: str, value: Any):
        self.filters.append(("is", column, value))
        return self

    def gt(self, column: str, value: Any):
        self.filters.append(("gt", column, value))
        return self

    def order(self, column: str, desc: bool = False, **_):
        self.order_by = (column, desc)
        return self

    def limit(self, count: int):
        self.max_rows = count
        return self

    def _matches(self, row: dict[str, Any]) -> bool:
        for kind, column, value in self.filters:
            current = row.get(column)
            if kind == "eq" and not _same(current, value):
                return False
            if kind == "neq" and _same(current, value):
                return False
            if kind == "is" and value in ("null", None) and current is not None:
                return False
            if kind == "gt" and not _after(current, value):
                return False
        return True

    async def execute(self) -> FakeResponse:
        await asyncio.sleep(0)
        self.db.calls.append((self.table, self.op))

        failure = self.db.failures.pop((self.table, self.op), None)
        if failure is not None:
            raise failure

        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "select":
            found = [row for row in rows if self._matches(row)]
            if self.order_by:
                column, desc = self.order_by
                found.sort(key=lambda r: str(r.get(column) or ""), reverse=desc)
            if self.max_rows is not None:
                found = found[: self.max_rows]
            return FakeResponse(deepcopy(found))

        if self.op == "insert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            created = [self.db.insert_row(self.table, row) for row in payload]
            return FakeResponse(deepcopy(created))

        if self.op == "upsert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            result = []
            for row in payload:
                existing = next(
                    (r for r in rows if _same(r.get(self.on_conflict), row.get(self.on_conflict))),
                    None,
                )
                if existing is None:
                    result.append(self.db.insert_row(self.table, row))
                else:
                    existing.update(deepcopy(row))
                    result.append(existing)
            return FakeResponse(deepcopy(result))

        if self.op == "update":
            changed = [row for row in rows if self._matches(row)]
            for row in changed:
                row.update(deepcopy(self.payload))
            return FakeResponse(deepcopy(changed))

        if self.op == "delete":
            removed = [row for row in rows if self._matches(row)]
            self.db.tables[self.table] = [row for row in rows if not self._matches(row)]
            return FakeResponse(deepcopy(removed))

        raise AssertionError(f"Unsupported operation {self.op}")


# =============================================================================
# Auth
# =============================================================================

def make_user(
    email: str,
    user_metadata: dict[str, Any] | None = None,
    app_metadata: dict[str, Any] | None = None,
    confirmed: bool = True,
    created_at: datetime | None = None,
    user_id: str | None = None,
) -> SimpleNamespace:
    """A gotrue-like User object."""
    created = created_at or BASE_TIME
    return SimpleNamespace(
        id=user_id or str(uuid.uuid4()),
        email=email,
        user_metadata=dict(user_metadata or {}),
        app_metadata={"provider": "email", "providers": ["email"], **(app_metadata or {})},
        email_confirmed_at=created.isoformat() if confirmed else None,
        created_at=created.isoformat(),
    )


def issue_access_token(user_id: str, email: str | None = None, expires_in: int = 3600) -> str:
    """A Supabase-shaped HS256 access token signed with the test secret."""
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "role": "authenticated",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
    }
    return jwt.encode(claims, settings.SUPABASE_JWT_SECRET, algorithm="HS256")


class FakeAdminAuth:
    def __init__(self, auth: "FakeAuth"):
        self.auth = auth
        self.signed_out: list[str] = []
        self.fail_update: Exception | None = None

    async def list_users(self, page: int = 1, per_page: int = 50):
        await asyncio.sleep(0)
        users = list(self.auth.users.values())
        start = (page - 1) * per_page
        return users[start:start + per_page]

    async def update_user_by_id(self, uid: str, attributes: dict[str, Any]):
        await asyncio.sleep(0)
        if self.fail_update is not None:
            raise self.fail_update
        user = self.auth.users.get(str(uid))
        if user is None:
            raise AuthApiError("User not found", 404, "user_not_found")
        # GoTrue merges app_metadata keys rather than replacing the object
        user.app_metadata.update(attributes.get("app_metadata") or {})
        if "user_metadata" in attributes:
            user.user_metadata.update(attributes["user_metadata"] or {})
        return SimpleNamespace(user=user)

    async def delete_user(self, user_id: str, should_soft_delete: bool = False):
        await asyncio.sleep(0)
        user = self.auth.users.pop(str(user_id), None)
        if user is None:
            raise AuthApiError("User not found", 404, "user_not_found")
        self.auth.passwords.pop(user.email, None)
        # profiles.id references auth.users on delete cascade
        profiles = self.auth.db.tables.get("profiles", [])
        self.auth.db.tables["profiles"] = [p for p in profiles if str(p["id"]) != str(user_id)]

    async def sign_out(self, jwt_token: str, scope: str = "global"):
        await asyncio.sleep(0)
        self.signed_out.append(jwt_token)


class FakeAuth:
    """
    Enough of Supabase Auth for the facade.

    `auto_confirm` mirrors the project setting "Confirm email": when True
    sign_up returns a session immediately.
    """

    def __init__(self, db: "FakeSupabase"):
        self.db = db
        self.users: dict[str, SimpleNamespace] = {}
        self.passwords: dict[str, str] = {}
        self.codes: dict[str, str] = {}
        self.refresh_tokens: dict[str, str] = {}
        self.sign_ups: list[dict[str, Any]] = []
        self.otp_requests: list[dict[str, Any]] = []
        self.auto_confirm = False
        self.fail_sign_up: Exception | None = None
        self.admin = FakeAdminAuth(self)

    def add_user(self, email: str, password: str = "password123", **kwargs) -> SimpleNamespace:
        user = make_user(email, **kwargs)
        self.users[user.id] = user
        self.passwords[email] = password
        return user

    def session_for(self, user: SimpleNamespace) -> SimpleNamespace:
        refresh = secrets.token_urlsafe(16)
        self.refresh_tokens[refresh] = user.id
        return SimpleNamespace(
            access_token=issue_access_token(user.id, user.email),
            refresh_token=refresh,
            expires_in=3600,
            token_type="bearer",
        )

    def issue_code(self, user: SimpleNamespace) -> str:
        """The one-time code an emailed link would carry."""
        code = secrets.token_urlsafe(8)
        self.codes[code] = user.id
        return code

    async def sign_up(self, credentials: dict[str, Any]):
        await asyncio.sleep(0)
        self.sign_ups.append(credentials)
        if self.fail_sign_up is not None:
            raise self.fail_sign_up
        email = credentials["email"]
        if email in self.passwords:
            raise AuthApiError("User already registered", 422, "user_already_exists")
        options = credentials.get("options", {})
        user = self.add_user(
            email,
            credentials["password"],
            user_metadata=options.get("data"),
            confirmed=self.auto_confirm,
        )
        session = self.session_for(user) if self.auto_confirm else None
        return SimpleNamespace(user=user, session=session)

    async def sign_in_with_password(self, credentials: dict[str, Any]):
        await asyncio.sleep(0)
        email = credentials["email"]
        if self.passwords.get(email) != credentials["password"]:
            raise AuthApiError("Invalid login credentials", 400, "invalid_credentials")
        user = next(u for u in self.users.values() if u.email == email)
        return SimpleNamespace(user=user, session=self.session_for(user))

    async def get_user(self, access_token: str | None = None):
        await asyncio.sleep(0)
        try:
            claims = jwt.decode(
                access_token, settings.SUPABASE_JWT_SECRET, algorithms=["HS256"], audience="authenticated"
            )
        except Exception:
            raise AuthApiError("invalid JWT", 401, "bad_jwt")
        user = self.users.get(claims["sub"])
        if user is None:
            raise AuthApiError("User not found", 404, "user_not_found")
        return SimpleNamespace(user=user)

    async def refresh_session(self, refresh_token: str | None = None):
        await asyncio.sleep(0)
        user_id = self.refresh_tokens.pop(refresh_token, None)
        if user_id is None or user_id not in self.users:
            raise AuthApiError("Invalid Refresh Token", 400, "refresh_token_not_found")
        user = self.users[user_id]
        return SimpleNamespace(user=user, session=self.session_for(user))

    async def exchange_code_for_session(self, params: dict[str, Any]):
        await asyncio.sleep(0)
        user_id = self.codes.pop(params.get("auth_code"), None)
        if user_id is None:
            raise AuthApiError("invalid flow state, no valid flow state found", 404, "flow_state_not_found")
        user = self.users[user_id]
        if user.email_confirmed_at is None:
            user.email_confirmed_at = datetime.now(timezone.utc).isoformat()
        return SimpleNamespace(user=user, session=self.session_for(user))

    async def sign_in_with_otp(self, credentials: dict[str, Any]):
        await asyncio.sleep(0)
        self.otp_requests.append(credentials)
        return SimpleNamespace(user=None, session=None)


# =============================================================================
# Client
# =============================================================================

class FakeSupabase:
    """In-memory stand-in for supabase.AsyncClient."""

    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, str], Exception] = {}
        self._clock = 0
        self.auth = FakeAuth(self)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def fail_next(self, table: str, op: str, error: Exception) -> None:
        """Make the next `op` on `table` raise `error`."""
        self.failures[(table, op)] = error

    def _tick(self) -> str:
        # Strictly increasing timestamps so "newest first" is deterministic
        self._clock += 1
        return (BASE_TIME + timedelta(seconds=self._clock)).isoformat()

    def insert_row(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        rows = self.tables.setdefault(table, [])
        for column in UNIQUE_COLUMNS.get(table, ()):
            if column in row and any(_same(r.get(column), row[column]) for r in rows):
                raise APIError({
                    "code": "23505",
                    "message": f'duplicate key value violates unique constraint "{table}_{column}_key"',
                    "details": f"Key ({column})=({row[column]}) already exists.",
                    "hint": None,
                })

        stamp = self._tick()
        stored = {
            "id": str(uuid.uuid4()),
            **COLUMN_DEFAULTS.get(table, {}),
            "created_at": stamp,
            **({"updated_at": stamp} if table != "invite_tokens" else {}),
        }
        stored.update({k: v for k, v in deepcopy(row).items() if v is not None or k not in stored})
        rows.append(stored)
        return stored

    def seed(self, table: str, **row: Any) -> dict[str, Any]:
        """Insert a row directly (test setup)."""
        return deepcopy(self.insert_row(table, row))


class FakeRedis:
    """The handful of redis.asyncio commands the rate limiter uses."""

    def __init__(self):
        self.values: dict[str, int] = {}
        self.ttls: dict[str, int] = {}
        self.closed = False

    async def incr(self, key: str) -> int:
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True

    async def ttl(self, key: str) -> int:
        return self.ttls.get(key, -1)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            removed += int(self.values.pop(key, None) is not None)
            self.ttls.pop(key, None)
        return removed

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True
