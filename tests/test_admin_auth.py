"""Tests for platform admin login, lockout, sessions and setup tokens."""

import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from saaskit.core.errors import (
    AccountDeactivatedError,
    AccountLockedError,
    ConflictError,
    DALError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from saaskit.db.base import utcnow
from saaskit.db.session import get_session_factory
from saaskit.models.admin import AdminRole, AdminSession, AdminSetupToken
from saaskit.models.audit_log import AuditAction, AuditLog
from saaskit.services.admin_service import (
    LOCKOUT_DURATION,
    MAX_FAILED_ATTEMPTS,
    SETUP_TOKEN_TTL,
    AdminService,
)
from saaskit.services.admin_session_service import INACTIVITY_TIMEOUT, AdminSessionService
from saaskit.services.maintenance import sweep_expired

from conftest import PASSWORD


@pytest_asyncio.fixture
async def primary(make_admin):
    return await make_admin("root@platform.example.com", AdminRole.primary_admin)


# ── Login ────────────────────────────────────────────────────────────────────

async def test_login_creates_session_and_audit_entry(db, primary):
    ctx = await AdminSessionService.login(db, "ROOT@platform.example.com", PASSWORD)
    await db.commit()

    assert ctx.admin.id == primary.id
    assert ctx.admin.last_login_at is not None
    assert ctx.session.expires_at > utcnow()
    action = await db.scalar(select(AuditLog.action).where(AuditLog.admin_id == primary.id))
    assert action == AuditAction.admin_login.value


async def test_unknown_email_is_generic(db):
    with pytest.raises(UnauthorizedError) as exc_info:
        await AdminSessionService.login(db, "ghost@platform.example.com", PASSWORD)
    assert exc_info.value.message == "Invalid email or password"


async def test_admin_without_password_cannot_login(db, make_admin):
    await make_admin("pending@platform.example.com", password=None)
    with pytest.raises(UnauthorizedError):
        await AdminSessionService.login(db, "pending@platform.example.com", "")


async def test_deactivated_admin(db, primary, make_admin):
    helper = await make_admin("helper@platform.example.com")
    await AdminService.update(db, primary, helper.id, is_active=False)
    await db.commit()
    with pytest.raises(AccountDeactivatedError):
        await AdminSessionService.login(db, helper.email, PASSWORD)


async def test_lockout_after_repeated_failures(db, primary):
    """Five failures lock the account; the right password is then refused with 423."""
    now = utcnow()
    for _ in range(MAX_FAILED_ATTEMPTS):
        with pytest.raises(UnauthorizedError):
            await AdminSessionService.login(db, primary.email, "WrongPass1", now=now)

    admin = await AdminService.find_by_id(db, primary.id)
    await db.refresh(admin)
    assert admin.failed_login_attempts == MAX_FAILED_ATTEMPTS
    assert admin.locked_until == now + LOCKOUT_DURATION

    with pytest.raises(AccountLockedError) as exc_info:
        await AdminSessionService.login(db, primary.email, PASSWORD, now=now + timedelta(minutes=1))
    assert exc_info.value.status_code == 423

    later = now + LOCKOUT_DURATION + timedelta(seconds=1)
    ctx = await AdminSessionService.login(db, primary.email, PASSWORD, now=later)
    await db.commit()
    await db.refresh(ctx.admin)
    assert ctx.admin.failed_login_attempts == 0
    assert ctx.admin.locked_until is None


async def test_failures_below_threshold_do_not_lock(db, primary):
    for _ in range(MAX_FAILED_ATTEMPTS - 1):
        with pytest.raises(UnauthorizedError):
            await AdminSessionService.login(db, primary.email, "WrongPass1")
    ctx = await AdminSessionService.login(db, primary.email, PASSWORD)
    assert ctx.admin.failed_login_attempts == 0


async def _bad_login_in_own_session(email: str, now):
    async with get_session_factory()() as session:
        try:
            await AdminSessionService.login(session, email, "WrongPass1", now=now)
        except DALError as exc:
            await session.rollback()
            return exc


async def test_concurrent_failures_are_all_counted(db, primary):
    now = utcnow()
    outcomes = await asyncio.gather(
        *(_bad_login_in_own_session(primary.email, now) for _ in range(MAX_FAILED_ATTEMPTS))
    )

    # Nobody can see the lock before their own failure has been counted
    assert all(type(exc) is UnauthorizedError for exc in outcomes)
    admin = await AdminService.find_by_id(db, primary.id)
    await db.refresh(admin)
    assert admin.failed_login_attempts == MAX_FAILED_ATTEMPTS
    assert admin.locked_until == now + LOCKOUT_DURATION


# ── Sessions ─────────────────────────────────────────────────────────────────

async def test_validate_slides_session(db, primary):
    start = utcnow()
    session = await AdminSessionService.create(db, primary.id, now=start)
    await db.commit()

    later = start + timedelta(minutes=20)
    ctx = await AdminSessionService.validate(db, session.token, now=later)
    assert ctx is not None
    assert ctx.session.last_activity_at == later
    assert ctx.session.expires_at == later + timedelta(minutes=30)


async def test_idle_session_is_deleted(db, primary):
    start = utcnow()
    session = await AdminSessionService.create(db, primary.id, now=start)
    # Hard expiry pushed out so only the idle timer can fire
    session.expires_at = start + timedelta(hours=2)
    await db.commit()

    idle = start + INACTIVITY_TIMEOUT + timedelta(seconds=1)
    assert await AdminSessionService.validate(db, session.token, now=idle) is None
    assert await db.scalar(select(AdminSession.id).where(AdminSession.id == session.id)) is None


async def test_expired_or_unknown_session(db, primary):
    start = utcnow()
    session = await AdminSessionService.create(db, primary.id, now=start)
    await db.commit()

    assert await AdminSessionService.validate(db, None) is None
    assert await AdminSessionService.validate(db, "nope") is None
    assert await AdminSessionService.validate(db, session.token, now=start + timedelta(hours=1)) is None


async def test_logout_deletes_session(db, primary):
    ctx = await AdminSessionService.login(db, primary.email, PASSWORD)
    await AdminSessionService.logout(db, ctx)
    await db.commit()
    assert await AdminSessionService.validate(db, ctx.session.token) is None


# ── Roster ───────────────────────────────────────────────────────────────────

async def test_duplicate_admin_email(db, primary):
    with pytest.raises(ConflictError):
        await AdminService.create(db, "Root@Platform.Example.com", "Again")


async def test_cannot_delete_self(db, primary):
    with pytest.raises(ValidationError) as exc_info:
        await AdminService.delete(db, primary, primary.id)
    assert exc_info.value.message == "You cannot delete your own account"


async def test_cannot_delete_last_primary_admin(db, primary, make_admin):
    helper = await make_admin("helper@platform.example.com")
    with pytest.raises(ForbiddenError):
        await AdminService.delete(db, helper, primary.id)


async def test_delete_admin_cascades_sessions(db, primary, make_admin):
    helper = await make_admin("helper@platform.example.com")
    await AdminSessionService.create(db, helper.id)
    await db.commit()

    await AdminService.delete(db, primary, helper.id)
    await db.commit()
    assert await AdminService.find_by_id(db, helper.id) is None
    count = await db.scalar(select(func.count()).select_from(AdminSession))
    assert count == 0


async def test_update_reports_only_real_changes(db, primary, make_admin):
    helper = await make_admin("helper@platform.example.com")
    admin, changes = await AdminService.update(
        db, primary, helper.id, name="Helper Two", role=AdminRole.admin
    )
    assert changes == {"name": "Helper Two"}
    assert admin.name == "Helper Two"

    _, unchanged = await AdminService.update(db, primary, helper.id, name="Helper Two")
    assert unchanged == {}


async def test_cannot_demote_or_deactivate_self(db, primary, make_admin):
    await make_admin("second@platform.example.com", AdminRole.primary_admin)
    with pytest.raises(ValidationError):
        await AdminService.update(db, primary, primary.id, role=AdminRole.admin)
    with pytest.raises(ValidationError):
        await AdminService.update(db, primary, primary.id, is_active=False)


async def test_last_active_primary_admin_is_kept(db, primary, make_admin):
    second = await make_admin("second@platform.example.com", AdminRole.primary_admin)
    await AdminService.update(db, primary, second.id, is_active=False)
    await db.commit()

    with pytest.raises(ForbiddenError) as exc_info:
        await AdminService.update(db, second, primary.id, role=AdminRole.admin)
    assert exc_info.value.message == "Cannot demote or deactivate the last primary admin"


async def test_primary_admin_can_demote_another(db, primary, make_admin):
    second = await make_admin("second@platform.example.com", AdminRole.primary_admin)
    admin, changes = await AdminService.update(db, primary, second.id, role=AdminRole.admin)
    assert changes == {"role": AdminRole.admin.value}
    assert admin.role == AdminRole.admin.value


# ── Setup tokens ─────────────────────────────────────────────────────────────

async def test_setup_token_is_single_use(db, make_admin):
    admin = await make_admin("new@platform.example.com", password=None)
    issued = utcnow()
    setup = await AdminService.create_setup_token(db, admin.id, now=issued)
    await db.commit()

    just_in_time = issued + SETUP_TOKEN_TTL - timedelta(minutes=1)
    assert await AdminService.get_valid_setup_token(db, setup.token, now=just_in_time)
    completed = await AdminService.complete_setup(db, setup.token, "NewPass123", now=just_in_time)
    await db.commit()
    assert AdminService.verify_password(completed, "NewPass123")
    used_at = await db.scalar(select(AdminSetupToken.used_at).where(AdminSetupToken.id == setup.id))
    assert used_at == just_in_time

    with pytest.raises(ValidationError) as exc_info:
        await AdminService.complete_setup(db, setup.token, "OtherPass123", now=just_in_time)
    assert exc_info.value.message == "This setup link has already been used"
    assert await AdminService.get_valid_setup_token(db, setup.token, now=just_in_time) is None


async def test_setup_token_expires(db, make_admin):
    admin = await make_admin("new@platform.example.com", password=None)
    issued = utcnow()
    setup = await AdminService.create_setup_token(db, admin.id, now=issued)
    await db.commit()

    too_late = issued + SETUP_TOKEN_TTL + timedelta(seconds=1)
    with pytest.raises(ValidationError) as exc_info:
        await AdminService.complete_setup(db, setup.token, "NewPass123", now=too_late)
    assert exc_info.value.message == "This setup link has expired"


async def test_setup_unknown_token(db):
    with pytest.raises(NotFoundError):
        await AdminService.complete_setup(db, "nope", "NewPass123")


async def test_setup_rejected_when_password_already_set(db, primary):
    setup = await AdminService.create_setup_token(db, primary.id)
    with pytest.raises(ValidationError) as exc_info:
        await AdminService.complete_setup(db, setup.token, "NewPass123")
    assert exc_info.value.message == "Account already set up"


# ── Housekeeping ─────────────────────────────────────────────────────────────

async def test_sweep_removes_stale_sessions_and_tokens(db, primary):
    old = utcnow() - timedelta(days=3)
    await AdminSessionService.create(db, primary.id, now=old)
    await AdminService.create_setup_token(db, primary.id, now=old)
    live = await AdminSessionService.create(db, primary.id)
    await db.commit()

    counts = await sweep_expired(db)
    await db.commit()

    assert counts["admin_sessions_deleted"] == 1
    assert counts["setup_tokens_deleted"] == 1
    assert await AdminSessionService.validate(db, live.token) is not None
