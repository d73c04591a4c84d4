import pytest
from fastapi import BackgroundTasks
from models.users import User
from schemas.user_schemas import UpdateUserRequest, UserFilters
from services.user_service import UserService
from services.session_service import SessionContext, SessionService
from services.token_service import TokenService
from core.permissions import Role
from core.exceptions import AuthorizationError, NotFoundError, ConflictError, StaleTokenError
from tests.helpers import make_user


def context_for(user: User) -> SessionContext:
    return SessionContext(
        user_id=user.id,
        email=user.email,
        role=user.role,
        token_version=user.token_version,
        is_active=user.is_active,
        user=user
    )


def test_user_reads_own_record(session, verified_user):
    found = UserService.get_user(context_for(verified_user), verified_user.id, session)

    assert found.id == verified_user.id


def test_user_cannot_read_other_record(session, verified_user, other_user):
    with pytest.raises(AuthorizationError):
        UserService.get_user(context_for(verified_user), other_user.id, session)


def test_ownership_checked_before_lookup(session, verified_user):
    """A denied caller learns nothing about whether the target exists."""
    with pytest.raises(AuthorizationError):
        UserService.get_user(context_for(verified_user), 9999, session)


def test_admin_reads_any_record(session, admin_user, other_user):
    found = UserService.get_user(context_for(admin_user), other_user.id, session)

    assert found.email == "bob@example.com"


def test_admin_missing_user_not_found(session, admin_user):
    with pytest.raises(NotFoundError):
        UserService.get_user(context_for(admin_user), 9999, session)


def test_update_own_profile(session, verified_user):
    body = UpdateUserRequest(name="Jane Updated", phone="+201001234567")

    user = UserService.update_user(context_for(verified_user), verified_user.id, body, session)

    assert user.name == "Jane Updated"
    assert user.phone == "+201001234567"
    assert user.token_version == 1


def test_user_cannot_change_own_role(session, verified_user):
    body = UpdateUserRequest(role=Role.ADMIN)

    with pytest.raises(AuthorizationError):
        UserService.update_user(context_for(verified_user), verified_user.id, body, session)

    session.refresh(verified_user)
    assert verified_user.role == Role.CUSTOMER


def test_admin_role_change_invalidates_tokens(session, admin_user, other_user):
    tokens = TokenService.issue_tokens(other_user, session)
    body = UpdateUserRequest(role=Role.VENDOR)

    user = UserService.update_user(context_for(admin_user), other_user.id, body, session)

    assert user.role == Role.VENDOR
    assert user.token_version == 2

    with pytest.raises(StaleTokenError):
        SessionService.authenticate(tokens["access_token"], session)


def test_deactivate_self_bumps_version(session, verified_user):
    tokens = TokenService.issue_tokens(verified_user, session)

    user = UserService.deactivate_user(
        context_for(verified_user), verified_user.id, session, BackgroundTasks()
    )

    assert user.is_active is False
    assert user.is_online is False
    assert user.token_version == 2
    assert user.refresh_token_hash is None

    with pytest.raises(StaleTokenError):
        SessionService.authenticate(tokens["access_token"], session)


def test_admin_cannot_deactivate_self(session, admin_user):
    with pytest.raises(AuthorizationError):
        UserService.deactivate_user(context_for(admin_user), admin_user.id, session, BackgroundTasks())


def test_user_cannot_deactivate_other(session, verified_user, other_user):
    with pytest.raises(AuthorizationError):
        UserService.deactivate_user(context_for(verified_user), other_user.id, session, BackgroundTasks())

    session.refresh(other_user)
    assert other_user.is_active is True


def test_deactivate_twice_conflicts(session, admin_user, other_user):
    ctx = context_for(admin_user)
    UserService.deactivate_user(ctx, other_user.id, session, BackgroundTasks())

    with pytest.raises(ConflictError):
        UserService.deactivate_user(ctx, other_user.id, session, BackgroundTasks())


def test_admin_activates_pending_vendor(session, admin_user):
    vendor = make_user(session, "pending_vendor@example.com", role=Role.VENDOR, is_active=False)
    bg = BackgroundTasks()

    user = UserService.activate_user(context_for(admin_user), vendor.id, session, bg)

    assert user.is_active is True
    assert len(bg.tasks) == 1

    with pytest.raises(ConflictError):
        UserService.activate_user(context_for(admin_user), vendor.id, session, BackgroundTasks())


def test_vendor_cannot_activate(session, vendor_user):
    pending = make_user(session, "pending@example.com", is_active=False)

    with pytest.raises(AuthorizationError):
        UserService.activate_user(context_for(vendor_user), pending.id, session, BackgroundTasks())


def test_invalidate_own_tokens(session, verified_user):
    user = UserService.invalidate_user_tokens(context_for(verified_user), verified_user.id, session)

    assert user.token_version == 2


def test_cannot_invalidate_other_users_tokens(session, verified_user, other_user):
    with pytest.raises(AuthorizationError):
        UserService.invalidate_user_tokens(context_for(verified_user), other_user.id, session)


def test_admin_deletes_user(session, admin_user, other_user):
    other_id = other_user.id

    UserService.delete_user(context_for(admin_user), other_id, session)

    assert session.query(User).filter(User.id == other_id).first() is None

    with pytest.raises(NotFoundError):
        UserService.delete_user(context_for(admin_user), other_id, session)


def test_admin_cannot_delete_self(session, admin_user):
    with pytest.raises(AuthorizationError):
        UserService.delete_user(context_for(admin_user), admin_user.id, session)


def test_list_users_filters(session, admin_user, verified_user, vendor_user):
    make_user(session, "unverified@example.com", is_email_verified=False, name="Una Verified")

    vendors = UserService.list_users(UserFilters(role=Role.VENDOR), session)
    assert [u.email for u in vendors["users"]] == ["vendor@example.com"]

    unverified = UserService.list_users(UserFilters(is_email_verified=False), session)
    assert [u.email for u in unverified["users"]] == ["unverified@example.com"]

    search = UserService.list_users(UserFilters(search="JANE"), session)
    assert [u.email for u in search["users"]] == ["jane@example.com"]


def test_list_users_pagination(session):
    for i in range(5):
        make_user(session, f"user{i}@example.com")

    first = UserService.list_users(UserFilters(), session, page=1, limit=2)
    last = UserService.list_users(UserFilters(), session, page=3, limit=2)

    assert first["pagination"] == {"total": 5, "page": 1, "limit": 2, "total_pages": 3}
    # Newest first
    assert [u.email for u in first["users"]] == ["user4@example.com", "user3@example.com"]
    assert [u.email for u in last["users"]] == ["user0@example.com"]


def test_update_address_refreshes_profile_completion(session, verified_user):
    ctx = context_for(verified_user)
    body = UpdateUserRequest(
        phone="+201001234567",
        address={"street": "12 Nile St", "city": "Cairo", "country": "Egypt"}
    )

    user = UserService.update_user(ctx, verified_user.id, body, session)

    assert user.address == {
        "street": "12 Nile St", "city": "Cairo", "state": None, "zip_code": None, "country": "Egypt"
    }
    # 5 required fields (1.5 each) + country (1) out of 11.5
    assert user.profile_completion == 74

    # Only the parts sent are touched; blanks clear a part
    user = UserService.update_user(ctx, verified_user.id,
        UpdateUserRequest(address={"city": "Giza", "country": ""}), session)

    assert user.address_street == "12 Nile St"
    assert user.address_city == "Giza"
    assert user.address_country is None
    assert user.profile_completion == 65


def test_list_users_search_treats_wildcards_literally(session, verified_user):
    make_user(session, "percent_user@example.com", name="100% Real")

    percent = UserService.list_users(UserFilters(search="%"), session)
    underscore = UserService.list_users(UserFilters(search="_"), session)

    assert [u.email for u in percent["users"]] == ["percent_user@example.com"]
    assert [u.email for u in underscore["users"]] == ["percent_user@example.com"]
