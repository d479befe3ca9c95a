"""Unit tests for bizdash.engine.security — role checks and AuthorizationService."""

import pytest

from bizdash.engine.errors import (
    BizDashIntegrationError,
    BizDashSecurityError,
    BizDashSessionError,
)
from bizdash.engine.security import (
    AuthorizationService,
    GuardStatus,
    RecordingNavigator,
    RouteGuardResult,
    role_satisfies,
)
from bizdash.engine.session import SESSION_KEYS, Role, SessionStore
from bizdash.engine.storage import MemoryStorage


def _service(storage, auth_client=None, hydrate=True):
    store = SessionStore(storage)
    if hydrate:
        store.hydrate()
    return AuthorizationService(store, auth_client)


class TestRoleSatisfies:

    @pytest.mark.parametrize("role,required,expected", [
        (Role.ADMIN, Role.ADMIN, True),
        (Role.ADMIN, Role.MANAGER, True),
        (Role.ADMIN, Role.STAFF, True),
        (Role.MANAGER, Role.ADMIN, False),
        (Role.MANAGER, Role.MANAGER, True),
        (Role.MANAGER, Role.STAFF, True),
        (Role.STAFF, Role.ADMIN, False),
        (Role.STAFF, Role.MANAGER, False),
        (Role.STAFF, Role.STAFF, True),
    ])
    def test_hierarchy(self, role, required, expected):
        assert role_satisfies(role, required) is expected

    def test_accepts_strings(self):
        assert role_satisfies("manager", "STAFF")

    @pytest.mark.parametrize("role", [None, "", "OWNER"])
    def test_missing_or_unknown_role_fails_closed(self, role):
        assert role_satisfies(role, Role.STAFF) is False

    def test_unknown_required_role_unsatisfiable(self):
        assert role_satisfies(Role.ADMIN, "SUPERUSER") is False


class TestRouteGuardResult:

    def test_constructors(self):
        assert RouteGuardResult.authorized().status is GuardStatus.AUTHORIZED
        assert RouteGuardResult.pending().is_pending
        denied = RouteGuardResult.unauthorized("forbidden")
        assert denied.is_forbidden
        assert not denied.is_authorized

    def test_status_values(self):
        assert GuardStatus.UNAUTHORIZED.value == "unauthorized"


class TestRecordingNavigator:

    def test_redirect_records(self):
        nav = RecordingNavigator("/reports")
        nav.redirect("/login")
        assert nav.current_path == "/login"
        assert nav.history == ["/login"]
        assert nav.take_redirect() == "/login"
        assert nav.take_redirect() is None


class TestAuthorizationService:

    def test_authenticated_with_session(self, stored_storage):
        service = _service(stored_storage)
        assert service.is_authenticated()
        assert service.role is Role.MANAGER

    def test_not_authenticated_before_hydration(self, stored_storage):
        assert not _service(stored_storage, hydrate=False).is_authenticated()

    def test_not_authenticated_without_session(self, storage):
        service = _service(storage)
        assert not service.is_authenticated()
        assert not service.has_role(Role.STAFF)

    def test_has_any_role(self, stored_storage):
        service = _service(stored_storage)
        assert service.has_any_role([Role.ADMIN, Role.MANAGER])
        assert not service.has_any_role([Role.ADMIN])
        assert not service.has_any_role([])

    def test_require_role_raises(self, stored_storage):
        service = _service(stored_storage)
        service.require_role(Role.STAFF)
        with pytest.raises(BizDashSecurityError) as exc_info:
            service.require_role(Role.ADMIN)
        assert exc_info.value.role == "MANAGER"
        assert exc_info.value.required_role == "ADMIN"
        assert exc_info.value.user_id == "u-42"

    @pytest.mark.asyncio
    async def test_validate_token_without_client(self, stored_storage):
        with pytest.raises(BizDashSessionError):
            await _service(stored_storage).validate_token("abc123")


class TestLoginLogout:

    @pytest.mark.asyncio
    async def test_login_persists_session(self, storage, auth_client, api):
        api.respond("/auth/local/login", 200, {
            "accessToken": "acc-1",
            "refreshToken": "ref-1",
            "user": {"id": "u-7", "role": "STAFF"},
        })
        service = _service(storage, auth_client)
        session = await service.login("s@shop.test", "pw")
        assert session.role is Role.STAFF
        assert storage.get_item("accessToken") == "acc-1"
        assert service.is_authenticated()

    @pytest.mark.asyncio
    async def test_logout_clears_and_calls_server(self, stored_storage, auth_client, api):
        api.respond("/auth/logout", 204)
        service = _service(stored_storage, auth_client)
        await service.logout()
        assert stored_storage.keys() == set()
        assert len(api.calls_to("/auth/logout")) == 1

    @pytest.mark.asyncio
    async def test_logout_clears_even_when_server_fails(self, stored_storage, auth_client, api):
        api.fail("/auth/logout")
        service = _service(stored_storage, auth_client)
        await service.logout()
        assert stored_storage.keys() == set()
        assert not service.is_authenticated()

    @pytest.mark.asyncio
    async def test_logout_without_session_skips_server(self, storage, auth_client, api):
        await _service(storage, auth_client).logout()
        assert api.requests == []


class TestRefreshTokens:

    @pytest.mark.asyncio
    async def test_refresh_updates_tokens(self, stored_storage, auth_client, api):
        api.respond("/auth/refresh", 200, {"accessToken": "acc-2", "refreshToken": "ref-2"})
        service = _service(stored_storage, auth_client)
        session = await service.refresh_tokens()
        assert session.access_token == "acc-2"
        assert session.role is Role.MANAGER
        assert stored_storage.get_item("refreshToken") == "ref-2"

    @pytest.mark.asyncio
    async def test_refresh_failure_clears(self, stored_storage, auth_client, api):
        api.respond("/auth/refresh", 401)
        service = _service(stored_storage, auth_client)
        assert await service.refresh_tokens() is None
        for key in SESSION_KEYS:
            assert stored_storage.get_item(key) is None

    @pytest.mark.asyncio
    async def test_refresh_without_session(self, auth_client, api):
        service = _service(MemoryStorage(), auth_client)
        assert await service.refresh_tokens() is None
        assert api.requests == []


class TestRegister:

    @pytest.mark.asyncio
    async def test_register_persists_session(self, storage, auth_client, api):
        api.respond("/auth/local/register", 201, {
            "accessToken": "acc-9",
            "refreshToken": "ref-9",
            "user": {"id": "u-9", "role": "STAFF"},
        })
        service = _service(storage, auth_client)
        session = await service.register("Ravi", "r@shop.test", "pw", role=Role.STAFF)
        assert session.user_id == "u-9"
        assert storage.get_item("accessToken") == "acc-9"
        assert api.body(api.requests[0])["role"] == "STAFF"


class TestReauthOn401:

    @pytest.mark.asyncio
    async def test_profile_refreshes_and_retries_once(self, stored_storage, auth_client, api):
        api.respond_sequence("/auth/profile", (401, None), (200, {"id": "u-42", "role": "MANAGER"}))
        api.respond("/auth/refresh", 200, {"accessToken": "acc-2", "refreshToken": "ref-2"})
        service = _service(stored_storage, auth_client)

        profile = await service.fetch_profile()

        assert profile == {"id": "u-42", "role": "MANAGER"}
        first, second = api.calls_to("/auth/profile")
        assert first.headers["Authorization"] == "Bearer abc123"
        assert second.headers["Authorization"] == "Bearer acc-2"
        assert stored_storage.get_item("accessToken") == "acc-2"

    @pytest.mark.asyncio
    async def test_second_401_is_not_retried_again(self, stored_storage, auth_client, api):
        api.respond("/auth/profile", 401)
        api.respond("/auth/refresh", 200, {"accessToken": "acc-2", "refreshToken": "ref-2"})
        service = _service(stored_storage, auth_client)

        with pytest.raises(BizDashIntegrationError) as exc_info:
            await service.fetch_profile()
        assert exc_info.value.status_code == 401
        assert len(api.calls_to("/auth/profile")) == 2
        assert len(api.calls_to("/auth/refresh")) == 1

    @pytest.mark.asyncio
    async def test_failed_refresh_signs_out(self, stored_storage, auth_client, api):
        api.respond("/auth/profile", 401)
        api.respond("/auth/refresh", 401)
        service = _service(stored_storage, auth_client)

        with pytest.raises(BizDashSessionError, match="expired"):
            await service.fetch_profile()
        assert stored_storage.keys() == set()

    @pytest.mark.asyncio
    async def test_other_errors_propagate_without_refresh(self, stored_storage, auth_client, api):
        api.respond("/auth/profile", 500)
        service = _service(stored_storage, auth_client)

        with pytest.raises(BizDashIntegrationError):
            await service.fetch_profile()
        assert api.calls_to("/auth/refresh") == []
        assert stored_storage.get_item("accessToken") == "abc123"

    @pytest.mark.asyncio
    async def test_profile_requires_session(self, storage, auth_client):
        with pytest.raises(BizDashSessionError, match="Not signed in"):
            await _service(storage, auth_client).fetch_profile()

    @pytest.mark.asyncio
    async def test_logout_retries_with_refreshed_token(self, stored_storage, auth_client, api):
        api.respond_sequence("/auth/logout", (401, None), (204, None))
        api.respond("/auth/refresh", 200, {"accessToken": "acc-2", "refreshToken": "ref-2"})
        service = _service(stored_storage, auth_client)

        await service.logout()

        _, retried = api.calls_to("/auth/logout")
        assert retried.headers["Authorization"] == "Bearer acc-2"
        assert stored_storage.keys() == set()

    @pytest.mark.asyncio
    async def test_guard_token_check_never_refreshes(self, make_controller, stored_storage, api):
        api.respond("/auth/test", 401)
        api.respond("/auth/refresh", 200, {"accessToken": "acc-2", "refreshToken": "ref-2"})
        controller, _ = make_controller(stored_storage)

        await controller.evaluate("/reports")

        assert api.calls_to("/auth/refresh") == []
        assert stored_storage.keys() == set()
