# tests/client/test_office_stores.py
import pytest

pytestmark = pytest.mark.asyncio


@pytest.fixture
def colleague(gateway, company):
    return gateway.seed("users", email="staff@acme.test", company_id=company["id"], role="staff", is_active=True)


async def test_add_user_records_a_pending_invitation(session, gateway, company, owner):
    invitation = await session.company.add_user(" New.Hire@Acme.test ", "staff")

    assert session.company.error is None
    assert invitation.email == "new.hire@acme.test"
    assert invitation.status == "pending"
    assert invitation.invited_by == owner["id"]
    assert invitation.company_id == company["id"]

    assert await session.company.add_user("new.hire@acme.test") is None
    assert session.company.error == "User has already been invited"
    assert len(gateway.rows("user_invitations")) == 1


async def test_add_existing_member_is_refused(session, colleague):
    assert await session.company.add_user(colleague["email"], "company_admin") is None
    assert session.company.error == "User already belongs to this company"


async def test_staff_cannot_manage_users(session, gateway, owner, colleague):
    gateway.rows("users")[0]["role"] = "staff"

    assert await session.company.update_user_role(colleague["id"], "company_admin") is None
    assert session.company.error == "Only company admins can manage users"
    assert gateway.rows("users")[1]["role"] == "staff"


async def test_update_user_role_and_deactivate(session, gateway, colleague):
    await session.company.fetch_users()

    promoted = await session.company.update_user_role(colleague["id"], "company_admin")
    assert promoted.role == "company_admin"

    deactivated = await session.company.deactivate_user(colleague["id"])
    assert deactivated.is_active is False
    assert next(u for u in session.company.users if u.id == colleague["id"]).is_active is False


async def test_admin_cannot_deactivate_themselves(session, owner):
    assert await session.company.deactivate_user(owner["id"]) is None
    assert session.company.error == "You cannot deactivate your own account"


async def test_users_of_other_companies_are_not_found(session, gateway):
    outsider = gateway.seed("users", email="boss@globex.test", company_id="globex", role="staff")

    assert await session.company.update_user_role(outsider["id"], "company_admin") is None
    assert session.company.error == "User not found"
    assert gateway.rows("users")[-1]["role"] == "staff"


async def test_log_event_goes_through_the_stored_procedure(session, gateway, company):
    assert await session.logs.log_event("e1", "a1", "ACTION_RUN", "success", "Action ran", {"duration_ms": 12}) is True

    function, params = gateway.rpc_calls[0]
    assert function == "log_event"
    assert params["p_company_id"] == company["id"]
    assert params["p_metadata"] == {"duration_ms": 12}

    action_logs = await session.logs.fetch_action_logs("a1")
    assert [log.event_type for log in action_logs] == ["ACTION_RUN"]
    assert await session.logs.fetch_action_logs("other") == []


async def test_log_event_refreshes_loaded_logs(session, gateway, company):
    gateway.seed("logs", company_id=company["id"], event_type="TASK_CREATED", status="success", message="Task created")
    await session.logs.fetch_logs()

    await session.logs.log_event(None, None, "TASK_COMPLETED", "success", "Task done")

    assert len(session.logs.logs) == 2


async def test_log_event_failure_is_reported(session, gateway):
    gateway.failing_rpcs.add("log_event")

    assert await session.logs.log_event(None, None, "TASK_CREATED", "pending", "Task created") is False
    assert session.logs.error == "function log_event failed"


async def test_ai_settings_are_created_then_updated(session, gateway, company):
    assert await session.ai_settings.fetch_settings() is None

    created = await session.ai_settings.save_settings({"openai_api_key": "sk-company", "use_company_keys": True, "token_quota": 1000})
    assert created.company_id == company["id"]
    assert created.default_model == "gpt-4"

    updated = await session.ai_settings.save_settings({"openai_api_key": "sk-company", "use_company_keys": True, "token_quota": 2000, "default_model": "gpt-4o"})
    assert updated.id == created.id
    assert updated.token_quota == 2000
    assert len(gateway.rows("company_ai_settings")) == 1


async def test_ai_settings_reject_negative_quota_and_keep_usage_server_owned(session, gateway, company):
    gateway.seed("company_ai_settings", company_id=company["id"], token_quota=1000, tokens_used=250)

    assert await session.ai_settings.save_settings({"token_quota": -5}) is None
    assert "greater than or equal to 0" in session.ai_settings.error

    await session.ai_settings.save_settings({"token_quota": 1000, "tokens_used": 0})
    assert gateway.rows("company_ai_settings")[0]["tokens_used"] == 250
    assert session.ai_settings.token_usage_percent() == 25


async def test_token_usage_is_capped_and_absent_without_quota(session, gateway, company):
    assert session.ai_settings.token_usage_percent() is None

    gateway.seed("company_ai_settings", company_id=company["id"], token_quota=100, tokens_used=150)
    await session.ai_settings.fetch_settings()

    assert session.ai_settings.token_usage_percent() == 100
