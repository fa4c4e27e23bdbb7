# tests/client/test_workflow_store.py
import pytest

pytestmark = pytest.mark.asyncio


@pytest.fixture
def workflow(gateway, company):
    return gateway.seed("workflows", name="Onboarding", company_id=company["id"], status="active", trigger_type="manual", trigger_config={})


async def test_create_workflow_defaults_to_draft_in_session_company(session, gateway, company):
    workflow = await session.workflows.create_workflow({"name": "Invoice follow-up", "trigger_type": "scheduled"})

    assert session.workflows.error is None
    assert workflow.status == "draft"
    assert workflow.company_id == company["id"]
    assert session.workflows.workflows == [workflow]
    assert await session.workflows.fetch_workflows() == [workflow]


async def test_get_workflow_loads_steps(session, gateway, workflow):
    gateway.seed("workflow_steps", workflow_id=workflow["id"], type="task", config={"description": "Send welcome email"}, next_steps=[])
    gateway.seed("workflow_steps", workflow_id="other", type="delay", config={}, next_steps=[])

    loaded = await session.workflows.get_workflow(workflow["id"])

    assert loaded.name == "Onboarding"
    assert [s.type for s in loaded.steps] == ["task"]
    assert session.workflows.active_workflow == loaded


async def test_step_edits_are_mirrored_on_the_active_workflow(session, gateway, workflow):
    await session.workflows.get_workflow(workflow["id"])

    step = await session.workflows.add_step(workflow["id"], {"type": "notification", "config": {"channel": "email"}})
    assert [s.id for s in session.workflows.active_workflow.steps] == [step.id]

    updated = await session.workflows.update_step(workflow["id"], step.id, {"config": {"channel": "sms"}})
    assert updated.config == {"channel": "sms"}
    assert session.workflows.active_workflow.steps[0].config == {"channel": "sms"}

    assert await session.workflows.delete_step(workflow["id"], step.id) is True
    assert session.workflows.active_workflow.steps == []
    assert gateway.rows("workflow_steps") == []


async def test_update_step_of_another_workflow_is_not_found(session, gateway, workflow):
    step = gateway.seed("workflow_steps", workflow_id="other", type="task", config={}, next_steps=[])

    assert await session.workflows.update_step(workflow["id"], step["id"], {"config": {"x": 1}}) is None
    assert session.workflows.error == "Workflow step not found"


async def test_update_and_delete_workflow(session, gateway, workflow):
    await session.workflows.fetch_workflows()

    updated = await session.workflows.update_workflow(workflow["id"], {"status": "inactive"})
    assert updated.status == "inactive"
    assert session.workflows.workflows == [updated]

    assert await session.workflows.delete_workflow(workflow["id"]) is True
    assert session.workflows.workflows == []
    assert session.workflows.active_workflow is None


async def test_execute_workflow_opens_a_running_execution(session, gateway, workflow, company):
    execution = await session.workflows.execute_workflow(workflow["id"], {"customer": "Globex"})

    assert execution.status == "running"
    assert execution.results == {"customer": "Globex"}
    assert execution.company_id == company["id"]
    assert execution.started_at is not None
    assert await session.workflows.get_executions(workflow["id"]) == [execution]


async def test_execute_workflow_of_another_company_is_refused(session, gateway):
    foreign = gateway.seed("workflows", name="Theirs", company_id="globex", status="active")

    assert await session.workflows.execute_workflow(foreign["id"]) is None
    assert session.workflows.error == "Workflow belongs to another company"
    assert gateway.rows("workflow_executions") == []


async def test_cancel_execution_only_while_running(session, gateway, workflow):
    execution = await session.workflows.execute_workflow(workflow["id"])

    cancelled = await session.workflows.cancel_execution(execution.id)
    assert cancelled.status == "cancelled"
    assert cancelled.completed_at is not None
    assert session.workflows.executions == [cancelled]

    assert await session.workflows.cancel_execution(execution.id) is None
    assert session.workflows.error == "Execution is not running"
