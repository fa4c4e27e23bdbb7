# tests/modules/voice/test_voice_webhooks.py
import pytest
from httpx import AsyncClient
from fastapi import status

pytestmark = pytest.mark.asyncio


@pytest.fixture
def voice_line(gateway, seeded):
    return gateway.seed(
        "eve_voice_settings",
        eve_id=seeded["ava"]["id"],
        company_id=seeded["acme"]["id"],
        phone_number="+15550001111",
        enabled=True,
        voice_id="Polly.Joanna",
        greeting_message=None,
        fallback_message="Let me get back to you on that.",
    )


async def test_unknown_number_apologises_and_hangs_up(test_client: AsyncClient, seeded):
    response = await test_client.get("/api/v1/voice/webhook", params={
        "CallSid": "CA123", "From": "+15559990000", "To": "+15550000000", "CallStatus": "ringing",
    })

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"].startswith("application/xml")
    assert "could not locate" in response.text
    assert "<Hangup" in response.text


async def test_missing_call_sid_still_answers_200(test_client: AsyncClient):
    response = await test_client.get("/api/v1/voice/webhook", params={"To": "+15550001111"})

    assert response.status_code == status.HTTP_200_OK
    assert "<Hangup" in response.text


async def test_known_number_greets_and_gathers_speech(test_client: AsyncClient, gateway, seeded, voice_line):
    response = await test_client.post("/api/v1/voice/webhook?CallSid=CA777&From=%2B15559990000&To=%2B15550001111&CallStatus=ringing")

    assert response.status_code == status.HTTP_200_OK
    body = response.text
    assert "Hello, this is Ava" in body
    assert 'voice="Polly.Joanna"' in body
    assert "<Gather" in body
    assert 'input="speech"' in body
    assert "/api/v1/voice/process?eve_id=" in body

    calls = gateway.rows("voice_calls")
    assert len(calls) == 1
    assert calls[0]["call_sid"] == "CA777"
    assert calls[0]["status"] == "ringing"
    assert calls[0]["company_id"] == seeded["acme"]["id"]


async def test_failed_call_record_does_not_break_the_greeting(test_client: AsyncClient, gateway, seeded, voice_line):
    gateway.failing_tables.add("voice_calls")

    response = await test_client.get("/api/v1/voice/webhook", params={
        "CallSid": "CA778", "From": "+15559990000", "To": "+15550001111",
    })

    assert response.status_code == status.HTTP_200_OK
    assert "<Gather" in response.text


async def test_process_speaks_ai_reply_and_audits(test_client: AsyncClient, gateway, seeded, voice_line):
    call = gateway.seed("voice_calls", eve_id=seeded["ava"]["id"], call_sid="CA1", status="in-progress")

    response = await test_client.get("/api/v1/voice/process", params={
        "eve_id": seeded["ava"]["id"], "call_id": call["id"], "SpeechResult": "What are your hours?",
    })

    assert response.status_code == status.HTTP_200_OK
    assert "Hello there" in response.text
    assert "Is there anything else I can help you with?" in response.text
    assert call["transcript"] == "What are your hours?"
    audit = [row for row in gateway.rows("logs") if row["event_type"] == "VOICE_INTERACTION"]
    assert audit[0]["metadata"] == {"user_input": "What are your hours?", "ai_response": "Hello there"}


async def test_process_uses_fallback_message_when_ai_fails(test_client: AsyncClient, fake_ai, seeded, voice_line):
    fake_ai.fail_complete = True

    response = await test_client.get("/api/v1/voice/process", params={
        "eve_id": seeded["ava"]["id"], "SpeechResult": "Hello?",
    })

    assert response.status_code == status.HTTP_200_OK
    assert "Let me get back to you on that." in response.text


async def test_process_with_unknown_eve_apologises(test_client: AsyncClient):
    response = await test_client.get("/api/v1/voice/process", params={"eve_id": "ghost", "SpeechResult": "Hi"})

    assert response.status_code == status.HTTP_200_OK
    assert "encountered a problem" in response.text
    assert "<Hangup" in response.text


async def test_status_callback_updates_call(test_client: AsyncClient, gateway, seeded):
    call = gateway.seed("voice_calls", eve_id=seeded["ava"]["id"], call_sid="CA9", status="in-progress")

    response = await test_client.post("/api/v1/voice/status?CallSid=CA9&CallStatus=completed&CallDuration=42")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True, "updated": True}
    assert call["status"] == "completed"
    assert call["duration"] == 42
    assert call["ended_at"] is not None


async def test_status_callback_without_call_sid(test_client: AsyncClient):
    response = await test_client.get("/api/v1/voice/status", params={"CallStatus": "completed"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["success"] is False
