# tests/modules/intelligence/test_ai_endpoints.py
import base64
import json

import pytest
from httpx import AsyncClient
from fastapi import status
from pydantic import BaseModel

pytestmark = pytest.mark.asyncio


class _Usage(BaseModel):
    total_tokens: int


class _ProxiedCompletion(BaseModel):
    id: str = "chatcmpl-1"
    model: str = "gpt-4o-mini"
    usage: _Usage


async def test_completion_returns_reply_and_audits(test_client: AsyncClient, gateway, fake_ai, seeded):
    fake_ai.completion_content = "Sure, I can help."
    history = json.dumps([{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello!"}])

    response = await test_client.post("/api/v1/ai-completion", json={
        "eveId": seeded["ava"]["id"], "prompt": "Book a meeting", "context": history,
    })

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["response"] == "Sure, I can help."
    assert body["eveName"] == "Ava"
    assert body["tokensUsed"] == 42
    assert body["newMessage"] == {"role": "assistant", "content": "Sure, I can help."}

    _, messages, kwargs = fake_ai.calls[-1]
    assert messages[0]["role"] == "system"
    assert "You are Ava" in messages[0]["content"]
    assert [m["content"] for m in messages[1:]] == ["Hi", "Hello!", "Book a meeting"]
    assert kwargs["max_tokens"] == 500

    audit = [row for row in gateway.rows("logs") if row["event_type"] == "AI_INTERACTION"]
    assert audit[0]["metadata"]["tokens_used"] == 42
    assert ("log_ai_usage", {
        "p_company_id": seeded["acme"]["id"], "p_tokens_used": 42, "p_model": "gpt-4", "p_endpoint": "ai-completion",
    }) in gateway.rpc_calls


async def test_completion_stream_emits_sse_frames(test_client: AsyncClient, seeded):
    response = await test_client.post("/api/v1/ai-completion", json={
        "eveId": seeded["ava"]["id"], "prompt": "Hello", "stream": True,
    })

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"].startswith("text/event-stream")
    frames = [line for line in response.text.split("\n\n") if line]
    assert frames == ['data: {"content": "Hello"}', 'data: {"content": " there"}', "data: [DONE]"]


async def test_completion_for_unknown_eve(test_client: AsyncClient):
    response = await test_client.post("/api/v1/ai-completion", json={"eveId": "ghost", "prompt": "Hello"})

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"error": "EVE not found"}


async def test_completion_provider_failure_is_502(test_client: AsyncClient, fake_ai, gateway, seeded):
    fake_ai.fail_complete = True

    response = await test_client.post("/api/v1/ai-completion", json={"eveId": seeded["ava"]["id"], "prompt": "Hello"})

    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert gateway.rows("logs") == []


async def test_missing_credentials_is_500(test_client: AsyncClient, resolver, seeded):
    resolver.missing_credentials = True

    response = await test_client.post("/api/v1/ai-completion", json={"eveId": seeded["ava"]["id"], "prompt": "Hello"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"error": "No OpenAI API key available"}


async def test_proxy_rejects_unknown_endpoint(test_client: AsyncClient, seeded):
    response = await test_client.post("/api/v1/ai-proxy", json={
        "companyId": seeded["acme"]["id"], "requestData": {"endpoint": "images.generate", "params": {}},
    })

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Unsupported OpenAI endpoint: images.generate"}


async def test_proxy_rejects_streaming_for_non_chat_endpoint(test_client: AsyncClient, fake_ai, seeded):
    response = await test_client.post("/api/v1/ai-proxy", json={
        "companyId": seeded["acme"]["id"],
        "requestData": {"endpoint": "embeddings", "params": {"input": "x"}, "stream": True},
    })

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Streaming is only supported for chat.completions"}
    assert fake_ai.calls == []


async def test_proxy_forwards_params_and_records_usage(test_client: AsyncClient, fake_ai, gateway, seeded, monkeypatch):
    async def proxy(endpoint, params):
        fake_ai.calls.append(("proxy", endpoint, params))
        return _ProxiedCompletion(usage=_Usage(total_tokens=17))

    monkeypatch.setattr(fake_ai, "proxy", proxy)
    params = {"model": "gpt-4o-mini", "messages": [{"role": "user", "content": "ping"}]}

    response = await test_client.post("/api/v1/ai-proxy", json={
        "companyId": seeded["acme"]["id"], "requestData": {"endpoint": "chat.completions", "params": params},
    })

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["usage"] == {"total_tokens": 17}
    assert fake_ai.calls[-1][2] == params
    assert ("log_ai_usage", {
        "p_company_id": seeded["acme"]["id"], "p_tokens_used": 17, "p_model": "gpt-4o-mini", "p_endpoint": "chat.completions",
    }) in gateway.rpc_calls


async def test_voice_speak_returns_base64_audio(test_client: AsyncClient, fake_ai, seeded):
    response = await test_client.post("/api/v1/ai-voice", json={
        "operation": "speak", "eveId": seeded["ava"]["id"], "text": "Good morning",
    })

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert base64.b64decode(body["audio"]) == b"ID3-fake-mp3"
    assert body["voice"] == "alloy"
    assert body["format"] == "mp3"
    assert fake_ai.calls[-1] == ("synthesize_speech", "Good morning", "alloy")


async def test_voice_speak_uses_configured_voice(test_client: AsyncClient, gateway, seeded):
    gateway.seed("eve_voice_settings", eve_id=seeded["ava"]["id"], openai_voice_model="nova")

    response = await test_client.post("/api/v1/ai-voice", json={
        "operation": "speak", "eveId": seeded["ava"]["id"], "text": "Good morning",
    })

    assert response.json()["voice"] == "nova"


async def test_voice_transcribe(test_client: AsyncClient, seeded):
    audio = base64.b64encode(b"RIFF-audio").decode()

    response = await test_client.post("/api/v1/ai-voice", json={
        "operation": "transcribe", "eveId": seeded["ava"]["id"], "audioData": audio,
    })

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"text": "transcribed text", "model": "whisper-1"}


async def test_voice_transcribe_without_audio(test_client: AsyncClient, seeded):
    response = await test_client.post("/api/v1/ai-voice", json={"operation": "transcribe", "eveId": seeded["ava"]["id"]})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Missing required parameter: audioData"}


async def test_voice_unknown_operation(test_client: AsyncClient, seeded):
    response = await test_client.post("/api/v1/ai-voice", json={"operation": "sing", "eveId": seeded["ava"]["id"]})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Unsupported operation: sing"}


async def test_connection_test_success(test_client: AsyncClient, fake_ai):
    response = await test_client.post("/api/v1/ai-connection-test")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert body["model"] == "gpt-3.5-turbo"
    assert fake_ai.calls[-1][2]["max_tokens"] == 5


async def test_connection_test_failure(test_client: AsyncClient, fake_ai):
    fake_ai.fail_complete = True

    response = await test_client.post("/api/v1/ai-connection-test")

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"success": False, "error": "provider down"}


async def test_proxy_requires_company_id(test_client: AsyncClient, fake_ai):
    response = await test_client.post("/api/v1/ai-proxy", json={
        "requestData": {"endpoint": "embeddings", "params": {"model": "text-embedding-ada-002", "input": "x"}},
    })

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Missing required parameter: companyId"}
    assert fake_ai.calls == []
