"""
Pytest configuration for integration tests.

Runs the real Meta Cloud and Bitrix24 REST clients against in-process fakes
of both APIs (httpx.MockTransport), so every request crosses the wire format.
"""

import json

import httpx
import pytest

from openlines_bridge.bitrix.client import BitrixRestGateway
from openlines_bridge.providers.meta_cloud import MetaCloudWhatsAppProvider


class FakeGraphApi:
    """Answers Graph API calls and records every request."""

    def __init__(self):
        self.requests: list[tuple[str, str, dict]] = []
        self.media: dict[str, str] = {}
        self._sent = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        self.requests.append((request.method, request.url.path, body))

        if request.method == "GET":
            media_id = request.url.path.rsplit("/", 1)[-1]
            if media_id in self.media:
                return httpx.Response(200, json={"id": media_id, "url": self.media[media_id]})
            return httpx.Response(200, json={"id": media_id, "verified_name": "Shop"})

        if body.get("status") == "read":
            return httpx.Response(200, json={"success": True})

        self._sent += 1
        return httpx.Response(200, json={"messages": [{"id": f"wamid.OUT{self._sent}"}]})

    def sent_messages(self) -> list[dict]:
        return [body for method, _, body in self.requests if method == "POST" and "type" in body]

    def read_receipts(self) -> list[dict]:
        return [body for method, _, body in self.requests if body.get("status") == "read"]


class FakeBitrixApi:
    """Minimal stateful Bitrix24 REST fake (contacts, sessions, messages)."""

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []
        self.contacts: list[dict] = []
        self.sessions: dict[str, int] = {}
        self.messages: dict[int, list[dict]] = {}
        self.unavailable: set[str] = set()
        self._next_id = 100

    def _id(self) -> int:
        self._next_id += 1
        return self._next_id

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1].removesuffix(".json")
        params = json.loads(request.content) if request.content else {}
        self.calls.append((method, params))

        if method in self.unavailable:
            return httpx.Response(503, json={"error": "SERVICE_UNAVAILABLE", "error_description": "Maintenance"})

        handler = getattr(self, "_" + method.replace(".", "_"), None)
        if handler is None:
            return httpx.Response(400, json={"error": "ERROR_METHOD_NOT_FOUND", "error_description": method})
        return httpx.Response(200, json={"result": handler(params)})

    def _crm_contact_list(self, params):
        phone = params["filter"]["PHONE"]
        return [c for c in self.contacts if c["PHONE"][0]["VALUE"] == phone]

    def _crm_contact_add(self, params):
        contact = {"ID": str(self._id()), **params["fields"]}
        self.contacts.append(contact)
        return int(contact["ID"])

    def _crm_contact_get(self, params):
        return next(c for c in self.contacts if c["ID"] == str(params["id"]))

    def _imopenlines_session_get(self, params):
        session_id = self.sessions.get(params["USER_CODE"])
        return {"ID": str(session_id)} if session_id else []

    def _imopenlines_session_create(self, params):
        session_id = self._id()
        self.sessions[params["USER_CODE"]] = session_id
        self.messages[session_id] = []
        return session_id

    def _imopenlines_session_list(self, params):
        return [{"ID": str(sid), "USER_CODE": code} for code, sid in self.sessions.items()]

    def _imopenlines_message_add(self, params):
        message = {
            "ID": str(self._id()),
            "AUTHOR_ID": "0",
            "MESSAGE": params["MESSAGE"],
            "FILES": params["FILES"],
            "PARAMS": params["PARAMS"],
        }
        self.messages[params["SESSION_ID"]].append(message)
        return int(message["ID"])

    def _imopenlines_dialog_messages_get(self, params):
        return self.messages.get(params["SESSION_ID"], [])[-params["LIMIT"]:]

    def _imopenlines_message_update(self, params):
        for message in self.messages.get(params["SESSION_ID"], []):
            if message["ID"] == str(params["MESSAGE_ID"]):
                message["PARAMS"] = params["PARAMS"]
                return True
        return False

    def _profile(self, params):
        return {"ID": "1", "NAME": "Integration"}

    def add_agent_reply(self, session_id: int, text: str, files: list[dict] | None = None) -> str:
        message_id = str(self._id())
        self.messages[session_id].append(
            {"ID": message_id, "AUTHOR_ID": "3", "MESSAGE": text, "FILES": files or [], "PARAMS": {}}
        )
        return message_id

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]


@pytest.fixture
def rest_settings(settings_factory):
    return settings_factory(whatsapp_provider="meta", bitrix24_provider="rest")


@pytest.fixture
def graph_api():
    return FakeGraphApi()


@pytest.fixture
def bitrix_api():
    return FakeBitrixApi()


@pytest.fixture
def meta_provider(rest_settings, graph_api):
    return MetaCloudWhatsAppProvider(rest_settings, client=httpx.AsyncClient(transport=httpx.MockTransport(graph_api)))


@pytest.fixture
def rest_gateway(rest_settings, bitrix_api):
    return BitrixRestGateway(rest_settings, client=httpx.AsyncClient(transport=httpx.MockTransport(bitrix_api)))
