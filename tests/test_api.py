import httpx
import pytest

from grocery_agent import api


@pytest.fixture
def http(client, monkeypatch):
    monkeypatch.setattr(api, "grocery", client)
    return api.app.test_client()


class FakeOllama:
    """Minimal httpx.Client replacement returning a canned chat reply."""

    reply = {}
    text = None
    payloads = []

    def __init__(self, timeout=None):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def post(self, url, json=None):
        FakeOllama.payloads.append(json)
        request = httpx.Request("POST", url)
        if FakeOllama.text is not None:
            return httpx.Response(200, text=FakeOllama.text, request=request)
        return httpx.Response(200, json=FakeOllama.reply, request=request)


@pytest.fixture
def ollama(monkeypatch):
    FakeOllama.payloads = []
    FakeOllama.text = None
    monkeypatch.setattr(api.httpx, "Client", FakeOllama)
    return FakeOllama


class TestGateway:
    def test_list(self, http, fake_run):
        fake_run.queue('[\n{"id": 1, "summary": "milk"}\n]')
        resp = http.post("/gateway/grocery.list", json={})
        assert resp.status_code == 200
        assert resp.get_json() == {"ok": True, "items": [{"id": 1, "summary": "milk"}]}

    def test_list_without_body(self, http, fake_run):
        fake_run.queue("No tasks")
        resp = http.post("/gateway/grocery.list")
        assert resp.get_json() == {"ok": True, "items": []}

    def test_add(self, http, fake_run):
        resp = http.post("/gateway/grocery.add", json={"item": "bread"})
        assert resp.get_json() == {"ok": True, "message": 'Added "bread" to grocery list'}
        assert fake_run.calls == [["dstask", "add", "bread", "+grocery"]]

    def test_add_missing_item(self, http, fake_run):
        resp = http.post("/gateway/grocery.add", json={})
        assert resp.status_code == 400
        assert resp.get_json()["ok"] is False
        assert fake_run.calls == []

    def test_done(self, http, fake_run):
        resp = http.post("/gateway/grocery.done", json={"id": "2"})
        assert resp.get_json() == {"ok": True, "message": "Marked item 2 as bought"}

    def test_tool_failure(self, http, fake_run):
        fake_run.queue("", returncode=1, stderr="no task 2")
        resp = http.post("/gateway/grocery.done", json={"id": "2"})
        assert resp.status_code == 502
        assert "no task 2" in resp.get_json()["error"]

    @pytest.mark.parametrize("method", ["grocery.remove", "grocery.clear", "nope"])
    def test_only_three_methods_exposed(self, http, fake_run, method):
        resp = http.post(f"/gateway/{method}", json={"id": "1"})
        assert resp.status_code == 404
        assert fake_run.calls == []

    @pytest.mark.parametrize("item", [5, ["milk"], {"name": "milk"}])
    def test_add_non_string_item(self, http, fake_run, item):
        resp = http.post("/gateway/grocery.add", json={"item": item})
        assert resp.status_code == 400
        assert resp.get_json()["ok"] is False
        assert fake_run.calls == []

    def test_done_non_scalar_id(self, http, fake_run):
        resp = http.post("/gateway/grocery.done", json={"id": ["2"]})
        assert resp.status_code == 400
        assert fake_run.calls == []

    def test_non_object_body(self, http):
        resp = http.post("/gateway/grocery.add", json=["milk"])
        assert resp.status_code == 400


class TestPrompt:
    def test_requires_json(self, http):
        resp = http.post("/", data="add milk")
        assert resp.status_code == 400

    def test_requires_prompt(self, http):
        resp = http.post("/", json={"prompt": "   "})
        assert resp.status_code == 400

    def test_tool_call_is_executed(self, http, fake_run, ollama):
        ollama.reply = {"message": {"role": "assistant", "content": (
            '<tool_call>\n{"name": "grocery_list", '
            '"arguments": {"action": "add", "item": "apples"}}\n</tool_call>'
        )}}
        resp = http.post("/", json={"prompt": "we need apples"})
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["tool_call"]["name"] == "grocery_list"
        assert body["tool_response"] == {"ok": True, "result": 'Added "apples" to grocery list'}
        assert fake_run.calls == [["dstask", "add", "apples", "+grocery"]]
        assert ollama.payloads[0]["functions"][0]["name"] == "grocery_list"

    def test_invalid_tool_call_json(self, http, fake_run, ollama):
        ollama.reply = {"message": {"content": "<tool_call>{not json}</tool_call>"}}
        body = http.post("/", json={"prompt": "hi"}).get_json()
        assert body["tool_error"] == "Invalid JSON in tool_call"
        assert fake_run.calls == []

    def test_prompt_body_must_be_object(self, http):
        resp = http.post("/", json=["add milk"])
        assert resp.status_code == 400

    def test_non_json_reply(self, http, ollama):
        ollama.text = "<html>proxy error</html>"
        resp = http.post("/", json={"prompt": "add milk"})
        assert resp.status_code == 500
        assert resp.is_json
        assert resp.get_json()["error"] == "Ollama request failed"

    @pytest.mark.parametrize("reply", [
        {"message": {"content": None}},
        {"choices": [{"delta": {}}]},
    ])
    def test_unexpected_reply_shape(self, http, ollama, reply):
        ollama.reply = reply
        resp = http.post("/", json={"prompt": "add milk"})
        assert resp.status_code == 500
        assert resp.get_json()["error"] == "Ollama request failed"

    def test_tool_call_with_bad_item_type(self, http, fake_run, ollama):
        ollama.reply = {"message": {"content": (
            '<tool_call>{"name": "grocery_list", '
            '"arguments": {"action": "add", "item": 5}}</tool_call>'
        )}}
        body = http.post("/", json={"prompt": "add five"}).get_json()
        assert body["tool_response"]["ok"] is False
        assert fake_run.calls == []

    def test_plain_answer(self, http, ollama):
        ollama.reply = {"message": {"content": "Hello!"}}
        body = http.post("/", json={"prompt": "hi"}).get_json()
        assert "tool_call" not in body


def test_health(http):
    assert http.get("/health").get_json() == {"status": "ok"}
