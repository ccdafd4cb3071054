import json
import logging
import os
import re
from pathlib import Path

import httpx
from flask import Flask, request, jsonify
from httpx import Timeout

from grocery_agent.actions import run_action
from grocery_agent.dstask import DstaskClient
from grocery_agent.errors import GroceryError, ValidationError
from grocery_agent.tools import TOOLS, execute_tool_call

# --- Logging configuration and logger setup ---
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

OLLAMA_URL = os.getenv("OLLAMA_URL", "http://localhost:11434/api/chat")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "qwen3")
OLLAMA_TIMEOUT = os.getenv("OLLAMA_TIMEOUT")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

app = Flask(__name__)

system_prompt = (Path(__file__).parent / "system_prompt.txt").read_text()

grocery = DstaskClient()

GATEWAY_METHODS = {}


def gateway_method(name):
    def register(func):
        GATEWAY_METHODS[name] = func
        return func

    return register


@gateway_method("grocery.list")
def gateway_list(params: dict) -> dict:
    return {"ok": True, "items": grocery.list_pending()}


@gateway_method("grocery.add")
def gateway_add(params: dict) -> dict:
    return {"ok": True, "message": run_action(grocery, "add", item=params.get("item"))}


@gateway_method("grocery.done")
def gateway_done(params: dict) -> dict:
    return {"ok": True, "message": run_action(grocery, "done", id=params.get("id"))}


@app.route("/gateway/<method>", methods=["POST"])
def gateway_endpoint(method):
    """
    Gateway method endpoint.
    Expects a JSON object of params, e.g. { "item": "milk" } for grocery.add.
    """
    handler = GATEWAY_METHODS.get(method)
    if handler is None:
        logger.warning("Unknown gateway method: %s", method)
        return jsonify({"ok": False, "error": f"Unknown method: {method}"}), 404

    params = request.get_json(silent=True)
    if params is None:
        params = {}
    if not isinstance(params, dict):
        return jsonify({"ok": False, "error": "Expected JSON object body"}), 400

    logger.info("%s params: %s", method, params)
    try:
        return jsonify(handler(params)), 200
    except ValidationError as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    except GroceryError as e:
        logger.error("%s failed: %s", method, e)
        return jsonify({"ok": False, "error": str(e)}), 502


def call_ollama(user_content: str) -> dict:
    """
    Sends a user prompt plus the system prompt and grocery tool definitions to
    Ollama, returns its JSON response, and if a tool call is present, runs it.
    """
    payload = {
        "model": OLLAMA_MODEL,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content}
        ],
        "functions": TOOLS,
        "function_call": "auto",
        "stream": False
    }
    logger.debug("Ollama payload: %s", payload)
    timeout = Timeout(float(OLLAMA_TIMEOUT) if OLLAMA_TIMEOUT else None)
    with httpx.Client(timeout=timeout) as client:
        resp = client.post(OLLAMA_URL, json=payload)
        resp.raise_for_status()
        resp_json = resp.json()

    content = ""
    if isinstance(resp_json.get("message"), dict):
        content = resp_json["message"].get("content", "")
    elif resp_json.get("choices"):
        content = resp_json["choices"][0]["message"]["content"]

    m = re.search(r"<tool_call>\s*(\{.*?\})\s*</tool_call>", content, re.DOTALL)
    if m:
        logger.info("Tool call: %s", m.group(1))
        try:
            tool_call = json.loads(m.group(1))
        except json.JSONDecodeError:
            resp_json["tool_error"] = "Invalid JSON in tool_call"
            return resp_json

        resp_json["tool_call"] = tool_call
        resp_json["tool_response"] = execute_tool_call(tool_call, grocery)

    return resp_json


@app.route("/", methods=["POST"])
def text_endpoint():
    """
    Text‑input endpoint.
    Expects JSON: { "prompt": "Your prompt here" }
    """
    if not request.is_json:
        return jsonify({"error": "Expected JSON body"}), 400

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"error": "Expected JSON object body"}), 400
    prompt = str(body.get("prompt", "")).strip()
    if not prompt:
        return jsonify({"error": "No 'prompt' field provided"}), 400

    logger.info("/text prompt: %s", prompt)
    try:
        result = call_ollama(prompt)
        return jsonify(result), 200
    except Exception as e:
        logger.error("Ollama error: %s", e)
        return jsonify({"error": "Ollama request failed", "details": str(e)}), 500


@app.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"}), 200


if __name__ == "__main__":
    app.run(host=HOST, port=PORT)
