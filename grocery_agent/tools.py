import logging

from grocery_agent.actions import ACTIONS, run_action
from grocery_agent.errors import GroceryError

logger = logging.getLogger(__name__)

TOOLS = [
    {
        "name": "grocery_list",
        "description": (
            "Manage grocery shopping list using dstask. "
            "Add items, list pending items, mark as bought, or clear completed items."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "enum": list(ACTIONS),
                    "description": (
                        "Action to perform: list (show pending), add (new item), "
                        "done (mark bought), remove (delete item), clear (remove all bought)"
                    )
                },
                "item": {
                    "type": "string",
                    "description": "Item description (for 'add' action)"
                },
                "id": {
                    "type": "string",
                    "description": "Item ID (for 'done' or 'remove' actions)"
                }
            },
            "required": ["action"]
        }
    }
]


def handle_grocery_list(args: dict, client) -> dict:
    try:
        result = run_action(
            client,
            args.get("action"),
            item=args.get("item"),
            id=args.get("id"),
        )
    except GroceryError as e:
        logger.error("grocery_list failed: %s", e)
        return {"ok": False, "error": str(e)}
    return {"ok": True, "result": result}


HANDLERS = {
    "grocery_list": handle_grocery_list,
}


def execute_tool_call(tool_call: dict, client) -> dict:
    """
    Execute a parsed tool call of the form {"name": ..., "arguments": {...}}.
    """
    name = tool_call.get("name")
    args = tool_call.get("arguments") or {}
    handler = HANDLERS.get(name)
    if handler is None:
        logger.error("Unknown tool requested: %s", name)
        return {"ok": False, "error": f"Unknown tool: {name}"}

    if not isinstance(args, dict):
        return {"ok": False, "error": f"Invalid arguments for {name}"}

    logger.info("Using %s tool", name)
    return handler(args, client)
