import logging

from grocery_agent.dstask import item_summary
from grocery_agent.errors import UnknownActionError, ValidationError

logger = logging.getLogger(__name__)

ACTIONS = ("list", "add", "done", "remove", "clear")


def format_items(items: list) -> str:
    if not items:
        return "Grocery list is empty"
    lines = [f"{item.get('id')}. {item_summary(item)}" for item in items]
    return "Grocery list:\n" + "\n".join(lines)


def run_action(client, action: str, item: str | None = None, id: str | None = None) -> str:
    """
    Run one grocery action against a DstaskClient and return its result text.

    Required fields are checked before dstask is touched: 'add' needs an
    item description, 'done' and 'remove' need an item id.
    """
    logger.info("Grocery action: %s", action)

    if action == "list":
        return format_items(client.list_pending())

    if action == "add":
        if not item:
            raise ValidationError("Item description is required for 'add' action")
        if not isinstance(item, str):
            raise ValidationError("Item description must be a string")
        return client.add_item(item)

    if action in ("done", "remove"):
        if id is None or str(id).strip() == "":
            raise ValidationError(f"Item ID is required for '{action}' action")
        if isinstance(id, bool) or not isinstance(id, (str, int)):
            raise ValidationError("Item ID must be a string or an integer")
        if action == "done":
            return client.mark_done(id)
        return client.remove_item(id)

    if action == "clear":
        return client.clear_resolved()

    raise UnknownActionError(f"Unknown action: {action}")
