"""Habitica tool handlers.

Each handler checks its required arguments before anything is sent
upstream, then turns the JSON result into a response envelope.
"""

from typing import Any, Optional
from urllib.parse import quote

from shared.models import ResponseEnvelope
from habitica.client import HabiticaClient
from mcp_server.errors import MissingArgumentError
from mcp_server.registry import ToolHandler

TASK_CREATE_FIELDS = ("type", "text", "notes", "difficulty", "priority", "checklist")
TASK_UPDATE_FIELDS = ("text", "notes", "completed")
CHECKLIST_UPDATE_FIELDS = ("text", "completed")


def require(arguments: dict[str, Any], name: str) -> Any:
    """Return a required argument or raise ``MissingArgumentError``."""
    value = arguments.get(name)
    if value is None or value == "":
        raise MissingArgumentError(name)
    return value


def segment(value: Any) -> str:
    """Percent-encode a value for use as a single path segment."""
    return quote(str(value), safe="")


def pick(arguments: dict[str, Any], fields: tuple[str, ...]) -> dict[str, Any]:
    return {key: arguments[key] for key in fields if key in arguments}


def unwrap(body: Any) -> Any:
    """Habitica wraps payloads as ``{"success": ..., "data": ...}``."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _field(data: Any, key: str) -> Optional[Any]:
    return data.get(key) if isinstance(data, dict) else None


async def _get_user(client: HabiticaClient) -> dict[str, Any]:
    return unwrap(await client.get("/user")) or {}


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

async def get_user_profile(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    return ResponseEnvelope.from_json(await _get_user(client))


async def get_stats(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    user = await _get_user(client)
    return ResponseEnvelope.from_json(user.get("stats"))


async def get_inventory(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    user = await _get_user(client)
    return ResponseEnvelope.from_json(user.get("items"))


async def get_pets(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    user = await _get_user(client)
    return ResponseEnvelope.from_json((user.get("items") or {}).get("pets"))


async def get_mounts(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    user = await _get_user(client)
    return ResponseEnvelope.from_json((user.get("items") or {}).get("mounts"))


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

async def get_tasks(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    body = await client.get("/tasks/user", params={"type": arguments.get("type")})
    return ResponseEnvelope.from_json(body)


async def create_task(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    require(arguments, "type")
    require(arguments, "text")

    task = unwrap(await client.post("/tasks/user", body=pick(arguments, TASK_CREATE_FIELDS)))
    return ResponseEnvelope.from_text(
        f"Successfully created task: {_field(task, 'text')} (ID: {_field(task, 'id')})"
    )


def describe_score(result: Any) -> str:
    """Summarize the rewards reported by a score call."""
    message = "Task completed! "
    if _field(result, "exp"):
        message += f"Gained {result['exp']} experience. "
    if _field(result, "gp"):
        message += f"Gained {result['gp']} gold. "
    if _field(result, "lvl"):
        message += f"Leveled up to level {result['lvl']}! "
    return message.strip()


async def score_task(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    task_id = require(arguments, "taskId")
    direction = arguments.get("direction") or "up"

    result = unwrap(await client.post(f"/tasks/{segment(task_id)}/score/{segment(direction)}"))
    return ResponseEnvelope.from_text(describe_score(result))


async def update_task(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    task_id = require(arguments, "taskId")

    task = unwrap(await client.put(f"/tasks/{segment(task_id)}", body=pick(arguments, TASK_UPDATE_FIELDS)))
    return ResponseEnvelope.from_text(f"Successfully updated task: {_field(task, 'text')}")


async def delete_task(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    task_id = require(arguments, "taskId")

    await client.delete(f"/tasks/{segment(task_id)}")
    return ResponseEnvelope.from_text(f"Successfully deleted task (ID: {task_id})")


# ---------------------------------------------------------------------------
# Checklists
# ---------------------------------------------------------------------------

def format_checklist_item(item: dict[str, Any]) -> str:
    mark = "✓" if item.get("completed") else "○"
    return f"{mark} {item.get('text')} (ID: {item.get('id')})"


async def get_task_checklist(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    task_id = require(arguments, "taskId")

    task = unwrap(await client.get(f"/tasks/{segment(task_id)}")) or {}
    checklist = task.get("checklist") or []

    header = f"Task: {task.get('text')}\nChecklist items ({len(checklist)}):"
    if checklist:
        items = "\n".join(format_checklist_item(item) for item in checklist)
    else:
        items = "No checklist items found"
    return ResponseEnvelope.from_text(header, items)


async def add_checklist_item(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    task_id = require(arguments, "taskId")
    text = require(arguments, "text")

    item = unwrap(await client.post(f"/tasks/{segment(task_id)}/checklist", body={"text": text}))
    return ResponseEnvelope.from_text(
        f"Successfully added checklist item: {_field(item, 'text')} (ID: {_field(item, 'id')})"
    )


async def update_checklist_item(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    task_id = require(arguments, "taskId")
    item_id = require(arguments, "itemId")

    item = unwrap(await client.put(
        f"/tasks/{segment(task_id)}/checklist/{segment(item_id)}",
        body=pick(arguments, CHECKLIST_UPDATE_FIELDS),
    ))
    return ResponseEnvelope.from_text(f"Successfully updated checklist item: {_field(item, 'text')}")


async def delete_checklist_item(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    task_id = require(arguments, "taskId")
    item_id = require(arguments, "itemId")

    await client.delete(f"/tasks/{segment(task_id)}/checklist/{segment(item_id)}")
    return ResponseEnvelope.from_text(f"Successfully deleted checklist item (ID: {item_id})")


async def score_checklist_item(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    task_id = require(arguments, "taskId")
    item_id = require(arguments, "itemId")

    item = unwrap(await client.post(f"/tasks/{segment(task_id)}/checklist/{segment(item_id)}/score"))
    completed = str(bool(_field(item, "completed"))).lower()
    return ResponseEnvelope.from_text(
        f"Successfully scored checklist item: {_field(item, 'text')} (completed: {completed})"
    )


# ---------------------------------------------------------------------------
# Rewards, shops and items
# ---------------------------------------------------------------------------

async def buy_reward(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    key = require(arguments, "key")

    result = unwrap(await client.post(f"/user/buy/{segment(key)}"))
    return ResponseEnvelope.from_text(f"Successfully bought reward! Gold remaining: {_field(result, 'gp')}")


async def get_shop(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    shop_type = arguments.get("shopType") or "market"

    body = await client.get(f"/shops/{segment(shop_type)}")
    return ResponseEnvelope.from_json(body)


async def buy_item(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    item_key = require(arguments, "itemKey")
    quantity = arguments.get("quantity")
    if quantity is None:
        quantity = 1

    result = unwrap(await client.post(f"/user/buy/{segment(item_key)}", body={"quantity": quantity}))
    return ResponseEnvelope.from_text(
        f"Successfully bought {item_key} x{quantity}! Gold remaining: {_field(result, 'gp')}"
    )


async def equip_item(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    item_type = require(arguments, "type")
    key = require(arguments, "key")

    await client.post(f"/user/equip/{segment(item_type)}/{segment(key)}")
    return ResponseEnvelope.from_text(f"Successfully equipped {item_type}: {key}")


async def cast_spell(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    spell_id = require(arguments, "spellId")

    await client.post(
        f"/user/class/cast/{segment(spell_id)}",
        params={"targetId": arguments.get("targetId")},
    )
    return ResponseEnvelope.from_text(f"Successfully cast spell: {spell_id}")


# ---------------------------------------------------------------------------
# Pets
# ---------------------------------------------------------------------------

async def feed_pet(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    pet = require(arguments, "pet")
    food = require(arguments, "food")

    body = await client.post(f"/user/feed/{segment(pet)}/{segment(food)}")
    message = f"Successfully fed pet {pet}!"
    upstream_message = _field(body, "message")
    if upstream_message:
        message += f" {upstream_message}"
    return ResponseEnvelope.from_text(message)


async def hatch_pet(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    egg = require(arguments, "egg")
    potion = require(arguments, "hatchingPotion")

    await client.post(f"/user/hatch/{segment(egg)}/{segment(potion)}")
    return ResponseEnvelope.from_text(f"Successfully hatched pet! Got {egg}-{potion}")


# ---------------------------------------------------------------------------
# Tags and notifications
# ---------------------------------------------------------------------------

async def get_tags(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    return ResponseEnvelope.from_json(await client.get("/tags"))


async def create_tag(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    name = require(arguments, "name")

    tag = unwrap(await client.post("/tags", body={"name": name}))
    return ResponseEnvelope.from_text(
        f"Successfully created tag: {_field(tag, 'name')} (ID: {_field(tag, 'id')})"
    )


async def get_notifications(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    return ResponseEnvelope.from_json(await client.get("/notifications"))


async def read_notification(client: HabiticaClient, arguments: dict[str, Any]) -> ResponseEnvelope:
    notification_id = require(arguments, "notificationId")

    await client.post(f"/notifications/{segment(notification_id)}/read")
    return ResponseEnvelope.from_text(f"Successfully marked notification as read (ID: {notification_id})")


HANDLERS: dict[str, ToolHandler] = {
    "get_user_profile": get_user_profile,
    "get_tasks": get_tasks,
    "create_task": create_task,
    "score_task": score_task,
    "update_task": update_task,
    "delete_task": delete_task,
    "get_stats": get_stats,
    "buy_reward": buy_reward,
    "get_inventory": get_inventory,
    "cast_spell": cast_spell,
    "get_tags": get_tags,
    "create_tag": create_tag,
    "get_pets": get_pets,
    "feed_pet": feed_pet,
    "hatch_pet": hatch_pet,
    "get_mounts": get_mounts,
    "equip_item": equip_item,
    "get_notifications": get_notifications,
    "read_notification": read_notification,
    "get_shop": get_shop,
    "buy_item": buy_item,
    "add_checklist_item": add_checklist_item,
    "update_checklist_item": update_checklist_item,
    "delete_checklist_item": delete_checklist_item,
    "get_task_checklist": get_task_checklist,
    "score_checklist_item": score_checklist_item,
}
