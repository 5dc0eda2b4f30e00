"""Habitica tool definitions.

Definitions are listed in the order they are registered and published.
"""

from shared.models import ToolDefinition
from shared.schema import create_tool_schema

TASK_LIST_TYPES = ["habits", "dailys", "todos", "rewards"]
TASK_TYPES = ["habit", "daily", "todo", "reward"]
TASK_WEIGHTS = [0.1, 1, 1.5, 2]
SCORE_DIRECTIONS = ["up", "down"]
EQUIP_TYPES = ["mount", "pet", "costume", "equipped"]
SHOP_TYPES = ["market", "questShop", "timeTravelersShop", "seasonalShop"]

_TASK_ID = {"name": "taskId", "type": "string", "description": "Task ID"}
_ITEM_ID = {"name": "itemId", "type": "string", "description": "Checklist item ID"}

_CHECKLIST_ITEM_SCHEMA = {
    "type": "object",
    "properties": {
        "text": {"type": "string", "description": "Checklist item text"},
        "completed": {"type": "boolean", "description": "Completed status", "default": False},
    },
    "required": ["text"],
}


def _tool(name: str, description: str, parameters=None, required=None) -> ToolDefinition:
    return ToolDefinition(
        name=name,
        description=description,
        input_schema=create_tool_schema(parameters or [], required),
    )


TOOL_DEFINITIONS: list[ToolDefinition] = [
    _tool("get_user_profile", "Get user profile"),
    _tool(
        "get_tasks",
        "Get tasks list",
        [{"name": "type", "type": "string", "enum": TASK_LIST_TYPES, "description": "Task type"}],
    ),
    _tool(
        "create_task",
        "Create new task",
        [
            {"name": "type", "type": "string", "enum": TASK_TYPES, "description": "Task type"},
            {"name": "text", "type": "string", "description": "Task title"},
            {"name": "notes", "type": "string", "description": "Task notes"},
            {
                "name": "difficulty",
                "type": "number",
                "enum": TASK_WEIGHTS,
                "description": "Difficulty (0.1=easy, 1=medium, 1.5=hard, 2=very hard)",
            },
            {
                "name": "priority",
                "type": "number",
                "enum": TASK_WEIGHTS,
                "description": "Priority (0.1=low, 1=med, 1.5=high, 2=urgent)",
            },
            {
                "name": "checklist",
                "type": "array",
                "items": _CHECKLIST_ITEM_SCHEMA,
                "description": "Checklist items",
            },
        ],
        ["type", "text"],
    ),
    _tool(
        "score_task",
        "Score task / habit",
        [
            _TASK_ID,
            {
                "name": "direction",
                "type": "string",
                "enum": SCORE_DIRECTIONS,
                "description": "Direction (up=positive, down=negative, habits only)",
            },
        ],
        ["taskId"],
    ),
    _tool(
        "update_task",
        "Update task",
        [
            _TASK_ID,
            {"name": "text", "type": "string", "description": "Task title"},
            {"name": "notes", "type": "string", "description": "Task notes"},
            {"name": "completed", "type": "boolean", "description": "Completed flag"},
        ],
        ["taskId"],
    ),
    _tool("delete_task", "Delete task", [_TASK_ID], ["taskId"]),
    _tool("get_stats", "Get user stats"),
    _tool(
        "buy_reward",
        "Buy reward",
        [{"name": "key", "type": "string", "description": "Reward key or ID"}],
        ["key"],
    ),
    _tool("get_inventory", "Get inventory"),
    _tool(
        "cast_spell",
        "Cast spell",
        [
            {"name": "spellId", "type": "string", "description": "Spell ID"},
            {"name": "targetId", "type": "string", "description": "Target ID (optional)"},
        ],
        ["spellId"],
    ),
    _tool("get_tags", "Get tags list"),
    _tool(
        "create_tag",
        "Create tag",
        [{"name": "name", "type": "string", "description": "Tag name"}],
        ["name"],
    ),
    _tool("get_pets", "Get pets list"),
    _tool(
        "feed_pet",
        "Feed pet",
        [
            {"name": "pet", "type": "string", "description": "Pet key"},
            {"name": "food", "type": "string", "description": "Food key"},
        ],
        ["pet", "food"],
    ),
    _tool(
        "hatch_pet",
        "Hatch pet",
        [
            {"name": "egg", "type": "string", "description": "Egg key"},
            {"name": "hatchingPotion", "type": "string", "description": "Hatching potion key"},
        ],
        ["egg", "hatchingPotion"],
    ),
    _tool("get_mounts", "Get mounts list"),
    _tool(
        "equip_item",
        "Equip item",
        [
            {"name": "type", "type": "string", "enum": EQUIP_TYPES, "description": "Equip type"},
            {"name": "key", "type": "string", "description": "Item key"},
        ],
        ["type", "key"],
    ),
    _tool("get_notifications", "Get notifications list"),
    _tool(
        "read_notification",
        "Mark notification as read",
        [{"name": "notificationId", "type": "string", "description": "Notification ID"}],
        ["notificationId"],
    ),
    _tool(
        "get_shop",
        "Get shop items",
        [{"name": "shopType", "type": "string", "enum": SHOP_TYPES, "description": "Shop type"}],
    ),
    _tool(
        "buy_item",
        "Buy shop item",
        [
            {"name": "itemKey", "type": "string", "description": "Item key"},
            {"name": "quantity", "type": "number", "description": "Quantity to buy", "default": 1},
        ],
        ["itemKey"],
    ),
    _tool(
        "add_checklist_item",
        "Add checklist item to task",
        [_TASK_ID, {"name": "text", "type": "string", "description": "Checklist item text"}],
        ["taskId", "text"],
    ),
    _tool(
        "update_checklist_item",
        "Update checklist item",
        [
            _TASK_ID,
            _ITEM_ID,
            {"name": "text", "type": "string", "description": "Checklist item text"},
            {"name": "completed", "type": "boolean", "description": "Completed status"},
        ],
        ["taskId", "itemId"],
    ),
    _tool("delete_checklist_item", "Delete checklist item", [_TASK_ID, _ITEM_ID], ["taskId", "itemId"]),
    _tool("get_task_checklist", "Get task checklist items", [_TASK_ID], ["taskId"]),
    _tool(
        "score_checklist_item",
        "Score checklist item (mark complete/incomplete)",
        [_TASK_ID, _ITEM_ID],
        ["taskId", "itemId"],
    ),
]
