from typing import Any

import orjson


def pretty_object(msg: Any) -> str:
    """
    Render an error payload for display inside a chat message.

    Non-string values are dumped as indented JSON and fenced as a json code
    block; an empty object falls back to its plain string form.
    """
    obj = msg
    if not isinstance(msg, str):
        msg = orjson.dumps(msg, option=orjson.OPT_INDENT_2).decode()

    if msg == "{}":
        return str(obj)
    if msg.startswith("```json"):
        return msg
    return "\n".join(["```json", msg, "```"])
