from flask import request

from wikiclase.errors import BadRequest

MAX_TAKE = 100


def json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequest("Invalid or missing JSON body")
    return data


def int_arg(name, default=None, minimum=None, maximum=None):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise BadRequest(f"'{name}' must be an integer")
    if minimum is not None and value < minimum:
        raise BadRequest(f"'{name}' must be at least {minimum}")
    if maximum is not None and value > maximum:
        value = maximum
    return value


def enum_arg(name, enum_cls):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return enum_cls(raw.upper())
    except ValueError:
        raise BadRequest(f"Invalid {name}: {raw}")


def pagination():
    return int_arg("skip", 0, minimum=0), int_arg("take", 10, minimum=1, maximum=MAX_TAKE)
