import uuid
from typing import Callable

# entity kind -> public id prefix
ID_PREFIXES = {
    "product": "prd",
    "user": "usr",
    "purchase": "pur",
    "conversation": "cnv",
    "message": "msg",
    "notification": "ntf",
    "review": "rev",
}


def gen_id(kind: str) -> str:
    return f"{ID_PREFIXES[kind]}_{uuid.uuid4().hex}"


def id_default(kind: str) -> Callable[[], str]:
    """Column default for a primary key; unknown kinds fail at import time."""
    if kind not in ID_PREFIXES:
        raise KeyError(kind)
    return lambda: gen_id(kind)
