from typing import Any, Optional, Type

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from sales_engine.core.errors import EngineError


def respond(message: str, payload: Any = None, schema: Optional[Type[BaseModel]] = None) -> dict:
    """Success envelope. ``schema`` serialises ORM rows (or lists of them)."""
    if schema is not None and payload is not None:
        if isinstance(payload, list):
            payload = [schema.model_validate(item) for item in payload]
        else:
            payload = schema.model_validate(payload)
    return {"success": True, "message": message, "payload": jsonable_encoder(payload)}


def failure(error: EngineError) -> dict:
    return {"success": False, "message": error.message, "payload": {"code": error.code}}


def detail(schema: Type[BaseModel], obj: Any, history) -> dict:
    """An entity together with its update history, oldest entry first."""
    body = schema.model_validate(obj).model_dump(mode="json")
    body["update_history"] = [entry.as_dict() for entry in history]
    return body
