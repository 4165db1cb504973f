from pydantic import BaseModel
from typing import Generic, TypeVar, Optional

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    success: bool
    status_code: int
    message: str
    data: Optional[T] = None


def send_custom_response(status_code: int, message: str, data: Optional[T] = None):
    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
        },
        "body": APIResponse(
            success=200 <= status_code < 300,
            status_code=status_code,
            message=message,
            data=data,
        ).model_dump_json(),
    }


def format_validation_error(err) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in e['loc'])}: {e['msg']}" if e.get("loc") else e["msg"]
        for e in err.errors()
    )


def path_parameter(event: dict, name: str):
    return (event.get("pathParameters") or {}).get(name)
