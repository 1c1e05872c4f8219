from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

SUCCESS_CODE = 0
SUCCESS_MESSAGE = "success"


class ApiResponse(BaseModel, Generic[T]):
    """
    Envelope for every response body.

    `code` is 0 on success and the HTTP status code on failure.
    """
    code: int = SUCCESS_CODE
    message: str = SUCCESS_MESSAGE
    data: T | None = None

    @classmethod
    def success(cls, data=None, message: str = SUCCESS_MESSAGE):
        return cls(code=SUCCESS_CODE, message=message, data=data)


def error_body(code: int, message: str) -> dict:
    return {"code": code, "message": message, "data": None}
