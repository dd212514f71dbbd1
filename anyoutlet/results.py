from typing import NamedTuple

VALIDATION = "validation"
OUT_OF_STOCK = "out_of_stock"
FORBIDDEN = "forbidden"
UNAVAILABLE = "unavailable"

FAILURE_STATUS = {
    VALIDATION: 200,
    OUT_OF_STOCK: 200,
    FORBIDDEN: 403,
    UNAVAILABLE: 502,
}


class Failure(NamedTuple):
    """A user-facing failure returned next to a result instead of raised."""

    kind: str
    message: str

    @property
    def status_code(self) -> int:
        return FAILURE_STATUS.get(self.kind, 200)


def validation_failure(message: str) -> Failure:
    return Failure(VALIDATION, message)


def out_of_stock() -> Failure:
    return Failure(OUT_OF_STOCK, "Out of Stock")
