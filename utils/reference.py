import random
import string
import time
import uuid


class Reference:
    """Builds payment references and human-readable record codes."""

    def __init__(self, prefix: str = "GROCHAIN"):
        self.prefix = prefix

    def _random_suffix(self, size: int) -> str:
        return ''.join(random.choices(string.ascii_uppercase + string.digits, k=size))

    def _base36(self, value: int) -> str:
        digits = string.digits + string.ascii_uppercase
        out = ""
        while value:
            value, rem = divmod(value, 36)
            out = digits[rem] + out
        return out or "0"

    def payment(self) -> str:
        return f"{self.prefix}_{uuid.uuid4()}"

    def withdrawal(self) -> str:
        return f"WITHDRAW_{uuid.uuid4()}"

    def code(self, kind: str, label: str | None = None, size: int = 5) -> str:
        # COM-MAR-LX2K9Q1A-7Z3QD
        parts = [kind.upper()]
        if label:
            parts.append(label[:3].upper())
        parts.append(self._base36(int(time.time() * 1000)))
        parts.append(self._random_suffix(size))
        return "-".join(parts)


def platform_fee_reference(reference: str) -> str:
    return f"PLATFORM_FEE_{reference}"


def commission_reference(reference: str, partner_id) -> str:
    return f"COMMISSION_{reference}_{partner_id}"
