"""
Single-use recovery codes.

Each code can replace a TOTP code exactly once. Used codes stay in the
list with a ``used_at`` timestamp so the user can see which ones are
gone.
"""
import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional

from pyotp.utils import strings_equal

logger = logging.getLogger(__name__)

RECOVERY_ALPHABET = string.ascii_uppercase + string.digits

# generator(length, index, amount) -> code; index counts from 1
CodeGenerator = Callable[[int, int, int], str]


def default_generator(length: int, index: int = 1, amount: int = 1) -> str:
    """Uniform random uppercase alphanumeric code."""
    return "".join(secrets.choice(RECOVERY_ALPHABET) for _ in range(length))


@dataclass
class RecoveryCode:
    """One recovery code and when it was used, if ever."""
    code: str
    used_at: Optional[datetime] = None

    @property
    def is_used(self) -> bool:
        return self.used_at is not None

    def to_dict(self) -> Dict:
        return {
            "code": self.code,
            "used_at": self.used_at.isoformat() if self.used_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "RecoveryCode":
        used_at = data.get("used_at")
        if isinstance(used_at, str):
            used_at = datetime.fromisoformat(used_at)
        return cls(code=str(data["code"]), used_at=used_at)


class RecoveryCodeSet:
    """
    Ordered collection of recovery codes.

    Example usage:
        codes = RecoveryCodeSet.generate(10, 8)

        codes.consume("7XK2P9QA")   # True the first time
        codes.consume("7XK2P9QA")   # False afterwards
        codes.has_unused()
    """

    def __init__(self, codes: Optional[List[RecoveryCode]] = None, generator: Optional[CodeGenerator] = None):
        self.codes: List[RecoveryCode] = list(codes or [])
        self.generator = generator or default_generator

    @classmethod
    def generate(cls, amount: int, length: int, generator: Optional[CodeGenerator] = None) -> "RecoveryCodeSet":
        """
        Create a fresh batch of unused codes.

        Args:
            amount: Number of codes.
            length: Characters per code.
            generator: Optional ``generator(length, index, amount)``.

        Returns:
            New RecoveryCodeSet.
        """
        generator = generator or default_generator
        codes = [
            RecoveryCode(code=str(generator(length, index, amount)))
            for index in range(1, amount + 1)
        ]
        return cls(codes, generator=generator)

    def regenerate(self, amount: int, length: int) -> None:
        """Replace every code with a new batch from this set's generator."""
        self.codes = RecoveryCodeSet.generate(amount, length, self.generator).codes

    def find_unused(self, code: str) -> Optional[int]:
        """Index of the unused entry matching ``code`` exactly, or None."""
        for index, entry in enumerate(self.codes):
            if entry.used_at is None and strings_equal(entry.code, code):
                return index
        return None

    def consume(self, code: str, now: Optional[datetime] = None) -> bool:
        """
        Mark a code as used.

        Returns:
            True if an unused matching code was found and marked.
        """
        index = self.find_unused(code)
        if index is None:
            return False

        self.codes[index].used_at = now or datetime.now(timezone.utc)
        return True

    def has_unused(self) -> bool:
        return any(entry.used_at is None for entry in self.codes)

    def unused(self) -> List[str]:
        return [entry.code for entry in self.codes if entry.used_at is None]

    def to_list(self) -> List[Dict]:
        return [entry.to_dict() for entry in self.codes]

    @classmethod
    def from_list(cls, data: Optional[List[Dict]], generator: Optional[CodeGenerator] = None) -> "RecoveryCodeSet":
        return cls([RecoveryCode.from_dict(item) for item in data or []], generator=generator)

    def __len__(self) -> int:
        return len(self.codes)

    def __iter__(self) -> Iterator[RecoveryCode]:
        return iter(self.codes)

    def __bool__(self) -> bool:
        return bool(self.codes)
