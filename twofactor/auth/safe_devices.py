"""
Safe devices: remembered clients that skip the TOTP prompt for a while.
"""
import hmac
import secrets
import string
from dataclasses import dataclass, asdict
from typing import Dict, Iterator, List, Optional

SECONDS_PER_DAY = 86400
DEFAULT_MAX_DEVICES = 3
DEFAULT_TOKEN_LENGTH = 100

_TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_device_token(length: int = DEFAULT_TOKEN_LENGTH) -> str:
    """Random alphanumeric remember token."""
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


@dataclass
class SafeDevice:
    """A remembered device."""
    token: str
    origin_ip: Optional[str]
    added_at: int  # Unix seconds

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "SafeDevice":
        return cls(
            token=str(data["token"]),
            origin_ip=data.get("origin_ip"),
            added_at=int(data["added_at"]),
        )


class SafeDeviceRegistry:
    """
    Newest-first list of safe devices, never longer than ``max_devices``.
    """

    def __init__(self, devices: Optional[List[SafeDevice]] = None, max_devices: int = DEFAULT_MAX_DEVICES):
        if max_devices < 1:
            raise ValueError("max_devices must be positive")
        self.max_devices = max_devices
        self.devices: List[SafeDevice] = list(devices or [])

    def add(self, token: str, origin_ip: Optional[str], now: int) -> str:
        """
        Remember a device, evicting the oldest entries beyond capacity.

        Returns:
            The token that was stored.
        """
        self.devices.append(SafeDevice(token=token, origin_ip=origin_ip, added_at=int(now)))
        # Stable sort: on equal timestamps the earlier entry wins.
        self.devices = sorted(self.devices, key=lambda device: device.added_at, reverse=True)[:self.max_devices]
        return token

    def find(self, token: Optional[str]) -> Optional[SafeDevice]:
        """Device with exactly this token, or None."""
        if not token:
            return None
        for device in self.devices:
            if hmac.compare_digest(device.token.encode("utf-8"), token.encode("utf-8")):
                return device
        return None

    def added_at_for(self, token: Optional[str]) -> Optional[int]:
        device = self.find(token)
        return device.added_at if device else None

    def is_valid(self, token: Optional[str], now: int, expiration_days: int) -> bool:
        """
        Whether the token belongs to a device that has not expired.

        The device expires at exactly ``added_at + expiration_days``;
        from that instant on it is no longer valid.
        """
        device = self.find(token)
        if device is None:
            return False
        return device.added_at + expiration_days * SECONDS_PER_DAY > now

    def flush(self) -> None:
        self.devices = []

    def to_list(self) -> List[Dict]:
        return [device.to_dict() for device in self.devices]

    @classmethod
    def from_list(cls, data: Optional[List[Dict]], max_devices: int = DEFAULT_MAX_DEVICES) -> "SafeDeviceRegistry":
        return cls([SafeDevice.from_dict(item) for item in data or []], max_devices=max_devices)

    def __len__(self) -> int:
        return len(self.devices)

    def __iter__(self) -> Iterator[SafeDevice]:
        return iter(self.devices)
