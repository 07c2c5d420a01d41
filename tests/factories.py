from typing import Any

import httpx
import orjson

FINGERPRINT = "AA" * 32
OTHER_FINGERPRINT = "0123456789abcdef" * 4

API = "/api/v1"
PRE_CHECK_PATH = f"{API}/licensing/activate-booth/pre-check"
ACTIVATE_PATH = f"{API}/licensing/activate-booth"
REGENERATE_PATH = f"{API}/licensing/regenerate"
BOOTHS_PATH = f"{API}/payments/booths/subscriptions"


class FakeBackend:
    """In-memory licensing backend behind an httpx.MockTransport."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[httpx.Response | Exception]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        status: int = 200,
        json: Any = None,
        content: bytes | None = None,
        exc: Exception | None = None,
    ) -> None:
        if exc is not None:
            item: httpx.Response | Exception = exc
        elif content is not None:
            item = httpx.Response(status, content=content)
        else:
            item = httpx.Response(status, json=json)
        self.routes.setdefault((method, path), []).append(item)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"detail": "Not Found"})

        # The last registered response keeps answering
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def calls(self, path: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.path == path]

    def bodies(self, path: str) -> list[dict[str, Any]]:
        return [orjson.loads(request.content) for request in self.calls(path)]


def pre_check_payload(
    booth_id: str = "B1",
    booth_name: str = "Lobby Booth",
    can_proceed: bool = True,
    conflicts: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    return {
        "booth_id": booth_id,
        "booth_name": booth_name,
        "fingerprint_short": "PBX-V1-AAAAAAAA",
        "has_valid_subscription": can_proceed,
        "conflicts": conflicts or [],
        "can_proceed": can_proceed,
        "message": "Ready to activate" if can_proceed else "Subscription required",
    }


def bound_elsewhere_conflict(
    previous_booth_id: str = "B9", previous_booth_name: str = "Old Booth"
) -> dict[str, Any]:
    return {
        "conflict_type": "fingerprint_bound_elsewhere",
        "message": f'This device is currently activated as "{previous_booth_name}".',
        "details": {
            "previous_booth_id": previous_booth_id,
            "previous_booth_name": previous_booth_name,
        },
    }


def other_device_conflict(transaction_count: int = 42) -> dict[str, Any]:
    return {
        "conflict_type": "booth_has_other_device_data",
        "message": "",
        "details": {
            "transaction_count": transaction_count,
            "previous_hardware_id": "PBX-V1-BBBBBBBB",
        },
    }


def activation_payload(
    success: bool = True,
    error_code: str | None = None,
    booth_id: str = "B1",
    message: str | None = None,
) -> dict[str, Any]:
    if not success:
        return {
            "success": False,
            "fingerprint_short": "PBX-V1-AAAAAAAA",
            "license_key": None,
            "error_code": error_code,
            "message": message or "Activation failed",
        }
    return {
        "success": True,
        "fingerprint_short": "PBX-V1-AAAAAAAA",
        "license_key": "ABCD-EFGH-IJKL-MNOP",
        "cloud_sync": {
            "enabled": True,
            "booth_id": booth_id,
            "api_key": "sync-key",
            "sync_endpoint": "https://sync.test/api",
            "owner_id": "owner-1",
        },
        "error_code": None,
        "message": message or "Booth activated",
    }


def booths_payload() -> dict[str, Any]:
    return {
        "items": [
            {
                "booth_id": "B1",
                "booth_name": "Lobby Booth",
                "subscription_id": "sub_1",
                "status": "active",
                "is_active": True,
                "current_period_end": "2026-12-01T00:00:00Z",
                "cancel_at_period_end": False,
                "price_id": "price_1",
            },
            {
                "booth_id": "B2",
                "booth_name": "Rooftop Booth",
                "subscription_id": None,
                "status": None,
                "is_active": False,
                "current_period_end": None,
                "cancel_at_period_end": False,
                "price_id": None,
            },
        ],
        "total": 2,
    }
