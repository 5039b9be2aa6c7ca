"""LinkState — per-provider and wallet linkage for one linking session."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class LinkStatus(str, Enum):
    UNLINKED = "unlinked"
    LINKING = "linking"
    LINKED = "linked"
    FAILED = "failed"


@dataclass
class LinkState:
    provider_statuses: Dict[str, LinkStatus] = field(default_factory=dict)
    failure_reasons: Dict[str, str] = field(default_factory=dict)   # provider_id → last failure
    bindings: Dict[str, Dict[str, Any]] = field(default_factory=dict)  # provider_id → durable fields
    wallet_address: Optional[str] = None
    wallet_status: LinkStatus = LinkStatus.UNLINKED
    wallet_failure: Optional[str] = None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "providers": {
                pid: {
                    "status": status.value,
                    "reason": self.failure_reasons.get(pid) if status is LinkStatus.FAILED else None,
                    "binding": self.bindings.get(pid),
                }
                for pid, status in self.provider_statuses.items()
            },
            "wallet": {
                "status": self.wallet_status.value,
                "address": self.wallet_address,
                "reason": self.wallet_failure if self.wallet_status is LinkStatus.FAILED else None,
            },
        }
