"""
Per-client seat bindings.

Every client receives every player's card in the shared session document,
so the only way to tell "my hidden card" from "someone else's hidden card"
is a binding kept on the client side: game id -> seat id. Bindings are
scoped to one client instance (one tab) and are never written to the shared
document, so two clients watching the same game never see each other's
binding.

Bindings live in memory, and optionally in a JSON file named after the
client tag so a client that reconnects with the same tag gets its seat back.
"""

import json
import logging
import secrets
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def new_client_tag() -> str:
    """Generate a tag identifying one client instance."""
    return f"{int(time.time() * 1000)}_{secrets.token_hex(5)}"


@dataclass(frozen=True)
class SeatBinding:
    """
    A client's claim on a seat.

    Attributes:
        game_id: Game the seat belongs to.
        seat_id: The claimed seat.
        player_name: Name used when joining.
        client_tag: Client instance that owns the binding.
    """

    game_id: str
    seat_id: int
    player_name: str
    client_tag: str

    @classmethod
    def from_dict(cls, d: dict) -> "SeatBinding":
        return cls(
            game_id=d["game_id"],
            seat_id=int(d["seat_id"]),
            player_name=d["player_name"],
            client_tag=d["client_tag"],
        )


class ClientIdentity:
    """Seat bindings owned by a single client instance."""

    def __init__(self, client_tag: Optional[str] = None, directory: Optional[str] = None):
        """
        Initialize the client's identity.

        Args:
            client_tag: Existing tag to resume (a new one is generated if None).
            directory: Where to persist bindings (in-memory only if None).
        """
        self.client_tag = client_tag or new_client_tag()
        self._bindings: dict[str, SeatBinding] = {}
        self._path: Optional[Path] = None
        if directory:
            self._path = Path(directory) / f"identity_{self.client_tag}.json"
            self._load()

    def _load(self) -> None:
        if not self._path or not self._path.exists():
            return
        data = json.loads(self._path.read_text())
        self._bindings = {
            game_id: SeatBinding.from_dict(binding)
            for game_id, binding in data.items()
        }
        logger.debug(f"Restored {len(self._bindings)} seat bindings for {self.client_tag}")

    def _save(self) -> None:
        if not self._path:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(
            {game_id: asdict(binding) for game_id, binding in self._bindings.items()}
        ))

    def bind(self, game_id: str, seat_id: int, player_name: str) -> SeatBinding:
        """Claim a seat in a game for this client."""
        binding = SeatBinding(
            game_id=game_id,
            seat_id=seat_id,
            player_name=player_name,
            client_tag=self.client_tag,
        )
        self._bindings[game_id] = binding
        self._save()
        return binding

    def resolve(self, game_id: str) -> Optional[SeatBinding]:
        """Get this client's binding for a game, if any."""
        return self._bindings.get(game_id)

    def seat_for(self, game_id: str) -> Optional[int]:
        binding = self.resolve(game_id)
        return binding.seat_id if binding else None

    def is_mine(self, game_id: str, seat_id: int) -> bool:
        """Check whether a seat belongs to this client."""
        return self.seat_for(game_id) == seat_id

    def forget(self, game_id: str) -> None:
        if self._bindings.pop(game_id, None) is not None:
            self._save()

    def clear(self) -> None:
        """Drop every binding (used on reset)."""
        self._bindings.clear()
        self._save()
