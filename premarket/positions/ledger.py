from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Dict, List

log = logging.getLogger("position_ledger")


class PositionLedger:
    """
    Append-only ledger of user-entered lots, persisted as JSON:

      {"NVDA": [{"qty": 10, "price": 120.5}, ...], ...}

    A missing or unreadable file loads as an empty ledger.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._positions: Dict[str, List[dict]] = self._load()

    def _load(self) -> Dict[str, List[dict]]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            log.warning("Ignoring unreadable positions file path=%s error=%r", self.path, e)
            return {}

        if not isinstance(raw, dict):
            log.warning("Ignoring positions file with unexpected shape path=%s", self.path)
            return {}
        return {str(k): list(v) for k, v in raw.items() if isinstance(v, list)}

    def add_lot(self, symbol: str, qty: float, price: float) -> Dict[str, List[dict]]:
        symbol = symbol.strip().upper()
        if not symbol:
            raise ValueError("symbol must not be empty")

        with self._lock:
            self._positions.setdefault(symbol, []).append({"qty": qty, "price": price})
            self._save()
            return self.positions()

    def positions(self) -> Dict[str, List[dict]]:
        return {k: [dict(lot) for lot in v] for k, v in self._positions.items()}

    def symbols(self) -> List[str]:
        return list(self._positions)

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._positions, indent=2), encoding="utf-8")
        tmp.replace(self.path)
