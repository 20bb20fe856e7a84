"""
Keystroke buffer for USB barcode scanners.

Scanners type the code quickly and finish with Enter. Keys more than
``gap_ms`` apart start a new scan, keys typed into form fields are ignored.

    IDLE --char--> ACCUMULATING --char (<= gap)--> ACCUMULATING
    ACCUMULATING --char (> gap)--> ACCUMULATING (buffer = char)
    ACCUMULATING --Enter--> IDLE, code dispatched
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

SCAN_GAP_MS = 100
ENTER = "Enter"


class ScanState(str, Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"


class BarcodeScanner:
    def __init__(self, gap_ms: int = SCAN_GAP_MS):
        self.gap_ms = gap_ms
        self.state = ScanState.IDLE
        self.buffer = ""
        self.last_key_ms: Optional[float] = None

    def reset(self) -> None:
        self.state = ScanState.IDLE
        self.buffer = ""

    def feed(self, key: str, at_ms: float, *, in_form_field: bool = False) -> Optional[str]:
        """Process one key press. Returns the scanned code when Enter completes one."""
        if in_form_field:
            return None

        if self.last_key_ms is not None and at_ms - self.last_key_ms > self.gap_ms:
            self.reset()
        self.last_key_ms = at_ms

        if key == ENTER:
            code = self.buffer
            self.reset()
            return code or None

        # named keys (Shift, Tab, ...) are not part of a code
        if len(key) == 1:
            self.buffer += key
            self.state = ScanState.ACCUMULATING
        return None

    def feed_text(self, text: str, start_ms: float = 0, step_ms: float = 10) -> Optional[str]:
        """Replay ``text`` followed by Enter at scanner speed."""
        at = start_ms
        for ch in text:
            self.feed(ch, at)
            at += step_ms
        return self.feed(ENTER, at)
