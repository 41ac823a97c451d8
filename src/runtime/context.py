from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from models.config import Config


@dataclass
class RuntimeContext:
    """Holds runtime service references for one application run."""

    config: Config
    db: Any
    backend: Any
    engine: Any
    source: Any
    recognition_service: Optional[Any] = None
    web_state: Optional[Any] = None

    def close(self) -> None:
        """Stop the engine and release the source and database."""
        if self.engine is not None:
            self.engine.stop()
        if self.source is not None:
            self.source.close()
        if self.db is not None:
            self.db.close()
        if self.web_state is not None and hasattr(self.web_state, "reset"):
            self.web_state.reset()
