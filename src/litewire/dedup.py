"""Guards against emitting the same tool call twice in one stream."""

from __future__ import annotations

from pydantic import BaseModel, Field

from litewire.jsonparse import canonical_json


class DedupLedger(BaseModel):
    """Records which tool calls have already been emitted.

    Two independent keys are tracked:

    * identity ``name:index``, for calls that carry a positional index. The
      first valid parse for a slot wins; later attempts for the same slot are
      suppressed even when their arguments differ.
    * content ``name:canonicalJSON``, for calls without an index. Only exact
      duplicates are suppressed.
    """

    emitted_call_keys: set[str] = Field(default_factory=set)
    emitted_call_ids: set[str] = Field(default_factory=set)

    @staticmethod
    def content_key(name: str, arguments: dict) -> str:
        return f"{name}:{canonical_json(arguments)}"

    @staticmethod
    def identity_key(name: str, index: int) -> str:
        return f"{name}:{index}"

    def claim(self, name: str, arguments: dict, index: int | None = None) -> bool:
        """Reserve the call for emission.

        Returns ``False`` when an equivalent call was already emitted.
        """
        key = self.content_key(name, arguments)
        if index is not None:
            id_key = self.identity_key(name, index)
            if id_key in self.emitted_call_ids:
                return False
            self.emitted_call_ids.add(id_key)
        elif key in self.emitted_call_keys:
            return False
        self.emitted_call_keys.add(key)
        return True

    def record(self, name: str, arguments: dict) -> None:
        """Note a call emitted through a path with its own dedup."""
        self.emitted_call_keys.add(self.content_key(name, arguments))

    def clear(self) -> None:
        self.emitted_call_keys.clear()
        self.emitted_call_ids.clear()
