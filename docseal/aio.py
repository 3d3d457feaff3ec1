"""
Coroutine surface over TransformEngine for asyncio callers.

The work is CPU-bound and never suspends; coroutines run the synchronous
operation inline and errors propagate when awaited.
"""

from typing import Any, Dict

from .document import Document
from .engine import TransformEngine


class AsyncTransformEngine:
    def __init__(self, engine: TransformEngine):
        self._engine = engine

    @property
    def engine(self) -> TransformEngine:
        return self._engine

    async def encrypt(self, document: Document) -> Document:
        return self._engine.encrypt(document)

    async def decrypt(self, document: Document) -> Document:
        return self._engine.decrypt(document)

    async def sign(self, document: Document) -> Document:
        return self._engine.sign(document)

    async def authenticate(self, document: Document) -> bool:
        return self._engine.authenticate(document)

    async def save_transform(self, document: Document) -> Dict[str, Any]:
        return self._engine.save_transform(document)

    async def load_transform(self, document: Document) -> Document:
        return self._engine.load_transform(document)
