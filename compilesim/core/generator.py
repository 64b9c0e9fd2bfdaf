import random
import uuid
from typing import Optional

from .config import WorkParameters
from .models import CompileRequest, Compiler

FILLER = b"x"


def new_compile_id() -> str:
    return uuid.uuid4().hex[:8]


class WorkloadGenerator:
    """Synthesizes compile requests of random size."""

    def __init__(self, params: WorkParameters, rng: Optional[random.Random] = None):
        self.params = params
        self.rng = rng or random.Random()

    def draw_size(self, max_document_size: int) -> int:
        if max_document_size < 1:
            raise ValueError("max_document_size must be >= 1")
        size = 1 + int(max_document_size * self.rng.random())
        return min(size, max_document_size)

    def build(self, size: int) -> CompileRequest:
        """Build a request whose document is exactly `size` bytes.

        The document starts with the compile id and is padded with filler;
        documents shorter than the id carry only its first `size` characters.
        """
        if size < 1:
            raise ValueError("size must be >= 1")
        compile_id = new_compile_id()
        prefix = compile_id.encode("ascii")
        document = (prefix + FILLER * max(0, size - len(prefix)))[:size]
        return CompileRequest(id=compile_id, document=document, compiler=Compiler.PDFTEX)

    def generate(self, max_document_size: Optional[int] = None) -> CompileRequest:
        bound = self.params.doc_length if max_document_size is None else max_document_size
        return self.build(self.draw_size(bound))
