from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, StrictStr


class Compiler(str, Enum):
    PDFTEX = "pdftex"
    LATEX = "latex"
    XELATEX = "xelatex"
    LUALATEX = "lualatex"


class HealthState(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNREACHABLE = "unreachable"


# Wire models
class CompileBody(BaseModel):
    doc: StrictStr
    compiler: Optional[Compiler] = None


class CompileResponse(BaseModel):
    output: str


# Request-scoped models
@dataclass(frozen=True)
class CompileRequest:
    id: str
    document: bytes
    compiler: Compiler = Compiler.PDFTEX

    @property
    def size(self) -> int:
        return len(self.document)

    def to_body(self) -> dict:
        return {"doc": self.document.decode("utf-8", errors="replace"), "compiler": self.compiler.value}


@dataclass(frozen=True)
class CompileResult:
    digest: str
    target_ms: int = 0
    rounds: int = 0
    elapsed_ms: float = 0.0
