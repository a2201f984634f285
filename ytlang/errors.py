from typing import Optional


class CompilerError(Exception):
    """Base class for every error raised or reported by the compiler passes.

    ``index`` is the 1-based character offset of the offending token when one is
    known; the driver uses it to point at the source line.
    """

    label = "error"

    def __init__(self, message: str, index: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.index = index

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class ParseError(CompilerError):
    label = "parse error"


class ScopeError(CompilerError):
    label = "scope error"


class TypeCheckError(CompilerError):
    label = "type error"


class UnresolvedTypeError(CompilerError):
    label = "unresolved type"


class ModuleResolutionError(CompilerError):
    label = "import error"


class CodegenError(CompilerError):
    label = "codegen error"
