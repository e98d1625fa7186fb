"""Expression and statement trees that emit three-address code."""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod
from typing import ClassVar, Optional, Sequence

from microtiny.symbols import Entry
from microtiny.threeac import CodeObject

_INT_OPS = {"+": "ADDI", "-": "SUBI", "*": "MULTI", "/": "DIVI"}
_FLOAT_OPS = {"+": "ADDF", "-": "SUBF", "*": "MULTF", "/": "DIVF"}
_STORE = {"INT": "STOREI", "FLOAT": "STOREF"}


class Node(ABC):
    """A tree node; ``generate`` emits code and returns the result's name."""

    # Type of the variable in the most recently built assignment; it selects
    # integer or float arithmetic for the expressions that follow.
    id_type: ClassVar[str] = ""
    type: ClassVar[str] = ""

    def __init__(self, left: Optional[Node] = None, right: Optional[Node] = None) -> None:
        self.left = left
        self.right = right

    @abstractmethod
    def generate(self, code: CodeObject) -> str:
        """Emit this node's code into ``code`` and return where the value is."""


class ExprNode(Node):
    """A binary arithmetic expression."""

    type = "EXPR"

    def __init__(self, optype: str, left: Optional[Node] = None, right: Optional[Node] = None) -> None:
        super().__init__(left, right)
        self.optype = optype

    def generate(self, code: CodeObject) -> str:
        left = self.left.generate(code)
        right = self.right.generate(code)
        temp = code.new_temp()
        if Node.id_type == "INT":
            command = _INT_OPS.get(self.optype, "")
        elif Node.id_type == "FLOAT":
            command = _FLOAT_OPS.get(self.optype, "")
        else:
            command = ""
        code.emit(command, left, right, temp)
        return temp


class IntNode(Node):
    """An integer literal."""

    type = "INT"

    def __init__(self, value: int) -> None:
        super().__init__()
        self.value = value

    def generate(self, code: CodeObject) -> str:
        temp = code.new_temp()
        code.emit("STOREI", str(self.value), temp)
        return temp


class FloatNode(Node):
    """A single-precision float literal."""

    type = "FLOAT"

    def __init__(self, value: float) -> None:
        super().__init__()
        self.value = struct.unpack("f", struct.pack("f", value))[0]

    def generate(self, code: CodeObject) -> str:
        temp = code.new_temp()
        code.emit("STOREF", f"{self.value:f}", temp)
        return temp


class IdNode(Node):
    """A reference to a declared variable."""

    type = "ID"

    def __init__(self, variable: Entry) -> None:
        super().__init__()
        self.variable = variable

    def generate(self, code: CodeObject) -> str:
        return self.variable.name


class AssignNode(Node):
    """Assignment of ``right`` to a variable; building one sets ``Node.id_type``."""

    type = "ASSIGN"

    def __init__(self, var: Entry, right: Optional[Node] = None) -> None:
        super().__init__(IdNode(var), right)
        Node.id_type = var.type

    def generate(self, code: CodeObject) -> str:
        command = _STORE.get(Node.id_type, "")
        value = self.right.generate(code)
        target = self.left.generate(code)
        code.emit(command, value, target)
        return ""


class ReturnNode(Node):
    """A return statement carrying the value in ``right``."""

    type = "RETURN"

    def __init__(self, right: Optional[Node] = None) -> None:
        super().__init__(None, right)

    def generate(self, code: CodeObject) -> str:
        code.emit("RET", self.right.generate(code))
        return ""


class CallNode(Node):
    """A function call; the result is popped into a fresh temporary."""

    type = "CALL"

    def __init__(self, func_name: str, exprlist: Sequence[Node]) -> None:
        super().__init__()
        self.func_name = func_name
        self.exprlist = list(exprlist)

    def generate(self, code: CodeObject) -> str:
        code.emit("PUSH", "")  # slot for the return value
        for expr in self.exprlist:
            code.emit("PUSH", expr.generate(code))
        code.emit("JSR", self.func_name)
        for _ in self.exprlist:
            code.emit("POP", "")
        temp = code.new_temp()
        code.emit("POP", temp)
        return temp