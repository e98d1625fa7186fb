"""Machine model for the Tiny simulator: opcodes, operands, registers and stack."""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional

NUM_REGISTERS = 200

LAT_MOV_RL = 1
LAT_MOV_M = 5
LAT_INT_RL = 1
LAT_INT_M = 6
LAT_FP_RL = 3
LAT_FP_M = 8


class TinyError(Exception):
    """An error reported by the assembler or simulator, optionally tied to a line."""

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"error on line {self.line} : {self.message}"


def to_i32(value: int) -> int:
    """Wrap an integer to a signed 32-bit value."""
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def to_f32(value: float) -> float:
    """Round a number to single precision."""
    try:
        return struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def format_real(value: float) -> str:
    """Format a real the way a default output stream does (six significant digits)."""
    return f"{value:g}"


def _truncate(value: float) -> int:
    if not math.isfinite(value):
        raise TinyError("cannot convert real value to int")
    return to_i32(int(value))


class OpCode(Enum):
    VAR = "var"
    STR = "str"
    LABEL = "label"
    MOVE = "move"
    ADDI = "addi"
    ADDR = "addr"
    SUBI = "subi"
    SUBR = "subr"
    MULI = "muli"
    MULR = "mulr"
    DIVI = "divi"
    DIVR = "divr"
    INCI = "inci"
    DECI = "deci"
    CMPI = "cmpi"
    PUSH = "push"
    POP = "pop"
    RET = "ret"
    LINK = "link"
    UNLNK = "unlnk"
    CMPR = "cmpr"
    JSR = "jsr"
    JMP = "jmp"
    JGT = "jgt"
    JLT = "jlt"
    JGE = "jge"
    JLE = "jle"
    JEQ = "jeq"
    JNE = "jne"
    SYS = "sys"
    END = "end"
    EMPTY = ""
    UNKNOWN = "unknown"

    @property
    def mnemonic(self) -> str:
        """The name shown in listings; markers without an instruction show as unknown."""
        if self in (OpCode.END, OpCode.EMPTY, OpCode.UNKNOWN):
            return "unknown"
        return self.value

    @property
    def is_jump(self) -> bool:
        return self in _JUMPS


_JUMPS = frozenset(
    {OpCode.JSR, OpCode.JMP, OpCode.JGT, OpCode.JLT, OpCode.JGE, OpCode.JLE, OpCode.JEQ, OpCode.JNE}
)


class OperandType(Enum):
    ID = auto()
    STACKREF = auto()
    REG = auto()
    NUM = auto()
    STRVAL = auto()
    EMPTY = auto()
    UNKNOWN = auto()


class SysCall(Enum):
    READI = "readi"
    READR = "readr"
    WRITEI = "writei"
    WRITER = "writer"
    WRITES = "writes"
    HALT = "halt"
    UNKNOWN = "unknown"

    @classmethod
    def lookup(cls, name: str) -> SysCall:
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class Machine:
    """Register file and the status left by the last compare."""

    ival1: int = 0
    ival2: int = 0
    rval1: float = 0.0
    rval2: float = 0.0
    comparing_int: bool = False
    int_registers: list[int] = field(default_factory=lambda: [0] * NUM_REGISTERS)
    real_registers: list[float] = field(default_factory=lambda: [0.0] * NUM_REGISTERS)
    free_times: list[int] = field(default_factory=lambda: [0] * NUM_REGISTERS)

    def set_status_int(self, a: int, b: int) -> None:
        self.ival1, self.ival2, self.comparing_int = a, b, True

    def set_status_real(self, a: float, b: float) -> None:
        self.rval1, self.rval2, self.comparing_int = a, b, False

    def _pair(self) -> tuple[float, float]:
        if self.comparing_int:
            return self.ival1, self.ival2
        return self.rval1, self.rval2

    def gt(self) -> bool:
        a, b = self._pair()
        return a > b

    def ge(self) -> bool:
        a, b = self._pair()
        return a >= b

    def lt(self) -> bool:
        a, b = self._pair()
        return a < b

    def le(self) -> bool:
        a, b = self._pair()
        return a <= b

    def eq(self) -> bool:
        a, b = self._pair()
        return a == b

    def ne(self) -> bool:
        a, b = self._pair()
        return a != b

    def describe(self) -> str:
        """Status and the first four registers of each kind."""
        kind = "int" if self.comparing_int else "float"
        ints = " ".join(str(v) for v in self.int_registers[:4])
        reals = " ".join(format_real(v) for v in self.real_registers[:4])
        return (
            f"status:{self.ival1},{self.ival2}  {format_real(self.rval1)},"
            f"{format_real(self.rval2)} {kind}\nregs {ints}   {reals}\n"
        )


class StackKind(Enum):
    DATA = auto()
    ADDRESS = auto()
    FRAME = auto()


@dataclass
class StackElement:
    """One stack slot: data, a return address or a saved frame pointer."""

    kind: StackKind = StackKind.DATA
    ivalue: int = 0
    rvalue: float = 0.0
    address: Optional[int] = None
    free_time: int = 0

    @classmethod
    def for_data(cls, ivalue: int = 0, rvalue: float = 0.0) -> StackElement:
        return cls(StackKind.DATA, ivalue, to_f32(rvalue))

    @classmethod
    def for_frame(cls, fp: int) -> StackElement:
        return cls(StackKind.FRAME, ivalue=fp)

    @classmethod
    def for_return(cls, address: int) -> StackElement:
        return cls(StackKind.ADDRESS, address=address)

    def _require(self, kind: StackKind, message: str) -> None:
        if self.kind is not kind:
            raise TinyError(message)

    def int_value(self) -> int:
        self._require(StackKind.DATA, "illegal int stack reference")
        return self.ivalue

    def real_value(self) -> float:
        self._require(StackKind.DATA, "illegal float stack reference")
        return self.rvalue

    def frame_value(self) -> int:
        self._require(StackKind.FRAME, "illegal fp stack reference")
        return self.ivalue

    def address_value(self) -> int:
        self._require(StackKind.ADDRESS, "illegal pc stack reference")
        return self.address

    def set_int(self, value: int) -> None:
        self._require(StackKind.DATA, "illegal data stack reference")
        self.ivalue = value

    def set_real(self, value: float) -> None:
        self._require(StackKind.DATA, "illegal data stack reference")
        self.rvalue = value


@dataclass
class DataSymbol:
    """A variable or string constant declared in a Tiny program."""

    name: str
    svalue: str = ""
    is_string: bool = False
    ivalue: int = 0
    rvalue: float = 0.0
    free_time: int = 0

    def describe(self) -> str:
        if self.is_string:
            return f"{self.name}:{self.svalue}"
        return f"{self.name}:{self.ivalue}/{format_real(self.rvalue)}"


@dataclass
class VMState:
    """Everything an operand reads or writes while the program runs."""

    machine: Machine = field(default_factory=Machine)
    stack: list[StackElement] = field(default_factory=list)
    fp: int = 0
    latest_time: int = 0

    def note_time(self, time: int) -> None:
        self.latest_time = max(self.latest_time, time)

    def stack_slot(self, offset: int) -> StackElement:
        """The slot addressed by ``$offset`` relative to the frame pointer."""
        index = self.fp - offset
        if not 0 <= index < len(self.stack):
            raise TinyError("stack reference out of range")
        return self.stack[index]


@dataclass
class Operand:
    """An instruction operand; every location holds an int and a real field."""

    kind: OperandType = OperandType.EMPTY
    name: str = ""
    register: int = 0
    offset: int = 0
    literal: float = 0.0
    symbol: Optional[DataSymbol] = None

    def __post_init__(self) -> None:
        self.literal = to_f32(self.literal)

    def _symbol(self) -> DataSymbol:
        if self.symbol is None:
            raise TinyError(f"identifier {self.name} not defined")
        return self.symbol

    def int_value(self, state: VMState) -> int:
        if self.kind is OperandType.ID:
            return self._symbol().ivalue
        if self.kind is OperandType.STACKREF:
            return state.stack_slot(self.offset).int_value()
        if self.kind is OperandType.REG:
            return state.machine.int_registers[self.register]
        if self.kind is OperandType.NUM:
            return _truncate(self.literal)
        raise TinyError("operand::ival: illegal operand type")

    def real_value(self, state: VMState) -> float:
        if self.kind is OperandType.ID:
            return self._symbol().rvalue
        if self.kind is OperandType.STACKREF:
            return state.stack_slot(self.offset).real_value()
        if self.kind is OperandType.REG:
            return state.machine.real_registers[self.register]
        if self.kind is OperandType.NUM:
            return self.literal
        raise TinyError("operand::rval: illegal operand type")

    def string_value(self) -> str:
        if self.kind is OperandType.ID:
            return self._symbol().svalue
        raise TinyError("operand::sval: illegal operand type")

    def set_int(self, state: VMState, value: int) -> None:
        value = to_i32(value)
        if self.kind is OperandType.ID:
            self._symbol().ivalue = value
        elif self.kind is OperandType.REG:
            state.machine.int_registers[self.register] = value
        elif self.kind is OperandType.STACKREF:
            state.stack_slot(self.offset).set_int(value)
        else:
            raise TinyError("setival: illegal operand type")

    def set_real(self, state: VMState, value: float) -> None:
        value = to_f32(value)
        if self.kind is OperandType.ID:
            self._symbol().rvalue = value
        elif self.kind is OperandType.STACKREF:
            state.stack_slot(self.offset).set_real(value)
        elif self.kind is OperandType.REG:
            state.machine.real_registers[self.register] = value
        else:
            raise TinyError("setrval: illegal operand type")

    def copy_from(self, state: VMState, other: Operand) -> None:
        self.set_int(state, other.int_value(state))
        self.set_real(state, other.real_value(state))

    def add(self, state: VMState, other: Operand) -> None:
        self.set_int(state, self.int_value(state) + other.int_value(state))
        self.set_real(state, self.real_value(state) + other.real_value(state))

    def sub(self, state: VMState, other: Operand) -> None:
        self.set_int(state, self.int_value(state) - other.int_value(state))
        self.set_real(state, self.real_value(state) - other.real_value(state))

    def mul(self, state: VMState, other: Operand) -> None:
        self.set_int(state, self.int_value(state) * other.int_value(state))
        self.set_real(state, self.real_value(state) * other.real_value(state))

    def div_int(self, state: VMState, other: Operand) -> None:
        """Integer division truncating toward zero."""
        divisor = other.int_value(state)
        if divisor == 0:
            raise TinyError("integer division by zero")
        dividend = self.int_value(state)
        quotient = abs(dividend) // abs(divisor)
        if (dividend < 0) != (divisor < 0):
            quotient = -quotient
        self.set_int(state, quotient)

    def div_real(self, state: VMState, other: Operand) -> None:
        """Real division; dividing by zero gives an infinity or NaN."""
        divisor = other.real_value(state)
        dividend = self.real_value(state)
        if divisor == 0:
            if dividend == 0 or math.isnan(dividend):
                result = math.nan
            else:
                result = math.copysign(math.inf, dividend) * math.copysign(1.0, divisor)
        else:
            result = dividend / divisor
        self.set_real(state, result)

    def increment(self, state: VMState) -> None:
        self.set_int(state, self.int_value(state) + 1)

    def decrement(self, state: VMState) -> None:
        self.set_int(state, self.int_value(state) - 1)

    def free_time(self, state: VMState) -> int:
        """Cycle at which the location this operand names becomes free."""
        if self.kind is OperandType.ID:
            return self._symbol().free_time
        if self.kind is OperandType.REG:
            return state.machine.free_times[self.register]
        if self.kind is OperandType.STACKREF:
            return state.stack_slot(self.offset).free_time
        return 0

    def set_free_time(self, state: VMState, time: int) -> None:
        if self.kind is OperandType.ID:
            self._symbol().free_time = time
            state.note_time(time)
        elif self.kind is OperandType.REG:
            state.machine.free_times[self.register] = time
            state.note_time(time)
        elif self.kind is OperandType.STACKREF:
            state.stack_slot(self.offset).free_time = time

    def describe(self, debug: int = 0) -> str:
        if self.kind is OperandType.ID:
            return f"id:{self.name}"
        if self.kind is OperandType.STACKREF:
            return f"stackref:{self.name}"
        if self.kind is OperandType.REG:
            return f"reg{self.register}"
        if self.kind is OperandType.NUM:
            return f"num:{format_real(self.literal)}"
        if self.kind is OperandType.STRVAL:
            return f"str:{self.name}"
        if self.kind is OperandType.EMPTY:
            return "emptyop" if debug >= 4 else ""
        return "unknownop"


@dataclass
class Instruction:
    """One parsed instruction with its source line and resolved jump target."""

    code: OpCode
    op1: Operand = field(default_factory=Operand)
    op2: Operand = field(default_factory=Operand)
    line: int = 0
    target: Optional[int] = None

    def describe(self, debug: int = 0, time: Optional[int] = None) -> str:
        prefix = f"line:{self.line}" if time is None else f"time:{time} line:{self.line}"
        return (
            f"{prefix}  {self.code.mnemonic}  "
            f"{self.op1.describe(debug)}  {self.op2.describe(debug)}"
        )