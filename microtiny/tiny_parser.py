"""Parsing and linking of Tiny assembly source into an executable program."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from microtiny.tiny_model import (
    NUM_REGISTERS,
    DataSymbol,
    Instruction,
    OpCode,
    Operand,
    OperandType,
    SysCall,
    TinyError,
)

_SPACES = re.compile(r" *")
_WHITESPACE = re.compile(r"[ \t\n\v\f\r]*")
_ALPHA_RUN = re.compile(r"[A-Za-z]*")
_GRAPH_RUN = re.compile(r"[!-~]*")
_ATOI = re.compile(r"[ \t\n\v\f\r]*([+-]?\d+)")
_STRTOD = re.compile(
    r"[ \t\n\v\f\r]*([+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan))",
    re.IGNORECASE,
)

_VALUE_SOURCES = frozenset(
    {OperandType.NUM, OperandType.REG, OperandType.ID, OperandType.STACKREF}
)
_LOCATIONS = frozenset({OperandType.REG, OperandType.ID, OperandType.STACKREF})
_MEMORY = frozenset({OperandType.ID, OperandType.STACKREF})
_ARITHMETIC = frozenset(
    {
        OpCode.ADDI, OpCode.ADDR, OpCode.SUBI, OpCode.SUBR, OpCode.MULI,
        OpCode.MULR, OpCode.DIVI, OpCode.DIVR, OpCode.CMPI, OpCode.CMPR,
    }
)
_BRANCHES = frozenset(
    {OpCode.JMP, OpCode.JGT, OpCode.JLT, OpCode.JGE, OpCode.JLE, OpCode.JNE, OpCode.JEQ}
)


class AssemblyError(TinyError):
    """The source could not be assembled; ``messages`` lists every error found."""

    def __init__(self, messages: Iterable[str], warnings: Iterable[str] = ()) -> None:
        self.messages = list(messages)
        self.warnings = list(warnings)
        super().__init__("\n".join(self.messages))

    def __str__(self) -> str:
        return "\n".join(self.messages)


@dataclass
class ParsedLine:
    """The opcode and operands read from one source line."""

    code: OpCode
    op1: Operand = field(default_factory=Operand)
    op2: Operand = field(default_factory=Operand)
    warning: Optional[str] = None


@dataclass
class Program:
    """Linked instructions, declared symbols and any warnings from parsing."""

    instructions: list[Instruction] = field(default_factory=list)
    symbols: list[DataSymbol] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _is_alpha(ch: str) -> bool:
    return ch.isascii() and ch.isalpha()


def _is_digit(ch: str) -> bool:
    return ch in "0123456789" and ch != ""


def _atoi(text: str) -> int:
    match = _ATOI.match(text)
    return int(match.group(1)) if match else 0


def _strtod(text: str) -> float:
    match = _STRTOD.match(text)
    return float(match.group(1)) if match else 0.0


def is_register(text: str) -> Optional[int]:
    """Return the register number for ``r<n>``/``R<n>`` with n in range, else None."""
    if not text or text[0].lower() != "r":
        return None
    digits = text[1:]
    if not all(_is_digit(ch) for ch in digits):
        return None
    number = _atoi(digits)
    return number if 0 <= number < NUM_REGISTERS else None


def check_syscall(operand: Operand) -> SysCall:
    """Identify the system call an operand names."""
    return SysCall.lookup(operand.name)


def _opcode_for(mnemonic: str) -> OpCode:
    if mnemonic == "end":
        return OpCode.END
    if mnemonic == "":
        return OpCode.EMPTY
    try:
        return OpCode(mnemonic)
    except ValueError:
        return OpCode.UNKNOWN


def _first_operand(word: str) -> Operand:
    register = is_register(word)
    if register is not None:
        return Operand(OperandType.REG, word, register=register)
    if word and _is_alpha(word[0]):
        return Operand(OperandType.ID, word)
    if word.startswith("$"):
        return Operand(OperandType.STACKREF, word, offset=_atoi(word[1:]))
    if word and (word[0] in "+-" or _is_digit(word[0])):
        return Operand(OperandType.NUM, word, literal=_strtod(word))
    if word:
        return Operand(OperandType.UNKNOWN, word)
    return Operand(OperandType.EMPTY, word)


def _second_operand(word: str) -> Operand:
    register = is_register(word)
    if register is not None:
        return Operand(OperandType.REG, word, register=register)
    if word.startswith("$"):
        return Operand(OperandType.STACKREF, word, offset=_atoi(word[1:]))
    return Operand(OperandType.ID, word)


def _read_string(text: str, pos: int) -> tuple[str, int]:
    """Read a double-quoted string starting at the opening quote; ``\\n`` is a newline."""
    pos += 1
    chars: list[str] = []
    previous = '"'
    while pos < len(text) and text[pos] != '"':
        ch = text[pos]
        if previous == "\\" and ch == "n":
            chars[-1] = "\n"
        else:
            chars.append(ch)
        previous = ch
        pos += 1
    return "".join(chars), pos + 1


def parse_line(text: str, line_no: int) -> ParsedLine:
    """Split one source line into opcode and operands."""
    pos = _SPACES.match(text).end()
    match = _ALPHA_RUN.match(text, pos)
    code = _opcode_for(match.group().lower())
    pos = _SPACES.match(text, match.end()).end()

    word = ""
    if text[pos:pos + 1] != ";":
        match = _GRAPH_RUN.match(text, pos)
        word = match.group()
        pos = match.end()
    op1 = _first_operand(word)

    pos = _SPACES.match(text, pos).end()
    op2 = Operand()
    ch = text[pos:pos + 1]
    if ch and (_is_alpha(ch) or ch == "$"):
        match = _GRAPH_RUN.match(text, pos)
        op2 = _second_operand(match.group())
        pos = match.end()
    elif ch == '"':
        value, pos = _read_string(text, pos)
        op2 = Operand(OperandType.STRVAL, value)

    pos = _WHITESPACE.match(text, min(pos, len(text))).end()
    warning = None
    if pos < len(text) and text[pos] != ";":
        warning = f"line {line_no} warning: non comment found at end of line"
    return ParsedLine(code, op1, op2, warning)


def link_variable(symbols: Iterable[DataSymbol], operand: Operand, line_no: int) -> None:
    """Bind an identifier operand to its declared symbol; other operands are left alone."""
    if operand.kind is not OperandType.ID:
        return
    for symbol in symbols:
        if symbol.name == operand.name:
            operand.symbol = symbol
            return
    raise AssemblyError([f"error on line {line_no} identifier {operand.name} not defined"])


def _source_lines(lines: Union[str, Iterable[str]]) -> Iterable[str]:
    if isinstance(lines, str):
        return lines.split("\n")
    return (line[:-1] if line.endswith("\n") else line for line in lines)


def parse_program(lines: Union[str, Iterable[str]], mix: bool = False) -> Program:
    """Parse and link a whole program; raise AssemblyError listing every error found.

    Declarations must precede code unless ``mix`` is set.
    """
    program = Program()
    errors: list[str] = []
    declarations = True

    for line_no, text in enumerate(_source_lines(lines), start=1):
        parsed = parse_line(text, line_no)
        if parsed.warning:
            program.warnings.append(parsed.warning)
        code, op1, op2 = parsed.code, parsed.op1, parsed.op2
        if code is OpCode.END:
            break
        if code is OpCode.EMPTY:
            continue

        def check(condition: bool, message: str) -> None:
            if not condition:
                errors.append(f"error on line {line_no} : {message}")

        t1, t2 = op1.kind, op2.kind
        empty = OperandType.EMPTY

        if code is OpCode.VAR:
            check(declarations or mix, "declarations must preceed all code")
            check(t1 is OperandType.ID, "identifier operand expected")
            check(t2 is empty, "only one operand expected")
            program.symbols.append(DataSymbol(op1.name))
            continue
        if code is OpCode.STR:
            check(declarations or mix, "declarations must preceed all code")
            check(t1 is OperandType.ID, "1st operand must be indentifier")
            check(t2 is OperandType.STRVAL, "2nd operand must be string")
            program.symbols.append(DataSymbol(op1.name, svalue=op2.name, is_string=True))
            continue
        if code is OpCode.UNKNOWN:
            check(False, "unknown opcode")
            continue

        if code is OpCode.LABEL:
            check(t1 is OperandType.ID, "1st operand must be indentifier")
            check(t2 is empty, "only one operand expected")
        elif code is OpCode.MOVE:
            check(t1 in _VALUE_SOURCES and t2 in _LOCATIONS, "illegal operand type")
            check(not (t1 in _MEMORY and t2 in _MEMORY), "both  operands are memory refs")
        elif code in (OpCode.INCI, OpCode.DECI):
            check(t1 is OperandType.REG, "operand must be a register")
            check(t2 is empty, "only one operand expected")
        elif code in _ARITHMETIC:
            check(t1 in _VALUE_SOURCES and t2 is OperandType.REG, "illegal operand type")
        elif code is OpCode.PUSH:
            check(t2 is empty, "zero or one operand expected")
            check(t1 in _VALUE_SOURCES or t1 is empty, "illegal operand type")
        elif code is OpCode.POP:
            check(t2 is empty, "zero or one operand expected")
            check(t1 in _LOCATIONS or t1 is empty, "illegal operand type")
        elif code is OpCode.JSR:
            check(t2 is empty, "only one operand expected")
            check(t1 is OperandType.ID, "operand must be an identifier")
        elif code in (OpCode.RET, OpCode.UNLNK):
            check(t1 is empty and t2 is empty, "no operand expected")
        elif code is OpCode.LINK:
            check(t1 is OperandType.NUM and t2 is empty, "illegal operand")
        elif code in _BRANCHES:
            check(t1 is OperandType.ID, "operand must be an identifier")
            check(t2 is empty, "only one operand expected")
        elif code is OpCode.SYS:
            call = check_syscall(op1)
            check(call is not SysCall.UNKNOWN, "unknown system call")
            if call is SysCall.HALT:
                check(t2 is empty, "only one operand expected")

        declarations = False
        program.instructions.append(Instruction(code, op1, op2, line=line_no))

    for instruction in program.instructions:
        if instruction.code.is_jump:
            instruction.target = next(
                (
                    index
                    for index, candidate in enumerate(program.instructions)
                    if candidate.code is OpCode.LABEL
                    and candidate.op1.name == instruction.op1.name
                ),
                None,
            )
            if instruction.target is None:
                errors.append(
                    f"error on line {instruction.line} jump target is not defined"
                )
            continue
        if instruction.code is OpCode.SYS:
            operands = (instruction.op2,)
        elif instruction.code is not OpCode.LABEL:
            operands = (instruction.op1, instruction.op2)
        else:
            operands = ()
        for operand in operands:
            try:
                link_variable(program.symbols, operand, instruction.line)
            except AssemblyError as exc:
                errors.extend(exc.messages)

    if errors:
        raise AssemblyError(errors, program.warnings)
    return program