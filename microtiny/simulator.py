"""Execution of assembled Tiny programs and the command-line entry point."""

from __future__ import annotations

import re
import sys
from collections import deque
from typing import Optional, Sequence, TextIO

from microtiny.tiny_model import (
    Instruction,
    OpCode,
    OperandType,
    StackElement,
    SysCall,
    TinyError,
    VMState,
    format_real,
)
from microtiny.tiny_parser import AssemblyError, Program, parse_program
from microtiny.tiny_stats import Statistics

_INT_PREFIX = re.compile(r"[+-]?\d+")
_REAL_PREFIX = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_USAGE = "usage: tiny srcfile [stats|nostats|d1|d2|d3 [mix]]"
_DEBUG_OPTIONS = {"d1": 1, "d2": 2, "d3": 3, "d4": 4}


class _TokenReader:
    """Reads whitespace-separated numbers from a text stream, like a formatted input stream."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._tokens: deque[str] = deque()
        self._failed = False

    def _next(self) -> Optional[str]:
        while not self._tokens:
            line = self._stream.readline()
            if not line:
                return None
            self._tokens.extend(line.split())
        return self._tokens.popleft()

    def _read(self, pattern: re.Pattern[str]) -> Optional[str]:
        if self._failed:
            return None
        token = self._next()
        if token is None:
            self._failed = True
            return None
        match = pattern.match(token)
        if not match:
            self._tokens.appendleft(token)
            self._failed = True
            return None
        rest = token[match.end():]
        if rest:
            self._tokens.appendleft(rest)
        return match.group()

    def read_int(self) -> int:
        text = self._read(_INT_PREFIX)
        return int(text) if text is not None else 0

    def read_real(self) -> float:
        text = self._read(_REAL_PREFIX)
        return float(text) if text is not None else 0.0


class Simulator:
    """Runs a linked program one instruction at a time."""

    def __init__(
        self,
        program: Program,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        stats: bool = True,
        debug: int = 0,
    ) -> None:
        self.program = program
        self.out = stdout if stdout is not None else sys.stdout
        self._reader = _TokenReader(stdin if stdin is not None else sys.stdin)
        self.debug = debug
        self.state = VMState()
        self.statistics: Optional[Statistics] = Statistics() if stats else None
        self.pc = 0
        self.halted = False

    @property
    def running(self) -> bool:
        return not self.halted and self.pc < len(self.program.instructions)

    def _trace(self, instruction: Instruction) -> None:
        if self.debug >= 3:
            self.out.write(self.state.machine.describe())
            self.out.write("".join(s.describe() + "  " for s in self.program.symbols))
            self.out.write("\n")
        if self.debug >= 2:
            time = self.statistics.cycles if self.statistics is not None else None
            self.out.write(instruction.describe(self.debug, time) + "\n")

    def step(self) -> bool:
        """Execute the next instruction; return whether the program is still running."""
        if not self.running:
            return False
        instruction = self.program.instructions[self.pc]
        self._trace(instruction)
        try:
            if self.statistics is not None:
                self.statistics.account(instruction, self.state, self.out, self.debug)
            self._execute(instruction)
        except TinyError as exc:
            if exc.line is None:
                raise TinyError(exc.message, instruction.line) from exc
            raise
        return self.running

    def run(self) -> Optional[Statistics]:
        """Run to halt or the end of the program; print and return the statistics."""
        while self.step():
            pass
        if self.statistics is not None:
            self.out.write(self.statistics.report())
        return self.statistics

    def _pop(self) -> StackElement:
        if not self.state.stack:
            raise TinyError("stack underflow")
        return self.state.stack.pop()

    def _top(self) -> StackElement:
        if not self.state.stack:
            raise TinyError("stack underflow")
        return self.state.stack[-1]

    def _jump_if(self, condition: bool, instruction: Instruction) -> None:
        self.pc = instruction.target if condition else self.pc + 1

    def _execute(self, ins: Instruction) -> None:
        state = self.state
        machine = state.machine
        code, op1, op2 = ins.code, ins.op1, ins.op2

        if code is OpCode.MOVE:
            op2.copy_from(state, op1)
        elif code in (OpCode.ADDI, OpCode.ADDR):
            op2.add(state, op1)
        elif code in (OpCode.SUBI, OpCode.SUBR):
            op2.sub(state, op1)
        elif code in (OpCode.MULI, OpCode.MULR):
            op2.mul(state, op1)
        elif code is OpCode.DIVI:
            op2.div_int(state, op1)
        elif code is OpCode.DIVR:
            op2.div_real(state, op1)
        elif code is OpCode.INCI:
            op1.increment(state)
        elif code is OpCode.DECI:
            op1.decrement(state)
        elif code is OpCode.CMPI:
            machine.set_status_int(op1.int_value(state), op2.int_value(state))
        elif code is OpCode.CMPR:
            machine.set_status_real(op1.real_value(state), op2.real_value(state))
        elif code is OpCode.PUSH:
            if op1.kind is not OperandType.EMPTY:
                element = StackElement.for_data(op1.int_value(state), op1.real_value(state))
            else:
                element = StackElement.for_data(0, 0.0)
            state.stack.append(element)
        elif code is OpCode.POP:
            if op1.kind is not OperandType.EMPTY:
                top = self._top()
                op1.set_int(state, top.int_value())
                op1.set_real(state, top.real_value())
            self._pop()
        elif code is OpCode.JSR:
            state.stack.append(StackElement.for_return(self.pc + 1))
            self.pc = ins.target
            return
        elif code is OpCode.RET:
            self.pc = self._top().address_value()
            self._pop()
            return
        elif code is OpCode.LINK:
            state.stack.append(StackElement.for_frame(state.fp))
            state.fp = len(state.stack) - 1
            state.stack.extend(StackElement.for_data() for _ in range(op1.int_value(state)))
        elif code is OpCode.UNLNK:
            del state.stack[state.fp + 1:]
            state.fp = self._top().frame_value()
            self._pop()
        elif code is OpCode.JMP:
            self.pc = ins.target
            return
        elif code is OpCode.JGT:
            return self._jump_if(machine.gt(), ins)
        elif code is OpCode.JLT:
            return self._jump_if(machine.lt(), ins)
        elif code is OpCode.JGE:
            return self._jump_if(machine.ge(), ins)
        elif code is OpCode.JLE:
            return self._jump_if(machine.le(), ins)
        elif code is OpCode.JEQ:
            return self._jump_if(machine.eq(), ins)
        elif code is OpCode.JNE:
            return self._jump_if(machine.ne(), ins)
        elif code is OpCode.SYS:
            call = SysCall.lookup(op1.name)
            if call is SysCall.HALT:
                self.halted = True
                return
            if call is SysCall.READI:
                op2.set_int(state, self._reader.read_int())
            elif call is SysCall.READR:
                op2.set_real(state, self._reader.read_real())
            elif call is SysCall.WRITER:
                self.out.write(format_real(op2.real_value(state)))
            elif call is SysCall.WRITEI:
                self.out.write(str(op2.int_value(state)))
            elif call is SysCall.WRITES:
                self.out.write(op2.string_value())
        self.pc += 1


def run_source(
    text: str,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    stats: bool = True,
    debug: int = 0,
    mix: bool = False,
) -> int:
    """Assemble and run a program; return the process exit status."""
    out = stdout if stdout is not None else sys.stdout
    try:
        program = parse_program(text, mix)
    except AssemblyError as exc:
        out.write("".join(w + "\n" for w in exc.warnings))
        out.write("".join(m + "\n" for m in exc.messages))
        return 1
    out.write("".join(w + "\n" for w in program.warnings))
    if debug >= 1:
        out.write("".join(f"id {s.describe()}\n" for s in program.symbols))
        out.write("".join(i.describe(debug) + "\n" for i in program.instructions))
    simulator = Simulator(program, stdin, out, stats, debug)
    try:
        simulator.run()
    except TinyError as exc:
        out.write(f"{exc}\n")
        return 1
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command line: ``tiny srcfile [stats|nostats|d1|d2|d3|d4 [mix]]``."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print(_USAGE, file=sys.stderr)
        return 1
    debug = 0
    stats = True
    mix = False
    if len(args) >= 2:
        option = args[1]
        if option in _DEBUG_OPTIONS:
            debug = _DEBUG_OPTIONS[option]
        elif option == "stats":
            stats = True
        elif option == "nostats":
            stats = False
    if len(args) >= 3 and args[2] == "mix":
        mix = True
    try:
        with open(args[0], encoding="utf-8") as handle:
            text = handle.read()
    except OSError:
        print(f"{args[0]} not found", file=sys.stderr)
        return 1
    return run_source(text, sys.stdin, sys.stdout, stats, debug, mix)


if __name__ == "__main__":
    raise SystemExit(main())