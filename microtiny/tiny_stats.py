"""Cycle and instruction statistics gathered while a Tiny program runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, TextIO

from microtiny.tiny_model import (
    LAT_FP_M,
    LAT_FP_RL,
    LAT_INT_M,
    LAT_INT_RL,
    LAT_MOV_M,
    LAT_MOV_RL,
    NUM_REGISTERS,
    Instruction,
    OpCode,
    Operand,
    OperandType,
    SysCall,
    TinyError,
    VMState,
)

_MEMORY = frozenset({OperandType.ID, OperandType.STACKREF})
_TIMED = frozenset({OperandType.ID, OperandType.REG, OperandType.STACKREF})
_INT_ARITHMETIC = frozenset({OpCode.ADDI, OpCode.SUBI, OpCode.MULI, OpCode.DIVI})
_REAL_ARITHMETIC = frozenset({OpCode.ADDR, OpCode.SUBR, OpCode.MULR, OpCode.DIVR})
_CONDITIONAL = frozenset(
    {OpCode.JGT, OpCode.JLT, OpCode.JGE, OpCode.JLE, OpCode.JEQ, OpCode.JNE}
)


def _free_text(operand: Operand, state: VMState) -> str:
    return str(operand.free_time(state)) if operand.kind in _TIMED else ""


@dataclass
class Statistics:
    """Counters and the simulated clock for one program run."""

    registers: list[int] = field(default_factory=lambda: [0] * NUM_REGISTERS)
    memory: int = 0
    int_ops: int = 0
    real_ops: int = 0
    peepholes: int = 0
    branches: int = 0
    instructions: int = 0
    cycles: int = 0
    compare_ready: int = 0
    move_reglit: int = 0
    move_mem: int = 0
    int_reglit: int = 0
    int_mem: int = 0
    fp_reglit: int = 0
    fp_mem: int = 0

    def _wait_for(self, state: VMState, *operands: Operand) -> None:
        for operand in operands:
            self.cycles = max(operand.free_time(state), self.cycles)

    def _trace(
        self, out: Optional[TextIO], debug: int, label: str, state: VMState, *operands: Operand
    ) -> None:
        if debug >= 2 and out is not None:
            times = ",".join(_free_text(op, state) for op in operands)
            out.write(f"FREETIME {self.cycles} {label} ({times})\n")

    def _move_latency(self, operand: Operand) -> int:
        if operand.kind is OperandType.ID:
            self.memory += 1
            return LAT_MOV_M
        if operand.kind is OperandType.REG:
            self.registers[operand.register] += 1
        return LAT_MOV_RL

    def _alu_latency(self, operand: Operand, fast: int, slow: int, which: str, line: int) -> int:
        if operand.kind is OperandType.REG:
            self.registers[operand.register] += 1
            return fast
        if operand.kind is OperandType.NUM:
            return fast
        if operand.kind in _MEMORY:
            self.memory += 1
            return slow
        raise TinyError(f"STATISTICS: unknown {which} used in an integer op", line)

    def _alu(self, ins: Instruction, fast: int, slow: int) -> int:
        latency = self._alu_latency(ins.op1, fast, slow, "op1", ins.line)
        return max(latency, self._alu_latency(ins.op2, fast, slow, "op2", ins.line))

    def _count_int(self, latency: int) -> None:
        if latency > LAT_INT_RL:
            self.int_mem += 1
        else:
            self.int_reglit += 1

    def _count_fp(self, latency: int) -> None:
        if latency > LAT_FP_RL:
            self.fp_mem += 1
        else:
            self.fp_reglit += 1

    def _count_move(self, latency: int) -> None:
        if latency > LAT_MOV_RL:
            self.move_mem += 1
        else:
            self.move_reglit += 1

    def account(
        self,
        instruction: Instruction,
        state: VMState,
        out: Optional[TextIO] = None,
        debug: int = 0,
    ) -> None:
        """Charge one instruction, before it executes, to the clock and counters."""
        ins = instruction
        code = ins.code
        op1, op2 = ins.op1, ins.op2
        latency = 0
        target: Optional[Operand] = None

        if code is OpCode.MOVE:
            self._wait_for(state, op1, op2)
            self._trace(out, debug, "move", state, op1, op2)
            self.instructions += 1
            latency = self._move_latency(op1)
            latency = max(self._move_latency(op2), latency)
            self._count_move(latency)
            target = op2
        elif code in (OpCode.INCI, OpCode.DECI):
            self._wait_for(state, op1)
            self._trace(out, debug, "inci/deci", state, op1)
            self.instructions += 1
            self.int_ops += 1
            self.peepholes += 1
            self.int_reglit += 1
            latency = LAT_INT_RL
            target = op1
        elif code is OpCode.CMPI or code in _INT_ARITHMETIC:
            self._wait_for(state, op1, op2)
            self._trace(out, debug, "intOp", state, op1, op2)
            self.instructions += 1
            self.int_ops += 1
            latency = self._alu(ins, LAT_INT_RL, LAT_INT_M)
            self._count_int(latency)
            if code is OpCode.CMPI:
                self.compare_ready = self.cycles + latency
            else:
                target = op2
        elif code is OpCode.CMPR or code in _REAL_ARITHMETIC:
            self._wait_for(state, op1, op2)
            self._trace(out, debug, "fpOp", state, op1, op2)
            self.instructions += 1
            self.real_ops += 1
            latency = self._alu(ins, LAT_FP_RL, LAT_FP_M)
            self._count_fp(latency)
            if code is OpCode.CMPR:
                self.compare_ready = self.cycles + latency
            else:
                target = op2
        elif code in (OpCode.PUSH, OpCode.POP):
            if code is OpCode.POP:
                target = op1
            self._wait_for(state, op1)
            self._trace(out, debug, "push/pop", state, op1)
            self.instructions += 1
            latency = self._move_latency(op1)
            self._count_move(latency)
        elif code in (OpCode.LINK, OpCode.UNLNK):
            self.instructions += 1
            latency = LAT_INT_RL
            self.int_reglit += 1
        elif code in _CONDITIONAL or code in (OpCode.JMP, OpCode.JSR):
            if code in _CONDITIONAL:
                self.cycles = max(self.cycles, self.compare_ready)
                if debug >= 2 and out is not None:
                    out.write(f"FREETIME {self.cycles} cmp/jgt... (Wait for comparison)\n")
            self.branches += 1
            self.instructions += 1
            latency = 1
            self.int_reglit += 1
        elif code is OpCode.RET:
            self.cycles = max(self.cycles, state.latest_time)
            if debug >= 2 and out is not None:
                out.write(
                    f"FREETIME {self.cycles} return "
                    "(Wait for pending instructions before returning)\n"
                )
            self.instructions += 1
            latency = 1
            self.int_reglit += 1
        elif code is OpCode.SYS:
            latency = self._account_syscall(ins, state)

        if target is not None:
            target.set_free_time(state, self.cycles + latency)
            if debug >= 2 and out is not None:
                out.write(f"Target will be free at cycle {self.cycles + latency}\n")
        self.cycles += 1

    def _account_syscall(self, ins: Instruction, state: VMState) -> int:
        call = SysCall.lookup(ins.op1.name)
        op1 = ins.op1
        if call in (SysCall.READI, SysCall.WRITEI):
            self.instructions += 1
            if op1.kind is OperandType.ID:
                self.memory += 1
                latency = LAT_INT_M
            else:
                if op1.kind is OperandType.REG:
                    self.registers[op1.register] += 1
                latency = LAT_INT_RL
            self._count_int(latency)
            return latency
        if call in (SysCall.READR, SysCall.WRITER):
            self.instructions += 1
            self.real_ops += 1
            if op1.kind is OperandType.REG:
                self.registers[op1.register] += 1
                latency = LAT_FP_RL
            elif op1.kind is OperandType.NUM:
                latency = LAT_FP_RL
            elif op1.kind is OperandType.ID:
                self.memory += 1
                latency = LAT_FP_M
            else:
                raise TinyError("STATISTICS: unknown op1 used in an integer op", ins.line)
            self._count_fp(latency)
            return latency
        if call is SysCall.WRITES:
            self.instructions += 1
            self.int_ops += 1
            self.memory += 1
            self.int_mem += 1
            return LAT_INT_M
        if call is SysCall.HALT:
            self.instructions += 1
            self.int_reglit += 1
            self.cycles = max(state.latest_time, self.cycles)
            return 1
        return 0

    def report(self) -> str:
        """The statistics summary printed when a run finishes."""
        register_use = ",".join(str(count) for count in self.registers)
        return (
            "\nSTATISTICS _____________________________\n"
            f"   #Instructions:{self.instructions}\n"
            f"    (move-ops mem:{self.move_mem}, reglit:{self.move_reglit})\n"
            f"    ( int-ops mem:{self.int_mem}, reglit:{self.int_reglit})\n"
            f"    (  fp-ops mem:{self.fp_mem}, reglit:{self.fp_reglit})\n"
            f"   Memory Usage (mem:{self.memory},reg:{sum(self.registers)})\n"
            f"      register-use[{register_use}]\n"
            f"   Total Cycles = {self.cycles}\n"
            "OTHER STATSvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvvv\n"
            f"    (int-ops:{self.int_ops}, fp-ops:{self.real_ops})\n"
            f"    (branches:{self.branches})\n"
            f"      peephole-ops:{self.peepholes}\n"
        )