import math

import pytest

from microtiny.tiny_model import (
    NUM_REGISTERS,
    DataSymbol,
    Instruction,
    Machine,
    OpCode,
    Operand,
    OperandType,
    StackElement,
    SysCall,
    TinyError,
    VMState,
    to_f32,
    to_i32,
)


def _reg(n):
    return Operand(OperandType.REG, f"r{n}", register=n)


def _loaded(state, op, i, r):
    op.set_int(state, i)
    op.set_real(state, r)
    return op


def test_machine_defaults():
    m = Machine()
    assert len(m.int_registers) == NUM_REGISTERS
    assert m.describe().splitlines()[0].endswith(" float")
    assert m.eq() and not m.ne()


def test_machine_int_status():
    m = Machine()
    m.set_status_int(3, 5)
    assert (m.gt(), m.ge(), m.lt(), m.le(), m.eq(), m.ne()) == (False, False, True, True, False, True)
    assert m.describe().splitlines()[0].endswith(" int")


def test_machine_real_status_ignores_int_fields():
    m = Machine()
    m.set_status_int(1, 9)
    m.set_status_real(2.5, 2.5)
    assert m.eq() and m.ge() and m.le()
    assert not m.lt()


def test_machine_describe_shows_registers():
    m = Machine()
    m.int_registers[0] = 5
    assert m.describe().splitlines()[1].startswith("regs 5 0 0 0")


def test_stack_element_kinds():
    frame = StackElement.for_frame(4)
    assert frame.frame_value() == 4
    with pytest.raises(TinyError):
        frame.int_value()
    ret = StackElement.for_return(7)
    assert ret.address_value() == 7
    with pytest.raises(TinyError):
        ret.set_real(1.0)
    data = StackElement.for_data()
    data.set_int(11)
    data.set_real(1.5)
    assert (data.int_value(), data.real_value()) == (11, 1.5)
    with pytest.raises(TinyError):
        data.address_value()


def test_data_symbol_describe():
    assert DataSymbol("s", svalue="hi", is_string=True).describe() == "s:hi"
    assert DataSymbol("x", ivalue=3, rvalue=1.5).describe() == "x:3/1.5"


def test_register_round_trip_and_arithmetic():
    state = VMState()
    a = _loaded(state, _reg(1), 4, 1.5)
    b = _loaded(state, _reg(2), 10, 2.5)
    b.add(state, a)
    assert (b.int_value(state), b.real_value(state)) == (14, 4.0)
    b.sub(state, a)
    assert (b.int_value(state), b.real_value(state)) == (10, 2.5)
    b.mul(state, a)
    assert (b.int_value(state), b.real_value(state)) == (40, 3.75)


def test_div_int_truncates_toward_zero():
    state = VMState()
    a = _loaded(state, _reg(1), -2, 1.0)
    b = _loaded(state, _reg(2), 7, 6.0)
    b.div_int(state, a)
    assert b.int_value(state) == -3
    assert b.real_value(state) == 6.0


def test_div_int_by_zero_raises():
    state = VMState()
    with pytest.raises(TinyError):
        _reg(2).div_int(state, _reg(1))


def test_div_real_by_zero_is_infinite():
    state = VMState()
    a = _loaded(state, _reg(1), 0, 0.0)
    b = _loaded(state, _reg(2), 0, -3.0)
    b.div_real(state, a)
    assert b.real_value(state) == -math.inf


def test_increment_decrement():
    state = VMState()
    r = _loaded(state, _reg(3), 8, 0.0)
    r.increment(state)
    r.increment(state)
    r.decrement(state)
    assert r.int_value(state) == 9


def test_literal_operand():
    state = VMState()
    lit = Operand(OperandType.NUM, "2.9", literal=2.9)
    assert lit.int_value(state) == 2
    assert lit.real_value(state) == pytest.approx(2.9, rel=1e-6)
    with pytest.raises(TinyError):
        lit.set_int(state, 1)
    target = _reg(0)
    target.copy_from(state, lit)
    assert target.int_value(state) == 2
    assert target.real_value(state) == lit.real_value(state)


def test_identifier_operand():
    state = VMState()
    sym = DataSymbol("x")
    op = Operand(OperandType.ID, "x", symbol=sym)
    op.set_int(state, 6)
    assert sym.ivalue == 6
    assert Operand(OperandType.ID, "m", symbol=DataSymbol("m", "hello", True)).string_value() == "hello"
    with pytest.raises(TinyError):
        Operand(OperandType.ID, "y").int_value(state)
    with pytest.raises(TinyError):
        _reg(1).string_value()


def test_stack_reference():
    state = VMState(stack=[StackElement.for_frame(0), StackElement.for_data(), StackElement.for_data()])
    local = Operand(OperandType.STACKREF, "$-1", offset=-1)
    local.set_int(state, 9)
    assert state.stack[1].int_value() == 9
    with pytest.raises(TinyError):
        Operand(OperandType.STACKREF, "$1", offset=1).int_value(state)
    with pytest.raises(TinyError):
        Operand(OperandType.STACKREF, "$0", offset=0).int_value(state)


def test_free_times():
    state = VMState(stack=[StackElement.for_frame(0), StackElement.for_data()])
    reg = _reg(5)
    reg.set_free_time(state, 12)
    assert reg.free_time(state) == 12
    assert state.latest_time == 12
    slot = Operand(OperandType.STACKREF, "$-1", offset=-1)
    slot.set_free_time(state, 30)
    assert slot.free_time(state) == 30
    assert state.latest_time == 12
    assert Operand(OperandType.NUM, "1", literal=1).free_time(state) == 0
    state.note_time(4)
    assert state.latest_time == 12


def test_operand_describe():
    assert _reg(3).describe() == "reg3"
    assert Operand().describe(4) == "emptyop"
    assert Operand().describe(0) == ""
    assert Operand(OperandType.UNKNOWN, "?").describe() == "unknownop"


def test_instruction_describe():
    ins = Instruction(OpCode.MOVE, _reg(1), _reg(2), line=7)
    assert ins.describe() == "line:7  move  reg1  reg2"
    assert ins.describe(0, 3) == "time:3 line:7  move  reg1  reg2"


def test_opcode_properties():
    label = Instruction(OpCode.LABEL, _reg(1), _reg(2), line=1)
    assert label.describe() == "line:1  label  reg1  reg2"
    end = Instruction(OpCode.END, _reg(1), _reg(2), line=1)
    assert end.describe() == "line:1  unknown  reg1  reg2"
    assert OpCode.END.mnemonic == "unknown"
    assert OpCode.LABEL.mnemonic == "label"
    assert OpCode.JSR.is_jump and OpCode.JNE.is_jump
    assert not OpCode.SYS.is_jump


def test_syscall_lookup():
    assert SysCall.lookup("halt") is SysCall.HALT
    assert SysCall.lookup("bogus") is SysCall.UNKNOWN


def test_width_helpers():
    assert to_i32(2**31) == -(2**31)
    assert to_i32(-5) == -5
    assert to_f32(1e300) == math.inf
    assert to_f32(0.5) == 0.5


def test_error_message_with_line():
    assert str(TinyError("boom", 4)) == "error on line 4 : boom"
    assert str(TinyError("boom")) == "boom"