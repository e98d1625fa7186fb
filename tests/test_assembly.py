import pytest

from microtiny.assembly import AssemblyGenerator
from microtiny.symbols import SymbolTableStack
from microtiny.threeac import CodeObject


def _program():
    stack = SymbolTableStack()
    stack.push_table("GLOBAL")
    stack.insert_string("s", "STRING", '"hi"')
    stack.push_table("main")
    stack.insert("a", "INT")
    code = CodeObject(stack)
    for args in [
        ("STOREI", "5", "$T1"),
        ("STOREI", "$T1", "a"),
        ("WRITEI", "a"),
        ("ADDI", "a", "$T1", "$T2"),
        ("RET", "$T2"),
    ]:
        code.emit(*args)
    return code, stack


def test_register_for_is_stable():
    gen = AssemblyGenerator()
    first = gen.register_for("$T1")
    assert first == "r0"
    assert gen.register_for("$T1") == first
    assert gen.register_for("$T2") != first


def test_new_register_never_repeats():
    gen = AssemblyGenerator()
    regs = [gen.new_register() for _ in range(5)]
    assert len(set(regs)) == 5
    assert gen.register_for("$T9") not in regs


@pytest.mark.parametrize("name,expected", [("$T1", True), ("$-1", True), ("a", False), ("", False)])
def test_is_temporary(name, expected):
    assert AssemblyGenerator().is_temporary(name) is expected


def test_global_only_program():
    stack = SymbolTableStack()
    stack.push_table("GLOBAL")
    code = CodeObject(stack)
    gen = AssemblyGenerator()
    gen.generate(code, stack)
    assert gen.render() == "push \njsr main\nsys halt\nend \n"


def test_worked_example():
    code, stack = _program()
    gen = AssemblyGenerator()
    gen.generate(code, stack)
    assert gen.render().splitlines() == [
        'str s "hi"',
        "push ",
        "jsr main",
        "sys halt",
        "label main",
        "link 1",
        "move 5 r0",
        "move r0 $-1",
        "sys writei $-1",
        "move $-1 r1",
        "addi r0 r1",
        "move r1 r2",
        "move r2 $2",
        "unlnk ",
        "ret ",
        "end ",
    ]


def test_result_temporary_is_bound_to_result_register():
    code, stack = _program()
    gen = AssemblyGenerator()
    lines = gen.generate(code, stack)
    addi = next(line for line in lines if line.command == "addi")
    assert gen.temp_to_reg["$T2"] == addi.arg2


def test_return_slot_counts_parameters():
    stack = SymbolTableStack()
    stack.push_table("GLOBAL")
    table = stack.push_table("f")
    stack.insert_parameter("x", "INT")
    stack.insert_parameter("y", "INT")
    code = CodeObject(stack)
    code.emit("RET", "x")
    gen = AssemblyGenerator()
    lines = gen.generate(code, stack)
    moves = [line for line in lines if line.command == "move"]
    assert moves[0].arg1 == table.find_entry("x").stackname
    assert moves[1].arg1 == moves[0].arg2
    assert moves[1].arg2 == f"${table.total_parameters + 2}"


def test_float_ops_and_syscalls_translate():
    stack = SymbolTableStack()
    stack.push_table("GLOBAL")
    stack.push_table("main")
    stack.insert("x", "FLOAT")
    code = CodeObject(stack)
    code.emit("READF", "x")
    code.emit("MULTF", "x", "x", "$T1")
    code.emit("WRITEF", "$T1")
    code.emit("WRITES", "msg")
    gen = AssemblyGenerator()
    lines = gen.generate(code, stack)
    commands = [(line.command, line.arg1) for line in lines]
    assert ("sys", "readr") in commands
    assert ("mulr", "$-1") in commands
    assert ("sys", "writer") in commands
    writes = next(line for line in lines if line.arg1 == "writes")
    assert writes.arg2 == "msg"


def test_push_pop_jsr():
    stack = SymbolTableStack()
    stack.push_table("GLOBAL")
    stack.push_table("main")
    code = CodeObject(stack)
    code.emit("PUSH", "")
    code.emit("PUSH", "$T1")
    code.emit("JSR", "f")
    code.emit("POP", "")
    code.emit("POP", "$T2")
    gen = AssemblyGenerator()
    gen.generate(code, stack)
    text = gen.render().splitlines()
    assert text[text.index("jsr f") - 1] == f"push {gen.temp_to_reg['$T1']}"
    assert f"pop {gen.temp_to_reg['$T2']}" in text


def test_format_register_map():
    gen = AssemblyGenerator()
    gen.register_for("$T1")
    assert gen.format_register_map() == "$T1 r0\nPRINTED\n"