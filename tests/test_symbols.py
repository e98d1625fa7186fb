import pytest

from microtiny.symbols import Entry, SymbolTable, SymbolTableStack


def test_local_entries_get_negative_offsets():
    table = SymbolTable("main")
    first = table.add_entry("a", "INT")
    second = table.add_entry("b", "FLOAT")
    assert first.stackname == "$-1"
    assert second.stackname == "$-2"
    assert table.link_size() == 2
    assert table.total_parameters == 0


def test_parameters_get_positive_offsets():
    table = SymbolTable("f")
    p = table.add_parameter("x", "INT")
    q = table.add_parameter("y", "INT")
    assert p.is_parameter and q.is_parameter
    assert p.stackname == "$2"
    assert q.stackname == "$3"
    assert table.link_size() == 0
    assert table.total_parameters == 2


def test_string_entry_uses_value_as_stackname():
    table = SymbolTable("GLOBAL")
    entry = table.add_string("greeting", "STRING", '"hi"')
    assert entry.stackname == entry.value == '"hi"'
    assert table.link_size() == 1


def test_find_and_exists():
    table = SymbolTable("GLOBAL")
    table.add_entry("a", "INT")
    assert table.exists("a")
    assert not table.exists("b")
    assert table.find_entry("a").type == "INT"
    with pytest.raises(KeyError):
        table.find_entry("b")


def test_symbols_keep_declaration_order():
    table = SymbolTable("GLOBAL")
    for name in ["z", "a", "m"]:
        table.add_entry(name, "INT")
    assert [e.name for e in table.ordered_symbols] == ["z", "a", "m"]


def test_table_describe():
    table = SymbolTable("f")
    table.add_parameter("x", "INT")
    table.add_string("s", "STRING", '"v"')
    lines = table.describe().splitlines()
    assert lines[0] == "Symbol table f Paras = 1 NonParas = 1"
    assert lines[1].endswith(" isParameter")
    assert lines[2].endswith(' value "v"')


def test_block_names_are_numbered():
    stack = SymbolTableStack()
    stack.push_table("GLOBAL")
    first = stack.push_block()
    stack.pop_table()
    second = stack.push_block()
    assert first.scope_name == "BLOCK 1"
    assert second.scope_name == "BLOCK 2"
    assert [t.scope_name for t in stack.tables] == ["GLOBAL", "BLOCK 1", "BLOCK 2"]


def test_lookup_walks_outwards_and_shadows():
    stack = SymbolTableStack()
    stack.push_table("GLOBAL")
    stack.insert("a", "INT")
    stack.insert("b", "INT")
    stack.push_table("main")
    stack.insert("a", "FLOAT")
    assert stack.find_type("a") == "FLOAT"
    assert stack.find_type("b") == "INT"
    stack.pop_table()
    assert stack.find_type("a") == "INT"


def test_unknown_name_gives_error_entry():
    stack = SymbolTableStack()
    stack.push_table("GLOBAL")
    entry = stack.find_entry("missing")
    assert entry == Entry("error", "error")
    assert stack.find_type("missing") == "error"


def test_duplicate_declaration_recorded():
    stack = SymbolTableStack()
    stack.push_table("GLOBAL")
    stack.insert("a", "INT")
    stack.insert("a", "FLOAT")
    assert stack.error_variable == "a"
    assert stack.current().link_size() == 1
    assert stack.describe() == "DECLARATION ERROR a\n"


def test_only_first_duplicate_is_reported():
    stack = SymbolTableStack()
    stack.push_table("GLOBAL")
    stack.insert("a", "INT")
    stack.insert("b", "INT")
    stack.insert("a", "INT")
    stack.insert("b", "INT")
    assert stack.error_variable == "a"


def test_insert_variants_route_to_table():
    stack = SymbolTableStack()
    stack.push_table("f")
    stack.insert_parameter("p", "INT")
    stack.insert_string("s", "STRING", '"x"')
    table = stack.current()
    assert table.find_entry("p").is_parameter
    assert table.find_entry("s").value == '"x"'


def test_stack_describe_joins_tables_with_blank_line():
    stack = SymbolTableStack()
    stack.push_table("GLOBAL")
    stack.insert("a", "INT")
    stack.push_table("main")
    text = stack.describe()
    parts = text.split("\n\n")
    assert len(parts) == 2
    assert parts[0] + "\n" == stack.tables[0].describe()
    assert parts[1] == stack.tables[1].describe()