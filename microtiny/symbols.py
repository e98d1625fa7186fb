"""Symbol tables for the compiler front end: entries, scopes and the scope stack."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Entry:
    """A declared name together with its type, value and stack location."""

    name: str
    type: str
    value: str = ""
    is_parameter: bool = False
    stackname: str = ""


@dataclass
class SymbolTable:
    """The symbols declared in one scope, kept in declaration order."""

    scope_name: str
    symbols: dict[str, Entry] = field(default_factory=dict)
    ordered_symbols: list[Entry] = field(default_factory=list)
    total_parameters: int = 0
    total_non_parameters: int = 0

    def find_entry(self, name: str) -> Entry:
        """Return the entry for ``name``; raise KeyError if it is not declared here."""
        return self.symbols[name]

    def exists(self, name: str) -> bool:
        return name in self.symbols

    def _store(self, entry: Entry) -> Entry:
        self.ordered_symbols.append(entry)
        self.symbols[entry.name] = entry
        return entry

    def add_entry(self, name: str, type: str) -> Entry:
        """Declare a local variable; it lives at a negative frame offset."""
        self.total_non_parameters += 1
        entry = Entry(name, type)
        entry.stackname = f"$-{self.total_non_parameters}"
        return self._store(entry)

    def add_string(self, name: str, type: str, value: str) -> Entry:
        """Declare a string constant; its stack name is the literal itself."""
        self.total_non_parameters += 1
        entry = Entry(name, type, value)
        entry.stackname = value
        return self._store(entry)

    def add_parameter(self, name: str, type: str) -> Entry:
        """Declare a function parameter; it lives at a positive frame offset."""
        self.total_parameters += 1
        entry = Entry(name, type, is_parameter=True)
        entry.stackname = f"${self.total_parameters + 1}"
        return self._store(entry)

    def link_size(self) -> int:
        """Number of stack slots the scope reserves for non-parameters."""
        return self.total_non_parameters

    def describe(self) -> str:
        """Return a listing of the table, one line per symbol."""
        lines = [
            f"Symbol table {self.scope_name} Paras = {self.total_parameters} "
            f"NonParas = {self.total_non_parameters}"
        ]
        for entry in self.ordered_symbols:
            text = f"name {entry.name} type {entry.type} StackName {entry.stackname}"
            if entry.value:
                text += f" value {entry.value}"
            if entry.is_parameter:
                text += " isParameter"
            lines.append(text)
        return "\n".join(lines) + "\n"


class SymbolTableStack:
    """All scopes seen so far plus the stack of scopes currently open."""

    def __init__(self) -> None:
        self.tables: list[SymbolTable] = []
        self.table_stack: list[SymbolTable] = []
        self.block_number = 1
        self.error_variable = ""

    def push_table(self, name: str) -> SymbolTable:
        table = SymbolTable(name)
        self.table_stack.append(table)
        self.tables.append(table)
        return table

    def push_block(self) -> SymbolTable:
        """Open an anonymous block scope named ``BLOCK <n>``."""
        table = self.push_table(f"BLOCK {self.block_number}")
        self.block_number += 1
        return table

    def pop_table(self) -> SymbolTable:
        return self.table_stack.pop()

    def current(self) -> SymbolTable:
        """The innermost open scope."""
        return self.table_stack[-1]

    def _is_first_duplicate(self, name: str) -> bool:
        if self.current().exists(name) and not self.error_variable:
            self.error_variable = name
            return True
        return False

    def insert(self, name: str, type: str) -> None:
        if not self._is_first_duplicate(name):
            self.current().add_entry(name, type)

    def insert_string(self, name: str, type: str, value: str) -> None:
        if not self._is_first_duplicate(name):
            self.current().add_string(name, type, value)

    def insert_parameter(self, name: str, type: str) -> None:
        if not self._is_first_duplicate(name):
            self.current().add_parameter(name, type)

    def find_entry(self, name: str) -> Entry:
        """Look the name up from the innermost scope outwards.

        An unknown name yields an entry named and typed ``error``.
        """
        for table in reversed(self.table_stack):
            if table.exists(name):
                return table.find_entry(name)
        return Entry("error", "error")

    def find_type(self, name: str) -> str:
        return self.find_entry(name).type

    def describe(self) -> str:
        """Return the declaration error, or every table separated by blank lines."""
        if self.error_variable:
            return f"DECLARATION ERROR {self.error_variable}\n"
        return "\n".join(table.describe() for table in self.tables)