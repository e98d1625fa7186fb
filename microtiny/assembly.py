"""Translation of three-address code into Tiny assembly."""

from __future__ import annotations

from microtiny.symbols import SymbolTable, SymbolTableStack
from microtiny.threeac import CodeLine, CodeObject

GLOBAL_SCOPE = "GLOBAL"

_SYSCALLS = {
    "READI": "readi",
    "READF": "readr",
    "WRITEI": "writei",
    "WRITEF": "writer",
    "WRITES": "writes",
}

_ARITHMETIC = {
    "ADDI": "addi",
    "SUBI": "subi",
    "MULTI": "muli",
    "DIVI": "divi",
    "ADDF": "addr",
    "SUBF": "subr",
    "MULTF": "mulr",
    "DIVF": "divr",
}


class AssemblyGenerator:
    """Turns three-address code into Tiny assembly, one register per temporary."""

    def __init__(self) -> None:
        self.assembly: list[CodeLine] = []
        self.temp_to_reg: dict[str, str] = {}
        self._register_no = -1

    def new_register(self) -> str:
        """Return a register that has never been handed out before."""
        self._register_no += 1
        return f"r{self._register_no}"

    def register_for(self, temporary: str) -> str:
        """Return the register bound to ``temporary``, binding a new one if needed."""
        register = self.temp_to_reg.get(temporary)
        if register is None:
            register = self.new_register()
            self.temp_to_reg[temporary] = register
        return register

    def is_temporary(self, name: str) -> bool:
        return name.startswith("$")

    def _append(self, scope: str, command: str, *args: str) -> None:
        self.assembly.append(CodeLine(scope, command, *args))

    def _place(self, original: str, resolved: str) -> str:
        return self.register_for(original) if self.is_temporary(original) else resolved

    @staticmethod
    def _resolve(table: SymbolTable, name: str) -> str:
        return table.find_entry(name).stackname if table.exists(name) else name

    def generate(self, code: CodeObject, table_stack: SymbolTableStack) -> list[CodeLine]:
        """Translate every scope's code and return the accumulated assembly."""
        for table in table_stack.tables:
            if table.scope_name != GLOBAL_SCOPE:
                self._append(GLOBAL_SCOPE, "label", table.scope_name)
                self._append(GLOBAL_SCOPE, "link", str(table.link_size()))
            for entry in table.ordered_symbols:
                if entry.type == "STRING":
                    self._append(table.scope_name, "str", entry.name, entry.value)
            if table.scope_name == GLOBAL_SCOPE:
                self._append(GLOBAL_SCOPE, "push", "")
                self._append(GLOBAL_SCOPE, "jsr", "main")
                self._append(GLOBAL_SCOPE, "sys", "halt")
            for line in code.three_ac:
                if line.scope == table.scope_name:
                    self._translate(line, table)
        self._append("idk", "end", "")
        return self.assembly

    def _translate(self, line: CodeLine, table: SymbolTable) -> None:
        scope = line.scope
        command = line.command
        arg1 = self._resolve(table, line.arg1)
        arg2 = self._resolve(table, line.arg2)

        if command in _SYSCALLS:
            self._append(scope, "sys", _SYSCALLS[command], arg1)
        elif command in ("STOREI", "STOREF"):
            source = self._place(line.arg1, arg1)
            target = self._place(line.arg2, arg2)
            self._append(scope, "move", source, target)
        elif command == "RET":
            source = self._place(line.arg1, arg1)
            register = self.new_register()
            self._append(scope, "move", source, register)
            self._append(scope, "move", register, f"${table.total_parameters + 2}")
            if table.scope_name != GLOBAL_SCOPE:
                self._append(scope, "unlnk", "")
            self._append(scope, "ret", "")
        elif command == "PUSH":
            self._append(scope, "push", self._place(line.arg1, arg1))
        elif command == "JSR":
            self._append(scope, "jsr", arg1)
        elif command == "POP":
            self._append(scope, "pop", self._place(line.arg1, arg1))
        else:
            source = self._place(line.arg1, arg1)
            result = self.new_register()
            self._append(scope, "move", source, result)
            operand = self._place(line.arg2, arg2)
            self._append(scope, _ARITHMETIC.get(command, ""), operand, result)
            if self.is_temporary(line.arg3):
                self.temp_to_reg[line.arg3] = result

    def format_register_map(self) -> str:
        """List each temporary with its register, followed by a PRINTED marker."""
        lines = [f"{temp} {reg}\n" for temp, reg in self.temp_to_reg.items()]
        return "".join(lines) + "PRINTED\n"

    def render(self) -> str:
        return "".join(line.render() + "\n" for line in self.assembly)