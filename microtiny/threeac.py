"""Three-address code lines and the buffer that collects them."""

from __future__ import annotations

from dataclasses import dataclass

from microtiny.symbols import SymbolTableStack


@dataclass
class CodeLine:
    """One instruction with up to three arguments, tagged with its scope."""

    scope: str
    command: str
    arg1: str = ""
    arg2: str = ""
    arg3: str = ""

    def render(self) -> str:
        """Return the instruction as text, omitting empty trailing arguments."""
        parts = [self.command, self.arg1]
        parts.extend(arg for arg in (self.arg2, self.arg3) if arg)
        return " ".join(parts)


class _ReadWriteCommands:
    READ = {"INT": "READI", "FLOAT": "READF"}
    WRITE = {"INT": "WRITEI", "FLOAT": "WRITEF", "STRING": "WRITES"}


class CodeObject:
    """Accumulates three-address code and hands out fresh temporaries."""

    def __init__(self, symbol_table_stack: SymbolTableStack) -> None:
        self.symbol_table_stack = symbol_table_stack
        self.three_ac: list[CodeLine] = []
        self._temp_value = 0

    def _scope(self) -> str:
        return self.symbol_table_stack.current().scope_name

    def emit(self, command: str, *args: str) -> CodeLine:
        """Append an instruction in the current scope and return it."""
        line = CodeLine(self._scope(), command, *args)
        self.three_ac.append(line)
        return line

    def new_temp(self) -> str:
        """Return the next temporary name: $T1, $T2, ..."""
        self._temp_value += 1
        return f"$T{self._temp_value}"

    def add_read(self, var_name: str, type: str) -> None:
        """Emit a read of an INT or FLOAT variable; other types emit nothing."""
        command = _ReadWriteCommands.READ.get(type)
        if command:
            self.emit(command, var_name)

    def add_write(self, var_name: str, type: str) -> None:
        """Emit a write of an INT, FLOAT or STRING; other types emit nothing."""
        command = _ReadWriteCommands.WRITE.get(type)
        if command:
            self.emit(command, var_name)

    def render(self) -> str:
        return "".join(line.render() + "\n" for line in self.three_ac)