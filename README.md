# microtiny

A small compiler back end and a simulator for the Tiny assembly language.

The package has two halves:

- **Code generation.** Symbol tables and scopes (`microtiny.symbols`),
  three-address code (`microtiny.threeac`), syntax-tree nodes that emit
  three-address code (`microtiny.syntax_tree`) and a generator that turns
  three-address code into Tiny assembly (`microtiny.assembly`).
- **The Tiny machine.** A parser and linker for Tiny assembly
  (`microtiny.tiny_parser`), the machine model (`microtiny.tiny_model`),
  cycle statistics (`microtiny.tiny_stats`) and the simulator with its
  command-line entry point (`microtiny.simulator`).

There are no runtime dependencies beyond the standard library.

## Installation

```
pip install .
```

Tests need `pytest` (`pip install .[test]`).

## Running a Tiny program

```
microtiny program.tiny [stats|nostats|d1|d2|d3|d4 [mix]]
```

- `stats` (the default) prints, after the run, the instruction counts
  (split into move, integer and floating-point operations on memory or on
  registers and literals), memory and per-register use, the estimated number
  of cycles, and counts of branches and `inci`/`deci` operations.
- `nostats` runs the program without statistics.
- `d1` to `d4` set the debug level: `d1` lists the declared symbols and the
  parsed program before running, `d2` also traces every instruction with the
  statistics clock and the free times of its operands, `d3` also prints the
  machine status and the symbol values before each instruction, and `d4`
  shows empty operands in listings.
- A third argument `mix` allows `var` and `str` declarations after code has
  started.

Only the second argument selects stats or a debug level, so a debug run always
gathers statistics. `sys readi` and `sys readr` read whitespace-separated
numbers from standard input. The command exits with status 1 when the file
cannot be opened, when assembly fails (every error found is printed) or when
a run-time error occurs.

A short program:

```
var a
str msg "sum: "
move 3 r0
addi 4 r0
move r0 a
sys writes msg
sys writei a
sys halt
end
```

The machine has 200 registers, `r0` to `r199`; each register, variable and
stack slot holds both an integer and a single-precision real value. `$n`
addresses the stack relative to the frame pointer set by `link`.

## Running from Python

```python
import io
from microtiny.simulator import run_source

out = io.StringIO()
status = run_source(source_text, stdin=io.StringIO(""), stdout=out, stats=False)
print(status, out.getvalue())
```

`run_source` writes assembly and run-time errors to the output stream and
returns the exit status. For finer control, `microtiny.tiny_parser.parse_program`
returns a `Program` or raises `AssemblyError` (its `messages` list every error),
and `microtiny.simulator.Simulator` runs a `Program` with `step()` or `run()`;
`run()` returns the `Statistics` gathered, if enabled. Run-time errors are
raised as `microtiny.tiny_model.TinyError`.

## Generating Tiny assembly

```python
from microtiny.symbols import SymbolTableStack
from microtiny.threeac import CodeObject
from microtiny.syntax_tree import AssignNode, ExprNode, IntNode
from microtiny.assembly import AssemblyGenerator

scopes = SymbolTableStack()
scopes.push_table("GLOBAL")
scopes.push_table("main")
scopes.insert("a", "INT")

code = CodeObject(scopes)
AssignNode(scopes.find_entry("a"), ExprNode("+", IntNode(2), IntNode(3))).generate(code)
code.add_write("a", "INT")
print(code.render())           # three-address code

generator = AssemblyGenerator()
generator.generate(code, scopes)
print(generator.render())      # Tiny assembly
```

Each temporary (`$T1`, `$T2`, ...) is given its own register; there is no
register allocation beyond that. Building an `AssignNode` sets `Node.id_type`,
which decides whether the expressions generated afterwards use integer or
float instructions.

## What is not included

The package has no scanner or parser for the high-level source language and
no command that compiles a source file: syntax trees and symbol tables must be
built by calling the classes above directly. The generated assembly can be run
with the `microtiny` command or `run_source`.