"""Source parsing for regasm: preprocess, tokenize and decode.

Architecture:
    source text -> strip_comment -> label / empty / instruction line
                                         |
                               tokenize -> decode_instruction
                                         |
                                      Program (immutable)

Every instruction is decoded exactly once, here. Operands come out typed
(RegisterRef, IntegerLiteral, StringLiteral, LabelRef), so the engine never
has to re-examine token text while it runs.

Grammar per line:
    [label:] | [opcode arg[, arg]*] | [; comment]

Opcodes are case-insensitive; labels and register names are not.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple, Union

from .errors import DuplicateLabel, UndefinedLabel
from .state import wrap_int32


QUOTE = "'"
COMMENT = ";"

INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")
LABEL_PATTERN = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*):$")


class Opcode(Enum):
    """Every operation kind the decoder can emit."""

    MOV = "MOV"
    INC = "INC"
    DEC = "DEC"
    ADD = "ADD"
    SUB = "SUB"
    MUL = "MUL"
    DIV = "DIV"
    JMP = "JMP"
    CMP = "CMP"
    JNE = "JNE"
    JE = "JE"
    JGE = "JGE"
    JG = "JG"
    JLE = "JLE"
    JL = "JL"
    CALL = "CALL"
    RET = "RET"
    MSG = "MSG"
    END = "END"
    UNKNOWN = "UNKNOWN"
    INVALID = "INVALID"

    @classmethod
    def lookup(cls, token: str) -> "Opcode":
        """Case-insensitive opcode lookup; unknown tokens map to UNKNOWN."""
        try:
            opcode = cls(token.upper())
        except ValueError:
            return cls.UNKNOWN
        # INVALID marks a known opcode with bad operands, never a source token
        return cls.UNKNOWN if opcode is cls.INVALID else opcode


# =============================================================================
# Operands
# =============================================================================

@dataclass(frozen=True)
class RegisterRef:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class IntegerLiteral:
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class StringLiteral:
    text: str

    def __str__(self) -> str:
        return f"'{self.text}'"


@dataclass(frozen=True)
class LabelRef:
    name: str

    def __str__(self) -> str:
        return self.name


Operand = Union[RegisterRef, IntegerLiteral, StringLiteral, LabelRef]


@dataclass(frozen=True)
class Instruction:
    """A decoded instruction.

    Attributes:
        opcode: Operation kind (Opcode.UNKNOWN for unrecognized tokens,
            Opcode.INVALID for a known opcode with bad operands)
        operands: Typed operands in source order
        token: Opcode token exactly as written
        text: Full source text of the line, comment removed
        error: Why an INVALID instruction was rejected
    """
    opcode: Opcode
    operands: Tuple[Operand, ...] = ()
    token: str = ""
    text: str = ""
    error: Optional[str] = None

    def __str__(self) -> str:
        return self.text or self.token


@dataclass(frozen=True)
class Line:
    """One source line, kept at its original index.

    A line holds either a label definition, an instruction, or nothing.
    Label and empty lines are no-ops when executed.
    """
    index: int
    label: Optional[str] = None
    instruction: Optional[Instruction] = None

    @property
    def is_noop(self) -> bool:
        return self.instruction is None


@dataclass(frozen=True)
class Program:
    """An immutable parsed program.

    A Program can be executed any number of times, concurrently or not;
    all mutable run state lives in RunState.

    Attributes:
        lines: Every source line, indexed by original line number
        labels: Read-only mapping of label name to line index
    """
    lines: Tuple[Line, ...] = ()
    labels: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))

    def __len__(self) -> int:
        return len(self.lines)

    def __getitem__(self, index: int) -> Line:
        return self.lines[index]

    def resolve(self, label: str) -> int:
        """Return the line index a label is bound to.

        Raises:
            UndefinedLabel: If the program never defines the label
        """
        try:
            return self.labels[label]
        except KeyError:
            raise UndefinedLabel(label) from None

    @property
    def instructions(self) -> List[Instruction]:
        return [line.instruction for line in self.lines if line.instruction is not None]


# =============================================================================
# Preprocessor / Tokenizer
# =============================================================================

def strip_comment(line: str) -> str:
    """Cut a line at its first ';' that is not inside a quoted string."""
    in_string = False
    for position, char in enumerate(line):
        if char == QUOTE:
            in_string = not in_string
        elif char == COMMENT and not in_string:
            return line[:position]
    return line


def tokenize(line: str) -> List[str]:
    """Split a line into tokens on spaces and commas.

    Quoted spans are kept whole, quotes included, so "MSG 'a, b', x"
    gives ["MSG", "'a, b'", "x"]. An unterminated quote swallows the rest
    of the line into one token.
    """
    tokens = []
    current: List[str] = []
    in_string = False

    for char in line:
        if char == QUOTE:
            in_string = not in_string
            current.append(char)
        elif not in_string and (char == "," or char.isspace()):
            if current:
                tokens.append("".join(current))
                current = []
        else:
            current.append(char)

    if current:
        tokens.append("".join(current))
    return tokens


# =============================================================================
# Decoder
# =============================================================================

# Operand kinds used by the per-opcode signatures
REGISTER = "register"
VALUE = "register or integer"
TARGET = "label"

SIGNATURES: Dict[Opcode, Tuple[str, ...]] = {
    Opcode.MOV: (REGISTER, VALUE),
    Opcode.INC: (REGISTER,),
    Opcode.DEC: (REGISTER,),
    Opcode.ADD: (REGISTER, VALUE),
    Opcode.SUB: (REGISTER, VALUE),
    Opcode.MUL: (REGISTER, VALUE),
    Opcode.DIV: (REGISTER, VALUE),
    Opcode.JMP: (TARGET,),
    Opcode.CMP: (VALUE, VALUE),
    Opcode.JNE: (TARGET,),
    Opcode.JE: (TARGET,),
    Opcode.JGE: (TARGET,),
    Opcode.JG: (TARGET,),
    Opcode.JLE: (TARGET,),
    Opcode.JL: (TARGET,),
    Opcode.CALL: (TARGET,),
    Opcode.RET: (),
    Opcode.END: (),
}


def classify_operand(token: str) -> Operand:
    """Classify a single argument token.

    Integers are an optionally signed digit run, wrapped to 32 bits.
    Anything starting with a quote is a string; a missing closing quote
    is tolerated. Everything else names a register.
    """
    if INTEGER_PATTERN.match(token):
        return IntegerLiteral(wrap_int32(int(token)))
    if token.startswith(QUOTE):
        text = token[1:]
        if len(token) > 1 and token.endswith(QUOTE):
            text = text[:-1]
        return StringLiteral(text)
    return RegisterRef(token)


def _check_operand(kind: str, operand: Operand) -> Optional[Operand]:
    """Return the operand typed for its slot, or None if it does not fit."""
    if kind == VALUE and isinstance(operand, (RegisterRef, IntegerLiteral)):
        return operand
    if kind == REGISTER and isinstance(operand, RegisterRef):
        return operand
    if kind == TARGET and isinstance(operand, RegisterRef):
        return LabelRef(operand.name)
    return None


def decode_instruction(text: str) -> Instruction:
    """Decode one non-empty, comment-free source line.

    Decoding never fails. An unknown opcode decodes to Opcode.UNKNOWN and
    a known opcode with the wrong number or kind of operands decodes to
    Opcode.INVALID with the reason in ``error``; both fail only if the
    line is executed.

    Args:
        text: Line text

    Returns:
        Instruction with typed operands
    """
    tokens = tokenize(text)
    if not tokens:
        return Instruction(Opcode.INVALID, (), text=text, error="empty instruction")

    token, args = tokens[0], tokens[1:]
    opcode = Opcode.lookup(token)
    operands = tuple(classify_operand(arg) for arg in args)

    # MSG takes any operands; UNKNOWN is rejected when it runs
    if opcode in (Opcode.MSG, Opcode.UNKNOWN):
        return Instruction(opcode, operands, token=token, text=text)

    signature = SIGNATURES[opcode]
    if len(operands) != len(signature):
        return Instruction(
            Opcode.INVALID, operands, token=token, text=text,
            error=f"{opcode.value} expects {len(signature)} operand(s), got {len(operands)}",
        )

    checked = []
    for kind, operand in zip(signature, operands):
        typed = _check_operand(kind, operand)
        if typed is None:
            return Instruction(
                Opcode.INVALID, operands, token=token, text=text,
                error=f"{opcode.value} expects a {kind}, got {operand}",
            )
        checked.append(typed)

    return Instruction(opcode, tuple(checked), token=token, text=text)


def parse_program(source: str) -> Program:
    """Parse assembly source into an immutable Program.

    Handles:
        - Comments (from the first unquoted ';')
        - Blank lines (kept as no-op lines)
        - Labels ("name:" alone on a line, kept as no-op lines)

    Line indices are preserved so that label targets stay valid.

    Args:
        source: Assembly source code

    Returns:
        Program with every line decoded and the label table built

    Raises:
        DuplicateLabel: If a label is defined twice
    """
    lines = []
    labels: Dict[str, int] = {}

    for index, raw in enumerate(source.split("\n")):
        text = strip_comment(raw).strip()

        if not text:
            lines.append(Line(index))
            continue

        label_match = LABEL_PATTERN.match(text)
        if label_match:
            label = label_match.group(1)
            if label in labels:
                raise DuplicateLabel(label, labels[label], index)
            labels[label] = index
            lines.append(Line(index, label=label))
        else:
            lines.append(Line(index, instruction=decode_instruction(text)))

    return Program(tuple(lines), MappingProxyType(labels))
