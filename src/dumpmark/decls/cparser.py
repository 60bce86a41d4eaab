"""Reader for C-like type and function declarations.

Only as much of C is understood as is needed to split a header into
declarations, learn which type names it defines, and check that every type
a declaration mentions is known. Layouts, sizes and semantics are not
modelled.
"""

import re
from dataclasses import field, dataclass
from enum import IntEnum, auto
from collections.abc import Iterable, Iterator

from dumpmark.errors import DeclarationError

BUILTIN_TYPES = frozenset(
    {
        "void", "char", "short", "int", "long", "float", "double", "signed",
        "unsigned", "bool", "_Bool", "wchar_t", "char16_t", "char32_t",
        "__int8", "__int16", "__int32", "__int64", "__int128",
        "int8_t", "int16_t", "int32_t", "int64_t",
        "uint8_t", "uint16_t", "uint32_t", "uint64_t",
        "intptr_t", "uintptr_t", "size_t", "ssize_t", "ptrdiff_t",
        "_BYTE", "_WORD", "_DWORD", "_QWORD", "_OWORD", "_BOOL1", "_BOOL4", "_BOOL8",
    }
)  # fmt: skip

QUALIFIERS = frozenset(
    {
        "const", "volatile", "static", "extern", "inline", "register", "restrict",
        "__restrict", "__unaligned", "__ptr32", "__ptr64", "__cppobj", "__noreturn",
    }
)  # fmt: skip

CALLING_CONVENTIONS = frozenset(
    {
        "__cdecl", "__stdcall", "__fastcall", "__thiscall", "__vectorcall",
        "__pascal", "__usercall", "__userpurge",
    }
)  # fmt: skip

TAG_KEYWORDS = frozenset({"struct", "union", "enum"})

ATTRIBUTE_KEYWORDS = frozenset({"__declspec", "__attribute__", "__attribute", "__alignas"})

KEYWORDS = BUILTIN_TYPES | QUALIFIERS | CALLING_CONVENTIONS | TAG_KEYWORDS | {"typedef"}

ANONYMOUS = "<anon>"

_COMMENT_RE = re.compile(r"/\*.*?\*/|//[^\n]*", re.DOTALL)
_TOKEN_RE = re.compile(
    r"[A-Za-z_$][\w$]*|0[xX][0-9A-Fa-f]+[uUlL]*|\d+[uUlL]*|\.\.\.|::|[{}()\[\];,*&=:<>.\-+~|^!?/%]"
)
_IDENT_RE = re.compile(r"[A-Za-z_$][\w$]*$")

_OPENERS = {"{": "}", "(": ")", "[": "]"}
_CLOSERS = {v: k for k, v in _OPENERS.items()}


class DeclKind(IntEnum):
    """What a top-level declaration introduces."""

    TYPEDEF = auto()
    STRUCT = auto()
    UNION = auto()
    ENUM = auto()
    FUNCTION = auto()
    VARIABLE = auto()
    TYPE = auto()  # Abstract type with no declarator, e.g. "Foo*"


@dataclass(frozen=True)
class Token:
    text: str
    line: int


@dataclass
class Declaration:
    """One parsed top-level declaration."""

    kind: DeclKind
    name: str | None
    text: str
    line: int
    type_refs: frozenset[str] = frozenset()
    defines: tuple[str, ...] = ()


@dataclass
class ParseResult:
    """Declarations read from a batch and the errors hit along the way."""

    declarations: list[Declaration] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def defined_types(self) -> set[str]:
        return {name for decl in self.declarations for name in decl.defines}


def _is_ident(text: str) -> bool:
    return bool(_IDENT_RE.match(text))


def _strip(source: str) -> str:
    """Blank out comments and preprocessor lines, keeping line numbers."""
    source = _COMMENT_RE.sub(lambda m: "\n" * m.group(0).count("\n"), source)
    return "\n".join(
        "" if line.lstrip().startswith("#") else line for line in source.split("\n")
    )


def tokenize(source: str) -> list[Token]:
    """Split declaration source into tokens."""
    tokens = []
    for lineno, line in enumerate(_strip(source).split("\n"), start=1):
        for match in _TOKEN_RE.finditer(line):
            tokens.append(Token(match.group(0), lineno))
    return tokens


def split_declarations(
    tokens: list[Token],
) -> Iterator[tuple[list[Token], DeclarationError | None]]:
    """Group tokens into top-level declarations ending at a depth-0 ';'.

    Yields (tokens, None) for each declaration, or (tokens, error) when the
    brackets of a declaration do not balance.
    """
    current: list[Token] = []
    stack: list[str] = []

    for tok in tokens:
        text = tok.text
        if text in _OPENERS:
            stack.append(text)
        elif text in _CLOSERS:
            if not stack or stack[-1] != _CLOSERS[text]:
                current.append(tok)
                yield current, DeclarationError(f"line {tok.line}: unbalanced '{text}'")
                current, stack = [], []
                continue
            stack.pop()

        if text == ";" and not stack:
            if current:
                yield current, None
            current = []
            continue
        current.append(tok)

    if current:
        line = current[0].line
        if stack:
            yield current, DeclarationError(f"line {line}: unterminated '{stack[-1]}'")
        else:
            yield current, DeclarationError(f"line {line}: missing ';'")


def _group_end(texts: list[str], start: int) -> int:
    """Index of the bracket closing the one opened at start."""
    depth = 0
    for i in range(start, len(texts)):
        if texts[i] in _OPENERS:
            depth += 1
        elif texts[i] in _CLOSERS:
            depth -= 1
            if depth == 0:
                return i
    raise DeclarationError(f"unterminated '{texts[start]}'")


def _split_top(texts: list[str], sep: str) -> list[list[str]]:
    """Split on a separator that is not inside any bracket."""
    parts: list[list[str]] = [[]]
    depth = 0
    for text in texts:
        if text in _OPENERS:
            depth += 1
        elif text in _CLOSERS:
            depth -= 1
        if text == sep and depth == 0:
            parts.append([])
        else:
            parts[-1].append(text)
    return [p for p in parts if p]


class _Collapsed:
    """Declaration tokens with struct/union/enum bodies folded away."""

    def __init__(self) -> None:
        self.texts: list[str] = []
        self.tags: list[tuple[str, str]] = []  # (keyword, tag) defined with a body
        self.refs: set[str] = set()


def _drop_attributes(texts: list[str]) -> list[str]:
    out: list[str] = []
    i = 0
    while i < len(texts):
        if texts[i] in ATTRIBUTE_KEYWORDS and i + 1 < len(texts) and texts[i + 1] == "(":
            i = _group_end(texts, i + 1) + 1
            continue
        out.append(texts[i])
        i += 1
    return out


def _collapse(texts: list[str]) -> _Collapsed:
    out = _Collapsed()
    texts = _drop_attributes(texts)
    i = 0
    while i < len(texts):
        text = texts[i]
        if text in TAG_KEYWORDS:
            keyword = text
            tag = None
            j = i + 1
            while j < len(texts) and texts[j] in QUALIFIERS:
                j += 1
            if j < len(texts) and _is_ident(texts[j]) and texts[j] not in KEYWORDS:
                tag = texts[j]
                j += 1
            # Base clause, e.g. "struct Foo : Bar {"
            if j < len(texts) and texts[j] == ":" and tag is not None:
                k = j + 1
                bases = set()
                while k < len(texts) and texts[k] != "{":
                    if _is_ident(texts[k]) and texts[k] not in KEYWORDS:
                        bases.add(texts[k])
                    k += 1
                if k < len(texts):
                    out.refs |= bases
                    j = k
            if j < len(texts) and texts[j] == "{":
                end = _group_end(texts, j)
                body = texts[j + 1 : end]
                if keyword != "enum":
                    for member in _split_top(body, ";"):
                        out.refs |= _declarator_refs(member)
                if tag is not None:
                    out.tags.append((keyword, tag))
                out.texts.extend([keyword, tag if tag is not None else ANONYMOUS])
                i = end + 1
                continue
            out.texts.append(keyword)
            if tag is not None:
                out.texts.append(tag)
            i = j
            continue
        out.texts.append(text)
        i += 1
    return out


def _prefix_refs(texts: Iterable[str]) -> set[str]:
    """Type names mentioned in a specifier sequence."""
    refs: set[str] = set()
    elaborated = False
    for text in texts:
        if text in TAG_KEYWORDS:
            elaborated = True
            continue
        if _is_ident(text) and text not in KEYWORDS and not elaborated:
            refs.add(text)
        elaborated = False
    return refs


def _is_typeish(text: str, prev: str | None) -> bool:
    if text in BUILTIN_TYPES or text in ("*", "&", ANONYMOUS):
        return True
    return _is_ident(text) and text not in KEYWORDS or prev in TAG_KEYWORDS


def _analyze(texts: list[str]) -> tuple[str | None, set[str], bool]:
    """Find the declared name, referenced types and whether it is a function."""
    # Function pointer: ret ( [cc] * name ) ( params )
    for i, text in enumerate(texts):
        if text != "(":
            continue
        end = _group_end(texts, i)
        inner = [t for t in texts[i + 1 : end] if t not in CALLING_CONVENTIONS]
        if inner and inner[0] == "*":
            idents = [t for t in inner[1:] if t not in QUALIFIERS]
            name = idents[-1] if idents and _is_ident(idents[-1]) else None
            refs = _prefix_refs(texts[:i]) | _params_refs(texts[end + 1 :])
            return name, refs, False
        if i > 0 and _is_ident(texts[i - 1]) and texts[i - 1] not in KEYWORDS:
            name = texts[i - 1]
            refs = _prefix_refs(texts[: i - 1]) | _params_refs(texts[i:])
            return name, refs, True
        break

    head: list[str] = []
    for text in texts:
        if text in ("[", "=", ":", ","):
            break
        head.append(text)

    name = None
    if len(head) >= 2 and _is_ident(head[-1]) and head[-1] not in KEYWORDS:
        if _is_typeish(head[-2], head[-3] if len(head) >= 3 else None):
            if head[-2] not in TAG_KEYWORDS:
                name = head[-1]
                head = head[:-1]
    return name, _prefix_refs(head), False


def _params_refs(texts: list[str]) -> set[str]:
    """Type names used by the first parenthesised parameter list."""
    if not texts or texts[0] != "(":
        return set()
    end = _group_end(texts, 0)
    refs: set[str] = set()
    for param in _split_top(texts[1:end], ","):
        if param == ["..."]:
            continue
        refs |= _declarator_refs(param)
    return refs


def _declarator_refs(texts: list[str]) -> set[str]:
    collapsed = _collapse(texts)
    _, refs, _ = _analyze(collapsed.texts)
    return refs | collapsed.refs


def analyze_declaration(tokens: list[Token], allow_abstract: bool = False) -> Declaration:
    """Classify one top-level declaration.

    With allow_abstract, a bare type such as "Foo_c*" is accepted as DeclKind.TYPE.

    Raises:
        DeclarationError: if the declaration names nothing
    """
    line = tokens[0].line
    texts = [t.text for t in tokens]
    is_typedef = texts[0] == "typedef"
    if is_typedef:
        texts = texts[1:]

    try:
        collapsed = _collapse(texts)
        name, refs, is_function = _analyze(collapsed.texts)
    except DeclarationError as e:
        raise DeclarationError(f"line {line}: {e}") from e

    refs |= collapsed.refs
    defines = [tag for _, tag in collapsed.tags]
    text = " ".join(t.text for t in tokens) + ";"

    flat = collapsed.texts
    forward = len(flat) == 2 and flat[0] in TAG_KEYWORDS and _is_ident(flat[1])
    if forward and not collapsed.tags:
        defines.append(flat[1])

    if is_typedef:
        if name is None:
            raise DeclarationError(f"line {line}: typedef without a name")
        defines.append(name)
        kind = DeclKind.TYPEDEF
    elif is_function:
        kind = DeclKind.FUNCTION
    elif name is not None:
        kind = DeclKind.VARIABLE
    elif collapsed.tags or forward:
        keyword = collapsed.tags[0][0] if collapsed.tags else flat[0]
        kind = {"struct": DeclKind.STRUCT, "union": DeclKind.UNION}.get(keyword, DeclKind.ENUM)
        name = defines[0]
    elif allow_abstract and flat:
        kind = DeclKind.TYPE
    else:
        raise DeclarationError(f"line {line}: declaration declares nothing")

    # A struct may point at itself
    refs -= set(defines)
    return Declaration(kind, name, text, line, frozenset(refs), tuple(dict.fromkeys(defines)))


def parse_declarations(
    source: str, known_types: Iterable[str] = (), allow_abstract: bool = False
) -> ParseResult:
    """Parse a batch of declarations.

    Types may be used anywhere in the batch they are defined, regardless of
    order. A declaration mentioning an unknown type is an error and is not
    returned.
    """
    result = ParseResult()
    parsed: list[Declaration] = []

    for tokens, error in split_declarations(tokenize(source)):
        if error is not None:
            result.errors.append(str(error))
            continue
        try:
            parsed.append(analyze_declaration(tokens, allow_abstract))
        except DeclarationError as e:
            result.errors.append(str(e))

    known = set(known_types) | {name for decl in parsed for name in decl.defines}
    for decl in parsed:
        missing = sorted(decl.type_refs - known)
        if missing:
            result.errors.append(f"line {decl.line}: unknown type {', '.join(missing)}")
            continue
        result.declarations.append(decl)
    return result


def parse_declaration(source: str, known_types: Iterable[str] = ()) -> Declaration:
    """Parse a single declaration or abstract type, e.g. a function signature.

    Raises:
        DeclarationError: if the text is not exactly one resolvable declaration
    """
    source = source.strip()
    if not source:
        raise DeclarationError("empty declaration")
    if not source.endswith(";"):
        source += ";"

    result = parse_declarations(source, known_types, allow_abstract=True)
    if result.errors:
        raise DeclarationError(result.errors[0])
    if len(result.declarations) != 1:
        raise DeclarationError(f"expected one declaration, got {len(result.declarations)}")
    return result.declarations[0]
