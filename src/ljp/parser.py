"""Lua parser — converts a token stream into a concrete syntax tree.

Accepts Lua 5.1 through 5.4 and LuaJIT, plus the parts of Luau that the
backend rewriter later removes: compound assignment, floor division,
continue, if-expressions, interpolated strings and type annotations.
Type syntax is recognised only far enough to keep its tokens together.
"""

from __future__ import annotations

from ljp.ast import (
    AnonymousCall,
    Assignment,
    Attrib,
    BinaryOp,
    Binding,
    Block,
    BracketIndex,
    Break,
    CallStatement,
    Chunk,
    CompoundAssignment,
    Continue,
    Do,
    DotIndex,
    ElseIf,
    ExprKey,
    Expression,
    FunctionBody,
    FunctionCall,
    FunctionDeclaration,
    FunctionExpr,
    FunctionName,
    GenericFor,
    Goto,
    If,
    IfExpression,
    IfExpressionClause,
    InterpolatedString,
    Label,
    LocalAssignment,
    LocalFunction,
    MethodCall,
    Name,
    NameKey,
    Number,
    NumericFor,
    Pair,
    Parameter,
    ParenArgs,
    Parentheses,
    Repeat,
    Return,
    Semicolon,
    Statement,
    String,
    StringArgs,
    Symbol,
    TableArgs,
    TableConstructor,
    TypeAnnotation,
    TypeDeclaration,
    UnaryOp,
    VarExpression,
    While,
)
from ljp.errors import ParseError
from ljp.lexer import tokenize
from ljp.tokens import COMPOUND_OPERATORS, Span, Token, TokenType

# (left, right) binding power, as in lparser.c
_BINARY_PRIORITY: dict[str, tuple[int, int]] = {
    "or": (1, 1),
    "and": (2, 2),
    "<": (3, 3),
    ">": (3, 3),
    "<=": (3, 3),
    ">=": (3, 3),
    "~=": (3, 3),
    "==": (3, 3),
    "|": (4, 4),
    "~": (5, 5),
    "&": (6, 6),
    "<<": (7, 7),
    ">>": (7, 7),
    "..": (9, 8),  # right associative
    "+": (10, 10),
    "-": (10, 10),
    "*": (11, 11),
    "/": (11, 11),
    "//": (11, 11),
    "%": (11, 11),
    "^": (14, 13),  # right associative
}
_UNARY_PRIORITY = 12
_UNARY_OPERATORS = frozenset({"not", "-", "#", "~"})

_BLOCK_END = frozenset({"else", "elseif", "end", "until"})


class Parser:
    """Recursive descent parser for Lua token streams."""

    def __init__(self, tokens: list[Token], source: str, filename: str) -> None:
        self._tokens = tokens
        self._source = source
        self._filename = filename
        self._pos = 0

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        idx = self._pos + offset
        if idx < len(self._tokens):
            return self._tokens[idx]
        return self._tokens[-1]  # EOF

    def _at(self, *texts: str, offset: int = 0) -> bool:
        """True if the next token is a keyword or symbol spelled as one of texts."""
        tok = self._peek(offset)
        return tok.type in (TokenType.KEYWORD, TokenType.SYMBOL) and tok.text in texts

    def _at_type(self, tt: TokenType, offset: int = 0) -> bool:
        return self._peek(offset).type == tt

    def _at_word(self, word: str, offset: int = 0) -> bool:
        """True if the next token is the contextual (non-reserved) word."""
        tok = self._peek(offset)
        return tok.type == TokenType.NAME and tok.text == word

    def _at_eof(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        if tok.type != TokenType.EOF:
            self._pos += 1
        return tok

    def _expect(self, text: str, message: str | None = None) -> Token:
        if not self._at(text):
            raise self._error(message or f"'{text}' expected near {self._describe()}")
        return self._advance()

    def _expect_closing(self, text: str, opener: Token) -> Token:
        if not self._at(text):
            if opener.span.start.line == self._peek().span.start.line:
                message = f"'{text}' expected near {self._describe()}"
            else:
                message = (
                    f"'{text}' expected (to close '{opener.text}' at line "
                    f"{opener.span.start.line}) near {self._describe()}"
                )
            raise self._error(message)
        return self._advance()

    def _expect_name(self) -> Token:
        if not self._at_type(TokenType.NAME):
            raise self._error(f"<name> expected near {self._describe()}")
        return self._advance()

    def _describe(self) -> str:
        tok = self._peek()
        if tok.type == TokenType.EOF:
            return "<eof>"
        return f"'{tok.text}'"

    def _error(self, message: str, span: Span | None = None) -> ParseError:
        if span is None:
            span = self._peek().span
        return ParseError(message, span, self._source, self._filename)

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def parse(self) -> Chunk:
        block = self._parse_block()
        if not self._at_eof():
            raise self._error(f"'<eof>' expected near {self._describe()}")
        return Chunk(block, self._advance())

    def _block_follows(self) -> bool:
        return self._at_eof() or self._at(*_BLOCK_END)

    def _parse_block(self) -> Block:
        statements: list[Statement] = []
        last: Return | None = None
        while not self._block_follows():
            if self._at("return"):
                last = self._parse_return()
                break
            statements.append(self._parse_statement())
        return Block(tuple(statements), last)

    def _parse_return(self) -> Return:
        return_ = self._advance()
        expressions: tuple[Pair, ...] = ()
        if not self._block_follows() and not self._at(";"):
            expressions = self._parse_expression_list()
        semicolon = self._advance() if self._at(";") else None
        if not self._block_follows():
            raise self._error(f"'<eof>' expected near {self._describe()}")
        return Return(return_, expressions, semicolon)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _parse_statement(self) -> Statement:
        tok = self._peek()

        if tok.type == TokenType.KEYWORD:
            if tok.text == "if":
                return self._parse_if()
            if tok.text == "while":
                while_ = self._advance()
                condition = self._parse_expression()
                do = self._expect("do")
                block = self._parse_block()
                end = self._expect_closing("end", while_)
                return While(while_, condition, do, block, end)
            if tok.text == "do":
                do = self._advance()
                block = self._parse_block()
                return Do(do, block, self._expect_closing("end", do))
            if tok.text == "for":
                return self._parse_for()
            if tok.text == "repeat":
                repeat = self._advance()
                block = self._parse_block()
                until = self._expect_closing("until", repeat)
                return Repeat(repeat, block, until, self._parse_expression())
            if tok.text == "function":
                function = self._advance()
                name = self._parse_function_name()
                return FunctionDeclaration(function, name, self._parse_function_body(function))
            if tok.text == "local":
                return self._parse_local()
            if tok.text == "goto":
                goto = self._advance()
                return Goto(goto, self._expect_name())
            if tok.text == "break":
                return Break(self._advance())

        if self._at(";"):
            return Semicolon(self._advance())

        if self._at("::"):
            open_ = self._advance()
            name = self._expect_name()
            return Label(open_, name, self._expect("::"))

        if self._at_word("continue") and self._continue_is_statement():
            return Continue(self._advance())

        if self._at_word("type") and self._at_type(TokenType.NAME, offset=1):
            return self._parse_type_declaration(None)

        if (
            self._at_word("export")
            and self._at_word("type", offset=1)
            and self._at_type(TokenType.NAME, offset=2)
        ):
            return self._parse_type_declaration(self._advance())

        return self._parse_expression_statement()

    def _continue_is_statement(self) -> bool:
        nxt = self._peek(1)
        if nxt.type in (TokenType.STRING, TokenType.INTERP_STRING):
            return False
        if nxt.type == TokenType.SYMBOL and (
            nxt.text in ("=", ".", ":", "[", "(", "{", ",") or nxt.text in COMPOUND_OPERATORS
        ):
            return False
        return True

    def _parse_expression_statement(self) -> Statement:
        start = self._peek()
        target = self._parse_suffixed_expression()

        if self._at("=", ","):
            targets: list[Pair] = []
            while True:
                self._check_assignable(target)
                if self._at(","):
                    targets.append(Pair(target, self._advance()))
                    target = self._parse_suffixed_expression()
                else:
                    targets.append(Pair(target, None))
                    break
            equals = self._expect("=")
            return Assignment(tuple(targets), equals, self._parse_expression_list())

        if self._peek().type == TokenType.SYMBOL and self._peek().text in COMPOUND_OPERATORS:
            self._check_assignable(target)
            op = self._advance()
            return CompoundAssignment(target, op, self._parse_expression())

        if not isinstance(target, FunctionCall):
            raise self._error(f"syntax error near {self._describe()}", start.span)
        return CallStatement(target)

    def _check_assignable(self, node: Expression) -> None:
        if not isinstance(node, (Name, VarExpression)):
            raise self._error(f"syntax error near {self._describe()}")

    def _parse_if(self) -> If:
        if_ = self._advance()
        condition = self._parse_expression()
        then = self._expect("then")
        block = self._parse_block()

        else_ifs: list[ElseIf] = []
        while self._at("elseif"):
            elseif = self._advance()
            cond = self._parse_expression()
            then_tok = self._expect("then")
            else_ifs.append(ElseIf(elseif, cond, then_tok, self._parse_block()))

        else_: Token | None = None
        else_block: Block | None = None
        if self._at("else"):
            else_ = self._advance()
            else_block = self._parse_block()

        end = self._expect_closing("end", if_)
        return If(if_, condition, then, block, tuple(else_ifs), else_, else_block, end)

    def _parse_for(self) -> NumericFor | GenericFor:
        for_ = self._advance()
        first = self._parse_binding(allow_attrib=False)

        if self._at("="):
            equals = self._advance()
            start = self._parse_expression()
            comma = self._expect(",")
            limit = self._parse_expression()
            step_comma: Token | None = None
            step: Expression | None = None
            if self._at(","):
                step_comma = self._advance()
                step = self._parse_expression()
            do = self._expect("do")
            block = self._parse_block()
            end = self._expect_closing("end", for_)
            return NumericFor(
                for_, first, equals, start, comma, limit, step_comma, step, do, block, end
            )

        names: list[Pair] = []
        binding = first
        while self._at(","):
            names.append(Pair(binding, self._advance()))
            binding = self._parse_binding(allow_attrib=False)
        names.append(Pair(binding, None))

        in_ = self._expect("in", f"'=' or 'in' expected near {self._describe()}")
        expressions = self._parse_expression_list()
        do = self._expect("do")
        block = self._parse_block()
        end = self._expect_closing("end", for_)
        return GenericFor(for_, tuple(names), in_, expressions, do, block, end)

    def _parse_local(self) -> LocalAssignment | LocalFunction:
        local = self._advance()

        if self._at("function"):
            function = self._advance()
            name = self._expect_name()
            return LocalFunction(local, function, name, self._parse_function_body(function))

        names: list[Pair] = []
        while True:
            binding = self._parse_binding(allow_attrib=True)
            if self._at(","):
                names.append(Pair(binding, self._advance()))
            else:
                names.append(Pair(binding, None))
                break

        equals: Token | None = None
        expressions: tuple[Pair, ...] = ()
        if self._at("="):
            equals = self._advance()
            expressions = self._parse_expression_list()
        return LocalAssignment(local, tuple(names), equals, expressions)

    def _parse_binding(self, allow_attrib: bool) -> Binding:
        name = self._expect_name()
        attrib: Attrib | None = None
        if allow_attrib and self._at("<"):
            open_ = self._advance()
            attrib_name = self._expect_name()
            attrib = Attrib(open_, attrib_name, self._expect(">"))
        return Binding(name, attrib, self._parse_optional_annotation())

    def _parse_function_name(self) -> FunctionName:
        names: list[Pair] = []
        name = self._expect_name()
        while self._at("."):
            names.append(Pair(name, self._advance()))
            name = self._expect_name()
        names.append(Pair(name, None))

        colon: Token | None = None
        method: Token | None = None
        if self._at(":"):
            colon = self._advance()
            method = self._expect_name()
        return FunctionName(tuple(names), colon, method)

    def _parse_function_body(self, function: Token) -> FunctionBody:
        generics: tuple[Token, ...] = ()
        if self._at("<"):
            generics = tuple(self._parse_balanced("<", ">"))

        open_ = self._expect("(")
        params: list[Pair] = []
        if not self._at(")"):
            while True:
                if self._at("..."):
                    name = self._advance()
                else:
                    name = self._expect_name()
                param = Parameter(name, self._parse_optional_annotation())
                if self._at(",") and name.text != "...":
                    params.append(Pair(param, self._advance()))
                else:
                    params.append(Pair(param, None))
                    break
        close = self._expect_closing(")", open_)
        return_type = self._parse_optional_annotation()
        block = self._parse_block()
        end = self._expect_closing("end", function)
        return FunctionBody(generics, open_, tuple(params), close, return_type, block, end)

    def _parse_type_declaration(self, export: Token | None) -> TypeDeclaration:
        type_ = self._advance()
        tokens = [self._expect_name()]
        if self._at("<"):
            tokens.extend(self._parse_balanced("<", ">"))
        tokens.append(self._expect("="))
        tokens.extend(self._parse_type())
        return TypeDeclaration(export, type_, tuple(tokens))

    # ------------------------------------------------------------------
    # Types (Luau), kept as raw token runs
    # ------------------------------------------------------------------

    def _parse_optional_annotation(self) -> TypeAnnotation | None:
        if not self._at(":"):
            return None
        colon = self._advance()
        return TypeAnnotation(colon, tuple(self._parse_type()))

    def _parse_type(self) -> list[Token]:
        tokens: list[Token] = []
        if self._at("|", "&"):
            tokens.append(self._advance())
        tokens.extend(self._parse_type_postfix())
        while self._at("|", "&"):
            tokens.append(self._advance())
            tokens.extend(self._parse_type_postfix())
        return tokens

    def _parse_type_postfix(self) -> list[Token]:
        tokens = self._parse_type_atom()
        while self._at("?"):
            tokens.append(self._advance())
        return tokens

    def _parse_type_atom(self) -> list[Token]:
        tok = self._peek()
        if tok.type == TokenType.STRING or self._at("nil", "true", "false"):
            return [self._advance()]
        if self._at("{"):
            return self._parse_balanced("{", "}")
        if self._at("("):
            tokens = self._parse_balanced("(", ")")
            if self._at("->"):
                tokens.append(self._advance())
                tokens.extend(self._parse_type())
            return tokens
        if self._at("<"):
            # generic function type: <T>(T) -> T
            tokens = self._parse_balanced("<", ">")
            tokens.extend(self._parse_type_atom())
            return tokens
        if self._at("..."):
            tokens = [self._advance()]
            if self._at_type(TokenType.NAME) or self._at("(", "{"):
                tokens.extend(self._parse_type_atom())
            return tokens
        if tok.type == TokenType.NAME:
            tokens = [self._advance()]
            if tok.text == "typeof" and self._at("("):
                tokens.extend(self._parse_balanced("(", ")"))
                return tokens
            while self._at(".") and self._at_type(TokenType.NAME, offset=1):
                tokens.append(self._advance())
                tokens.append(self._advance())
            if self._at("<"):
                tokens.extend(self._parse_balanced("<", ">"))
            if self._at("..."):
                tokens.append(self._advance())
            return tokens
        raise self._error(f"type expected near {self._describe()}")

    def _parse_balanced(self, open_text: str, close_text: str) -> list[Token]:
        opener = self._expect(open_text)
        tokens = [opener]
        depth = 1
        while depth > 0:
            if self._at_eof():
                raise self._error(f"'{close_text}' expected (to close '{open_text}')")
            tok = self._advance()
            tokens.append(tok)
            if tok.type != TokenType.SYMBOL:
                continue
            if tok.text == open_text:
                depth += 1
            elif tok.text == close_text:
                depth -= 1
            elif close_text == ">" and tok.text == ">>":
                depth -= 2
        if depth < 0:
            raise self._error("unbalanced '>>' in type", tokens[-1].span)
        return tokens

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _parse_expression_list(self) -> tuple[Pair, ...]:
        pairs: list[Pair] = []
        while True:
            expr = self._parse_expression()
            if self._at(","):
                pairs.append(Pair(expr, self._advance()))
            else:
                pairs.append(Pair(expr, None))
                return tuple(pairs)

    def _parse_expression(self) -> Expression:
        return self._parse_subexpression(0)

    def _parse_subexpression(self, limit: int) -> Expression:
        if self._at(*_UNARY_OPERATORS):
            op = self._advance()
            lhs: Expression = UnaryOp(op, self._parse_subexpression(_UNARY_PRIORITY))
        else:
            lhs = self._parse_simple_expression()

        while self._at(*_BINARY_PRIORITY):
            left, right = _BINARY_PRIORITY[self._peek().text]
            if left <= limit:
                break
            op = self._advance()
            lhs = BinaryOp(lhs, op, self._parse_subexpression(right))
        return lhs

    def _parse_simple_expression(self) -> Expression:
        tok = self._peek()
        if tok.type == TokenType.NUMBER:
            return Number(self._advance())
        if tok.type == TokenType.STRING:
            return String(self._advance())
        if tok.type == TokenType.INTERP_STRING:
            return InterpolatedString(self._advance())
        if self._at("nil", "true", "false", "..."):
            return Symbol(self._advance())
        if self._at("{"):
            return self._parse_table()
        if self._at("function"):
            function = self._advance()
            return FunctionExpr(function, self._parse_function_body(function))
        if self._at("if"):
            return self._parse_if_expression()
        return self._parse_suffixed_expression()

    def _parse_if_expression(self) -> IfExpression:
        if_ = self._advance()
        condition = self._parse_expression()
        then = self._expect("then")
        value = self._parse_expression()
        clauses: list[IfExpressionClause] = []
        while self._at("elseif"):
            elseif = self._advance()
            cond = self._parse_expression()
            then_tok = self._expect("then")
            clauses.append(IfExpressionClause(elseif, cond, then_tok, self._parse_expression()))
        else_ = self._expect("else")
        return IfExpression(
            if_, condition, then, value, tuple(clauses), else_, self._parse_expression()
        )

    def _parse_primary_expression(self) -> Name | Parentheses:
        if self._at_type(TokenType.NAME):
            return Name(self._advance())
        if self._at("("):
            open_ = self._advance()
            expression = self._parse_expression()
            return Parentheses(open_, expression, self._expect_closing(")", open_))
        raise self._error(f"unexpected symbol near {self._describe()}")

    def _parse_suffixed_expression(self) -> Expression:
        prefix = self._parse_primary_expression()
        suffixes: list = []
        while True:
            if self._at("."):
                dot = self._advance()
                suffixes.append(DotIndex(dot, self._expect_name()))
            elif self._at("["):
                open_ = self._advance()
                expression = self._parse_expression()
                suffixes.append(BracketIndex(open_, expression, self._expect_closing("]", open_)))
            elif self._at(":"):
                colon = self._advance()
                name = self._expect_name()
                suffixes.append(MethodCall(colon, name, self._parse_args()))
            elif self._at("(", "{") or self._at_type(TokenType.STRING):
                suffixes.append(AnonymousCall(self._parse_args()))
            else:
                break

        if not suffixes:
            return prefix
        if isinstance(suffixes[-1], (MethodCall, AnonymousCall)):
            return FunctionCall(prefix, tuple(suffixes))
        return VarExpression(prefix, tuple(suffixes))

    def _parse_args(self) -> ParenArgs | StringArgs | TableArgs:
        if self._at_type(TokenType.STRING):
            return StringArgs(self._advance())
        if self._at("{"):
            return TableArgs(self._parse_table())
        open_ = self._expect("(", f"function arguments expected near {self._describe()}")
        args: tuple[Pair, ...] = ()
        if not self._at(")"):
            args = self._parse_expression_list()
        return ParenArgs(open_, args, self._expect_closing(")", open_))

    def _parse_table(self) -> TableConstructor:
        open_ = self._advance()
        fields: list[Pair] = []
        while not self._at("}"):
            if self._at("["):
                bracket = self._advance()
                key = self._parse_expression()
                close = self._expect_closing("]", bracket)
                equals = self._expect("=")
                field: object = ExprKey(bracket, key, close, equals, self._parse_expression())
            elif self._at_type(TokenType.NAME) and self._at("=", offset=1):
                key_tok = self._advance()
                equals = self._advance()
                field = NameKey(key_tok, equals, self._parse_expression())
            else:
                field = self._parse_expression()

            if self._at(",", ";"):
                fields.append(Pair(field, self._advance()))
            else:
                fields.append(Pair(field, None))
                break
        close = self._expect_closing("}", open_)
        return TableConstructor(open_, tuple(fields), close)


def parse(source: str, filename: str = "<input>") -> Chunk:
    """Convenience function: tokenize and parse source text."""
    tokens = tokenize(source, filename)
    return Parser(tokens, source, filename).parse()
