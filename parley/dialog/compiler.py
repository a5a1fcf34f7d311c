"""
Dialogue compiler - turns markup documents into dialogue graphs.

Document format:

```
<dialogue>
    <starter id="greet_again" all_true="true">
        <condition key="met_guard" value="true"/>
        <condition key="gold" operator="gte" value="10"/>
    </starter>
    <starter id="greet"/>

    <line id="greet" next="ask">%Speaker|Guard%Halt! `anim|raise_spear`Who goes there?</line>
    <line id="ask">
        State your business.
        <choice text="Just passing through." next="pass"/>
        <choice text="I have gold." next="bribe"/>
    </line>
    <line id="bribe" next="refuse">
        `sfx|coins`
        <conditional_next id="accept" all_true="true">
            <condition key="gold" operator="gte" value="10"/>
        </conditional_next>
    </line>
</dialogue>
```

Unknown elements and attributes are ignored. A starter's id doubles as
the id of the line the conversation opens with.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

from parley.dialog.markup import Token, TokenKind, tokenize_file, tokenize_string
from parley.dialog.models import (
    Choice,
    Condition,
    ConditionalBranch,
    DialogueGraph,
    Line,
    Operator,
    Quantifier,
    Starter,
)

logger = logging.getLogger(__name__)


OPERATOR_ALIASES: dict[str, Operator] = {
    "": Operator.EQ,
    "eq": Operator.EQ,
    "=": Operator.EQ,
    "==": Operator.EQ,
    "gt": Operator.GT,
    ">": Operator.GT,
    "lt": Operator.LT,
    "<": Operator.LT,
    "gte": Operator.GTE,
    ">=": Operator.GTE,
    "lte": Operator.LTE,
    "<=": Operator.LTE,
}


def parse_operator(text: str) -> Operator:
    """Map an operator attribute to an Operator, defaulting to EQ."""
    operator = OPERATOR_ALIASES.get(text.strip().lower())
    if operator is None:
        logger.warning(f"Unknown condition operator '{text}', using eq")
        return Operator.EQ
    return operator


def parse_quantifier(all_true: str) -> Quantifier:
    # Textual match only: "True" or "1" mean ANY
    return Quantifier.ALL if all_true == "true" else Quantifier.ANY


@dataclass
class _ParseContext:
    """Where the compiler currently is inside the document."""
    starter_id: Optional[str] = None
    line_id: Optional[str] = None
    branch_id: Optional[str] = None
    in_starter: bool = False
    open_elements: list[str] = field(default_factory=list)

    @property
    def in_line_text(self) -> bool:
        """True when text belongs directly to a line element."""
        return bool(self.open_elements) and self.open_elements[-1] == "line"


class GraphCompiler:
    """
    Builds a DialogueGraph from a token stream.

    Duplicate starter or line ids replace the earlier definition. Old
    content relies on this, so it is logged rather than rejected.
    """

    def __init__(self):
        self._open_handlers: dict[str, Callable[[DialogueGraph, _ParseContext, Token], None]] = {
            "starter": self._open_starter,
            "line": self._open_line,
            "choice": self._open_choice,
            "conditional_next": self._open_conditional_next,
            "condition": self._open_condition,
        }

    def compile(self, tokens: Iterable[Token], name: str = "") -> DialogueGraph:
        """
        Compile a token stream.

        Raises:
            MalformedDocumentError: propagated from the tokenizer
        """
        graph = DialogueGraph(name=name)
        ctx = _ParseContext()

        for token in tokens:
            if token.kind is TokenKind.OPEN:
                ctx.open_elements.append(token.name)
                handler = self._open_handlers.get(token.name)
                if handler:
                    handler(graph, ctx, token)

            elif token.kind is TokenKind.TEXT:
                if ctx.in_line_text and ctx.line_id in graph.lines:
                    graph.lines[ctx.line_id].text = token.text.strip()

            elif token.kind is TokenKind.CLOSE:
                if ctx.open_elements:
                    ctx.open_elements.pop()
                if token.name == "starter":
                    ctx.in_starter = False

        logger.debug(
            f"Compiled '{name}': {len(graph.starters)} starters, {len(graph.lines)} lines"
        )
        return graph

    def compile_string(self, source: str, name: str = "") -> DialogueGraph:
        """Compile a document held in memory."""
        return self.compile(tokenize_string(source), name=name)

    def compile_file(self, path: str | Path) -> DialogueGraph:
        """
        Compile a document file. The graph is named after the file stem.

        Raises:
            DocumentNotFoundError: if the file does not exist
            MalformedDocumentError: if it cannot be tokenized
        """
        path = Path(path)
        return self.compile(tokenize_file(path), name=path.stem)

    # Element handlers

    def _open_starter(self, graph: DialogueGraph, ctx: _ParseContext, token: Token) -> None:
        starter_id = token.attr("id")
        if starter_id in graph.starters:
            logger.warning(f"Duplicate starter '{starter_id}' in '{graph.name}', last one wins")

        # Overwriting keeps the evaluation slot of the first definition
        graph.starters[starter_id] = Starter(
            id=starter_id,
            quantifier=parse_quantifier(token.attr("all_true")),
        )
        ctx.starter_id = starter_id
        ctx.in_starter = True

    def _open_line(self, graph: DialogueGraph, ctx: _ParseContext, token: Token) -> None:
        line_id = token.attr("id")
        if line_id in graph.lines:
            logger.warning(f"Duplicate line '{line_id}' in '{graph.name}', last one wins")

        graph.lines[line_id] = Line(id=line_id, next=token.attr("next"))
        ctx.line_id = line_id
        ctx.branch_id = None

    def _open_choice(self, graph: DialogueGraph, ctx: _ParseContext, token: Token) -> None:
        line = graph.lines.get(ctx.line_id) if ctx.line_id is not None else None
        if line is None:
            logger.debug("Dropping choice outside of a line")
            return
        line.choices.append(Choice(text=token.attr("text"), next=token.attr("next")))

    def _open_conditional_next(self, graph: DialogueGraph, ctx: _ParseContext, token: Token) -> None:
        line = graph.lines.get(ctx.line_id) if ctx.line_id is not None else None
        if line is None:
            logger.debug("Dropping conditional_next outside of a line")
            return

        branch_id = token.attr("id")
        line.conditional_next[branch_id] = ConditionalBranch(
            id=branch_id,
            quantifier=parse_quantifier(token.attr("all_true")),
        )
        ctx.branch_id = branch_id

    def _open_condition(self, graph: DialogueGraph, ctx: _ParseContext, token: Token) -> None:
        condition = Condition(
            key=token.attr("key"),
            operator=parse_operator(token.attr("operator")),
            value=token.attr("value"),
        )

        if ctx.in_starter:
            starter = graph.starters.get(ctx.starter_id)
            if starter is not None:
                starter.conditions.append(condition)
                return
        elif ctx.branch_id is not None and ctx.line_id in graph.lines:
            branch = graph.lines[ctx.line_id].conditional_next.get(ctx.branch_id)
            if branch is not None:
                branch.conditions.append(condition)
                return

        logger.debug(f"Dropping condition '{condition.key}' with no open starter or branch")


def compile_string(source: str, name: str = "") -> DialogueGraph:
    """Compile a document held in memory."""
    return GraphCompiler().compile_string(source, name=name)


def compile_file(path: str | Path) -> DialogueGraph:
    """Compile a document file."""
    return GraphCompiler().compile_file(path)


def compile_dialog_file(input_path: str | Path, output_path: Optional[str | Path] = None) -> Path:
    """
    Compile a dialogue document to JSON.

    Args:
        input_path: Path to the .xml document
        output_path: Path to output .json file (default: same name with .json)

    Returns:
        The path written
    """
    input_path = Path(input_path)
    if output_path is None:
        output_path = input_path.with_suffix('.json')
    else:
        output_path = Path(output_path)

    graph = compile_file(input_path)
    graph.save_json(output_path)
    logger.info(f"Compiled {input_path} -> {output_path}")
    return output_path
