"""
Dialogue library - loads every conversation of a language.

Expected layout:

    dialogue/
        en/            baseline language, compiled in full
            guard.xml
            merchant.xml
        fr/            translation, merged into the baseline by file name
            guard.xml

Loading "fr" compiles en/*.xml, then merges fr/guard.xml into the guard
graph. merchant stays in English. All merging is done before load()
returns, so no conversation can read a half-translated graph.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Optional

from parley.core.config import DialogConfig
from parley.dialog.compiler import GraphCompiler
from parley.dialog.errors import DialogueError, DocumentNotFoundError
from parley.dialog.models import DialogueGraph
from parley.dialog.translation import apply_translation

logger = logging.getLogger(__name__)


class DialogLibrary:
    """
    Compiled conversations keyed by document name.

    Usage:
        library = DialogLibrary("game/data/dialogue", DialogConfig(language="fr"))
        library.load()
        interpreter = DialogInterpreter(library.graphs, ...)
    """

    def __init__(self, root: str | Path, config: Optional[DialogConfig] = None):
        self.root = Path(root)
        self.config = config or DialogConfig()
        self.graphs: dict[str, DialogueGraph] = {}
        self.language: Optional[str] = None
        self._compiler = GraphCompiler()

    def __contains__(self, name: str) -> bool:
        return name in self.graphs

    def __iter__(self) -> Iterator[str]:
        return iter(self.graphs)

    def __len__(self) -> int:
        return len(self.graphs)

    def get(self, name: str) -> Optional[DialogueGraph]:
        return self.graphs.get(name)

    def load(self, language: Optional[str] = None) -> dict[str, DialogueGraph]:
        """
        Load all conversations in a language.

        Args:
            language: Language directory name (default: the configured one)

        Returns:
            The loaded graphs. Empty if the baseline directory is missing.
        """
        language = language or self.config.active_language
        baseline = self.config.baseline_language
        self.graphs = {}
        self.language = language

        baseline_dir = self.root / baseline
        if not baseline_dir.is_dir():
            logger.error(f"Baseline dialogue directory not found: {baseline_dir}")
            return self.graphs

        graphs = {}
        for path in self._documents(baseline_dir):
            graph = self._compile(path)
            if graph is not None:
                graphs[graph.name] = graph

        patched = 0
        if language != baseline:
            patched = self._translate(graphs, self.root / language)

        self.graphs = graphs
        logger.info(
            f"Loaded {len(graphs)} dialogues ({language}), {patched} translated texts."
        )
        return self.graphs

    def load_file(self, path: str | Path) -> Optional[DialogueGraph]:
        """Compile and add a single document. None if it cannot be loaded."""
        graph = self._compile(Path(path))
        if graph is not None:
            self.graphs[graph.name] = graph
        return graph

    def _documents(self, directory: Path) -> list[Path]:
        return sorted(directory.glob(f"*{self.config.document_suffix}"))

    def _compile(self, path: Path) -> Optional[DialogueGraph]:
        try:
            return self._compiler.compile_file(path)
        except DocumentNotFoundError as e:
            logger.error(f"Failed to load {path}: {e}")
        except DialogueError as e:
            logger.error(f"Failed to compile {path}: {e}")
        return None

    def _translate(self, graphs: dict[str, DialogueGraph], language_dir: Path) -> int:
        if not language_dir.is_dir():
            logger.warning(f"Translation directory not found: {language_dir}")
            return 0

        patched = 0
        for name, graph in graphs.items():
            path = language_dir / f"{name}{self.config.document_suffix}"
            if not path.is_file():
                logger.debug(f"No translation for '{name}' in {language_dir.name}")
                continue

            translated = self._compile(path)
            if translated is None:
                continue
            patched += apply_translation(graph, translated, self.config.event_marker)
        return patched
