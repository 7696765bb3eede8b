"""Prompt template helpers for the summaries feature."""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


class PromptValidationError(ValueError):
    """Raised when a prompt template fails validation checks."""


@dataclass(frozen=True)
class PromptDocument:
    """Represents a loaded prompt template and its source path."""

    content: str
    path: Path

    @property
    def placeholders(self) -> frozenset:
        return frozenset(_PLACEHOLDER.findall(self.content))

    def render(self, values: Mapping[str, str]) -> str:
        """Substitute ``{{name}}`` placeholders in a single pass.

        Substituted values are never rescanned, so transcript text containing
        ``{{...}}`` reaches the model untouched.
        """
        missing = sorted(self.placeholders - set(values))
        if missing:
            raise PromptValidationError(
                f"Prompt '{self.path}' is missing values for: {', '.join(missing)}"
            )
        unknown = sorted(set(values) - self.placeholders)
        if unknown:
            raise PromptValidationError(
                f"Prompt '{self.path}' has no placeholders named: {', '.join(unknown)}"
            )
        template = self.content.rstrip("\n")
        return _PLACEHOLDER.sub(lambda match: str(values[match.group(1)]), template)


class PromptLoader:
    """Resolve prompt names to files and apply lightweight validation."""

    def __init__(
        self,
        prompts_dir: Optional[Path] = None,
        extra_search_dirs: Optional[Sequence[Path]] = None,
    ) -> None:
        default_dir = Path(__file__).resolve().parent / "prompts"
        self._search_dirs = [default_dir]
        if prompts_dir:
            self._search_dirs.insert(0, Path(prompts_dir).expanduser())
        if extra_search_dirs:
            for directory in extra_search_dirs:
                expanded = Path(directory).expanduser()
                if expanded not in self._search_dirs:
                    self._search_dirs.append(expanded)
        self._loaded: dict[str, PromptDocument] = {}

    def resolve(self, prompt: str) -> Path:
        """Return the template file for ``prompt``.

        Bare names such as ``chunk`` only resolve against the search dirs; a
        direct file path is honored only when it has a directory part or suffix.
        """
        candidate_path = Path(prompt).expanduser()
        if _looks_like_path(prompt) and candidate_path.is_file():
            return candidate_path

        for directory in self._search_dirs:
            for variant in self._variant_candidates(directory, prompt):
                if variant.is_file():
                    return variant

        search_roots = ", ".join(str(d) for d in self._search_dirs)
        raise FileNotFoundError(
            f"Prompt '{prompt}' was not found. Checked {candidate_path} and search dirs: {search_roots}."
        )

    def load(self, prompt: str) -> PromptDocument:
        cached = self._loaded.get(prompt)
        if cached is not None:
            return cached
        path = self.resolve(prompt)
        content = path.read_text(encoding="utf-8")
        self._validate(content, path)
        document = PromptDocument(content=content, path=path)
        self._loaded[prompt] = document
        return document

    def render(self, prompt: str, **values: str) -> str:
        return self.load(prompt).render(values)

    def _variant_candidates(self, base_dir: Path, prompt: str) -> Iterable[Path]:
        name = prompt if "." in prompt else f"{prompt}.md"
        yield base_dir / name
        if not name.endswith(".txt"):
            yield base_dir / f"{prompt}.txt"

    def _validate(self, content: str, path: Path) -> None:
        open_tokens = content.count("{{")
        close_tokens = content.count("}}")
        if open_tokens != close_tokens:
            raise PromptValidationError(
                f"Prompt '{path}' has mismatched template braces: {open_tokens} '{{{{' vs {close_tokens} '}}}}'."
            )
        if "{{" not in content:
            raise PromptValidationError(
                f"Prompt '{path}' does not include any template placeholders; expected at least one '{{{{...}}}}'."
            )


def _looks_like_path(prompt: str) -> bool:
    path = Path(prompt)
    return len(path.parts) > 1 or bool(path.suffix) or prompt.startswith("~")
