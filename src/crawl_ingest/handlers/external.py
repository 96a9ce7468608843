"""External process transformer.

Pipes document content through a command line program. The command is a
template; placeholders decide how data travels:

| Placeholder       | When present                              | When absent              |
|-------------------|-------------------------------------------|--------------------------|
| `${INPUT}`        | content written to a temp file            | content piped to stdin   |
| `${OUTPUT}`       | new content read from a temp file         | new content read from stdout |
| `${INPUT_META}`   | metadata serialized to a temp file        | metadata not sent        |
| `${OUTPUT_META}`  | metadata read back from a temp file       | -                        |
| `${REFERENCE}`    | replaced by the document reference        | -                        |

After the process exits, every stdout and stderr line is scanned by the
extraction patterns; matches become metadata fields (first-seen order,
multiple values per field kept).

```yaml
post_parse_handlers:
  - type: external
    command: "python reverse.py ${INPUT} ${OUTPUT}"
    timeout: 60
    metadata_input_format: properties
    metadata_output_format: properties
    on_set: replace
    env: {LANG: C.UTF-8}
    extraction_patterns:
      - {pattern: "^(f.*):(.*)", field_group: 1, value_group: 2}
      - {pattern: "^pages=(\\d+)", field: pages, value_group: 1}
```
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union
import logging
import os
import re
import shlex
import subprocess
import tempfile

from ..exceptions import ConfigError, HandlerError
from ..filters.impl import reference_extension
from ..pipeline.content import CachedStream
from ..pipeline.context import Document, ParseState
from ..pipeline.properties import Properties
from . import metadata_format
from .base import OnSet, Transformer

log = logging.getLogger("crawl_ingest.handlers.external")

INPUT = "${INPUT}"
OUTPUT = "${OUTPUT}"
INPUT_META = "${INPUT_META}"
OUTPUT_META = "${OUTPUT_META}"
REFERENCE = "${REFERENCE}"
TOKENS = (INPUT, OUTPUT, INPUT_META, OUTPUT_META, REFERENCE)
_TOKEN_RE = re.compile(r"\$\{[^}]*\}")


@dataclass(frozen=True)
class ExtractionPattern:
    """Regex turning a matching output line into metadata.

    The field name is fixed (`field`) or captured (`field_group`); the value is
    `value_group`, or the whole match when that group does not exist.
    """
    pattern: str
    field: Optional[str] = None
    field_group: int = -1
    value_group: int = -1
    case_sensitive: bool = True

    def __post_init__(self):
        if not self.field and self.field_group < 0:
            raise ConfigError(f"Extraction pattern {self.pattern!r} needs a 'field' or a 'field_group'")

    @property
    def regex(self) -> "re.Pattern[str]":
        return re.compile(self.pattern, 0 if self.case_sensitive else re.IGNORECASE)

    def extract(self, line: str) -> List[tuple]:
        found = []
        for m in self.regex.finditer(line):
            name = None
            if 0 <= self.field_group <= m.re.groups:
                name = m.group(self.field_group)
            if not name:
                name = self.field
            if 0 <= self.value_group <= m.re.groups:
                value = m.group(self.value_group)
            else:
                value = m.group(0)
            if name and value is not None:
                found.append((name, value))
        return found


def extract_fields(lines: Sequence[str], patterns: Sequence[ExtractionPattern], into: Optional[Properties] = None) -> Properties:
    props = into if into is not None else Properties()
    for line in lines:
        for p in patterns:
            for name, value in p.extract(line):
                props.add(name, value)
    return props


@dataclass
class ExternalTransformer(Transformer):
    command: Union[str, List[str]]
    env: Dict[str, str] = field(default_factory=dict)
    inherit_env: bool = True
    timeout: Optional[float] = None
    ignore_exit_code: bool = False
    metadata_input_format: str = metadata_format.FORMAT_PROPERTIES
    metadata_output_format: str = metadata_format.FORMAT_PROPERTIES
    on_set: OnSet = OnSet.APPEND
    temp_dir: Optional[str] = None
    extraction_patterns: List[ExtractionPattern] = field(default_factory=list)

    name = "external"

    def __post_init__(self):
        super().__post_init__()
        self.on_set = OnSet.parse(self.on_set)
        self.extraction_patterns = [
            p if isinstance(p, ExtractionPattern) else ExtractionPattern(**p)
            for p in self.extraction_patterns
        ]
        self._args = self._parse_command(self.command)
        template = " ".join(self._args)
        for tok in _TOKEN_RE.findall(template):
            if tok not in TOKENS:
                raise ConfigError(f"Unknown placeholder {tok} in external command: {template}")
        self._uses = {tok for tok in TOKENS if tok in template}
        if INPUT_META in self._uses and not metadata_format.has_format(self.metadata_input_format):
            raise ConfigError(f"Unknown metadata_input_format: {self.metadata_input_format}")
        if OUTPUT_META in self._uses and not metadata_format.has_format(self.metadata_output_format):
            raise ConfigError(f"Unknown metadata_output_format: {self.metadata_output_format}")

    @staticmethod
    def _parse_command(command: Union[str, List[str]]) -> List[str]:
        if isinstance(command, (list, tuple)):
            args = [str(a) for a in command]
        else:
            try:
                args = shlex.split(command or "")
            except ValueError as e:
                raise ConfigError(f"Invalid external command {command!r}: {e}") from e
        if not args:
            raise ConfigError("External command is empty")
        return args

    def _environment(self) -> Dict[str, str]:
        env = dict(os.environ) if self.inherit_env else {}
        env.update({str(k): str(v) for k, v in self.env.items()})
        return env

    def transform(self, doc: Document, input: CachedStream, output: CachedStream, parse_state: ParseState) -> None:
        with tempfile.TemporaryDirectory(prefix="crawl-ingest-ext-", dir=self.temp_dir) as tmp:
            ext = reference_extension(doc.reference)
            suffix = f".{ext}" if ext and len(ext) <= 10 else ""
            paths = {
                INPUT: os.path.join(tmp, f"input{suffix}"),
                OUTPUT: os.path.join(tmp, f"output{suffix}"),
                INPUT_META: os.path.join(tmp, f"input-meta.{self.metadata_input_format}"),
                OUTPUT_META: os.path.join(tmp, f"output-meta.{self.metadata_output_format}"),
                REFERENCE: doc.reference,
            }
            if INPUT in self._uses:
                with open(paths[INPUT], "wb") as f:
                    input.copy_to(f)
            if INPUT_META in self._uses:
                with open(paths[INPUT_META], "w", encoding="utf-8") as f:
                    f.write(metadata_format.serialize(doc.metadata, self.metadata_input_format))

            args = [_TOKEN_RE.sub(lambda m: paths.get(m.group(0), m.group(0)), a) for a in self._args]
            stdin_data = None if INPUT in self._uses else input.read()
            stdout, stderr = self._run(args, stdin_data, doc.reference)

            if OUTPUT in self._uses:
                if not os.path.exists(paths[OUTPUT]):
                    raise HandlerError(f"External command did not create its output file: {args[0]}")
                with open(paths[OUTPUT], "rb") as f:
                    for chunk in iter(lambda: f.read(65536), b""):
                        output.write(chunk)
            else:
                output.write(stdout)

            extracted = Properties()
            if OUTPUT_META in self._uses and os.path.exists(paths[OUTPUT_META]):
                with open(paths[OUTPUT_META], "r", encoding="utf-8") as f:
                    extracted.update(metadata_format.deserialize(f.read(), self.metadata_output_format))
            if self.extraction_patterns:
                extract_fields(_lines(stdout), self.extraction_patterns, extracted)
                extract_fields(_lines(stderr), self.extraction_patterns, extracted)
            for key, values in extracted.items():
                self.on_set.apply(doc.metadata, key, values)

    def _run(self, args: List[str], stdin_data: Optional[bytes], reference: str) -> tuple:
        log.debug("Running external command for %s: %s", reference, args)
        try:
            proc = subprocess.Popen(
                args,
                stdin=subprocess.PIPE if stdin_data is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self._environment(),
            )
        except OSError as e:
            raise HandlerError(f"Cannot start external command {args[0]!r}: {e}") from e
        try:
            stdout, stderr = proc.communicate(input=stdin_data, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            proc.kill()
            proc.communicate()
            raise HandlerError(f"External command timed out after {self.timeout}s: {args[0]}") from e
        if proc.returncode != 0:
            tail = stderr.decode("utf-8", errors="replace").strip()[-500:]
            if not self.ignore_exit_code:
                raise HandlerError(f"External command exited with code {proc.returncode}: {args[0]}: {tail}")
            log.warning("%s: external command exited with code %d (ignored): %s", reference, proc.returncode, tail)
        return stdout, stderr


def _lines(data: bytes) -> List[str]:
    return data.decode("utf-8", errors="replace").splitlines()
