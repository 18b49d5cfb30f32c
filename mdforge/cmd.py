"""A preprocessor that hands the book to an external program."""

from __future__ import annotations

import io
import json
import logging
import shlex
import subprocess
from typing import IO, Any

from .preprocess import Preprocessor, PreprocessorContext, PreprocessorError

__all__ = ["CmdPreprocessor"]

log = logging.getLogger(__name__)


class CmdPreprocessor(Preprocessor):
    """Runs a third-party program as a preprocessor.

    ``supports_renderer`` runs ``<cmd> supports <renderer>`` and treats exit
    code 0 as support. ``run`` writes ``[context, book]`` as JSON to the
    program's stdin and reads the processed book as JSON from its stdout.
    """

    def __init__(self, name: str, cmd: str) -> None:
        self._name = name
        self.cmd = cmd

    def __repr__(self) -> str:
        return f"CmdPreprocessor(name={self._name!r}, cmd={self.cmd!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CmdPreprocessor):
            return NotImplemented
        return (self._name, self.cmd) == (other._name, other.cmd)

    __hash__ = None  # type: ignore[assignment]

    @classmethod
    def parse_input(cls, reader: IO[Any]) -> tuple[PreprocessorContext, Any]:
        """Parse the ``[context, book]`` pair a preprocessor receives on stdin."""
        try:
            data = json.load(reader)
        except ValueError as exc:
            raise PreprocessorError(f"Unable to parse the input: {exc}") from exc
        if not isinstance(data, list) or len(data) != 2:
            raise PreprocessorError(
                "Unable to parse the input: expected a [context, book] pair"
            )
        ctx, book = data
        return PreprocessorContext.from_dict(ctx), book

    def write_input(self, writer: IO[str], book: Any, ctx: PreprocessorContext) -> None:
        """Write the ``[context, book]`` pair to ``writer`` as JSON."""
        try:
            json.dump([ctx.to_dict(), book], writer, default=str)
        except (TypeError, ValueError, OSError) as exc:
            raise PreprocessorError(f"Unable to write the preprocessor input: {exc}") from exc

    def command(self) -> list[str]:
        """Split the command string into program and arguments."""
        try:
            words = shlex.split(self.cmd)
        except ValueError as exc:
            raise PreprocessorError(f"Invalid command string {self.cmd!r}: {exc}") from exc
        if not words:
            raise PreprocessorError("Command string was empty")
        return words

    def name(self) -> str:
        return self._name

    def run(self, ctx: PreprocessorContext, book: Any) -> Any:
        args = self.command()
        buffer = io.StringIO()
        self.write_input(buffer, book, ctx)
        payload = buffer.getvalue().encode("utf-8")

        try:
            proc = subprocess.Popen(
                args, stdin=subprocess.PIPE, stdout=subprocess.PIPE, stderr=None
            )
        except OSError as exc:
            raise PreprocessorError(
                f'Unable to start the "{self._name}" preprocessor. Is it installed?'
            ) from exc

        try:
            stdout, _ = proc.communicate(payload)
        except OSError as exc:
            proc.kill()
            proc.wait()
            raise PreprocessorError(
                f'Error waiting for the "{self._name}" preprocessor to complete'
            ) from exc

        log.debug("%s exited with status %s", self.cmd, proc.returncode)
        if proc.returncode != 0:
            raise PreprocessorError(
                f'The "{self._name}" preprocessor exited unsuccessfully '
                f"with {proc.returncode} status"
            )

        try:
            return json.loads(stdout)
        except ValueError as exc:
            raise PreprocessorError(
                f'Unable to parse the preprocessed book from "{self._name}" processor'
            ) from exc

    def supports_renderer(self, renderer: str) -> bool:
        log.debug('Checking if the "%s" preprocessor supports "%s"', self._name, renderer)
        try:
            args = self.command()
        except PreprocessorError as exc:
            log.warning(
                'Unable to create the command for the "%s" preprocessor, %s', self._name, exc
            )
            return False

        try:
            completed = subprocess.run([*args, "supports", renderer], stdin=subprocess.DEVNULL)
        except FileNotFoundError:
            log.warning(
                'The command wasn\'t found, is the "%s" preprocessor installed?', self._name
            )
            log.warning("\tCommand: %s", self.cmd)
            return False
        except OSError:
            return False
        return completed.returncode == 0