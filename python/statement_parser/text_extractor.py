"""
Text Extractor Module

Converts PDF statements to plain text, trying several independent extraction
strategies in order until one produces text.
"""

import base64
import io
import logging
import os
import subprocess
import tempfile
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator

import anthropic
import pdfplumber
import yaml
from pdfminer.high_level import extract_text as pdfminer_extract_text

from .exceptions import CorruptedDocument, ExtractionFailed, InvalidFormat, StrategyAttempt

logger = logging.getLogger(__name__)

Strategy = Callable[[bytes], str]


@dataclass
class ExtractionResult:
    """Text produced by the first successful strategy."""

    text: str
    strategy: str
    attempts: list[StrategyAttempt] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def lines(self) -> list[str]:
        """Trimmed, non-empty lines in document order."""
        return [line.strip() for line in self.text.splitlines() if line.strip()]

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "characters": len(self.text),
            "lines": len(self.lines),
            "failed_attempts": [a.to_dict() for a in self.attempts],
            "duration_seconds": self.duration_seconds,
        }


@contextmanager
def temporary_pdf(data: bytes, directory: Path | str | None = None) -> Iterator[Path]:
    """Write PDF bytes to a temporary file that is removed on exit."""
    fd, name = tempfile.mkstemp(suffix=".pdf", dir=directory)
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        yield path
    finally:
        path.unlink(missing_ok=True)


class TextExtractor:
    """Extracts text from PDF bytes with an ordered fallback chain."""

    PDF_SIGNATURE = b"%PDF"
    ACCEPTED_MEDIA_TYPES = {"application/pdf", "application/x-pdf"}

    DEFAULT_MAX_PAGES = 50
    DEFAULT_TIMEOUT_SECONDS = 60.0
    DEFAULT_STRATEGIES = [
        "pdfplumber_limited",
        "pdfplumber_full",
        "pdfminer_tempfile",
        "pdftotext_cli",
    ]
    DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

    # Error text that points at a damaged cross-reference table
    CORRUPTION_SIGNATURES = [
        "xref", "startxref", "cross-reference", "trailer", "no /root object",
    ]

    VISION_PROMPT = (
        "Transcribe all text in this credit card statement exactly as printed, "
        "one printed line per output line, keeping dates, descriptions and "
        "amounts on the same line where the document does. Output only the text."
    )

    def __init__(
        self,
        config_dir: Path | str | None = None,
        strategies: list[tuple[str, Strategy]] | None = None,
        api_key: str | None = None,
        temp_dir: Path | str | None = None
    ):
        """Initialize the extractor.

        Args:
            config_dir: Path to configuration directory
            strategies: Explicit (name, callable) chain, replacing the configured one
            api_key: Anthropic API key for the vision strategy
            temp_dir: Directory for intermediate files (system default if omitted)
        """
        self.config_dir = Path(config_dir) if config_dir else Path(__file__).parent.parent.parent / "config"
        self.api_key = api_key
        self.temp_dir = Path(temp_dir) if temp_dir else None
        self._client = None
        self._load_config()

        if strategies is not None:
            self.strategies = list(strategies)
        else:
            self.strategies = self._build_strategies(self.strategy_names)

    def _load_config(self) -> None:
        """Load extraction settings from statement_processing.yaml."""
        self.max_pages = self.DEFAULT_MAX_PAGES
        self.timeout_seconds = self.DEFAULT_TIMEOUT_SECONDS
        self.strategy_names = list(self.DEFAULT_STRATEGIES)
        self.pdftotext_path = "pdftotext"
        self.vision_fallback = False
        self.model = self.DEFAULT_MODEL

        config_file = self.config_dir / "statement_processing.yaml"
        if not config_file.exists():
            return

        with open(config_file) as f:
            config = (yaml.safe_load(f) or {}).get("extraction", {}) or {}

        self.max_pages = int(config.get("max_pages", self.max_pages))
        self.timeout_seconds = float(config.get("strategy_timeout_seconds", self.timeout_seconds))
        self.strategy_names = list(config.get("strategies", self.strategy_names))
        self.pdftotext_path = config.get("pdftotext_path", self.pdftotext_path)
        self.vision_fallback = bool(config.get("vision_fallback", False))
        self.model = config.get("vision_model", self.model)

    def _build_strategies(self, names: list[str]) -> list[tuple[str, Strategy]]:
        available: dict[str, Strategy] = {
            "pdfplumber_limited": self._pdfplumber_limited,
            "pdfplumber_full": self._pdfplumber_full,
            "pdfminer_tempfile": self._pdfminer_tempfile,
            "pdftotext_cli": self._pdftotext_cli,
            "claude_vision": self._claude_vision,
        }

        chain = []
        for name in names:
            if name not in available:
                logger.warning(f"Unknown extraction strategy in config: {name}")
                continue
            chain.append((name, available[name]))

        if self.vision_fallback and "claude_vision" not in names:
            chain.append(("claude_vision", self._claude_vision))

        return chain

    def validate(self, data: bytes | None, media_type: str | None = None) -> None:
        """Check the document is a non-empty PDF.

        Raises:
            InvalidFormat: If the input is empty, has another media type or lacks the signature
        """
        if not data:
            raise InvalidFormat("Empty document: no bytes to extract")

        if media_type and media_type.lower() not in self.ACCEPTED_MEDIA_TYPES:
            raise InvalidFormat(f"Unsupported media type: {media_type}")

        if not data.startswith(self.PDF_SIGNATURE):
            raise InvalidFormat("Invalid PDF: file does not start with the %PDF signature")

    def extract(self, data: bytes, media_type: str | None = None) -> ExtractionResult:
        """Extract text from PDF bytes.

        Args:
            data: PDF file contents
            media_type: Declared media type, if known

        Returns:
            ExtractionResult naming the strategy that succeeded

        Raises:
            InvalidFormat: Bad input
            CorruptedDocument: All strategies failed on a damaged xref table
            ExtractionFailed: All strategies failed for another reason
        """
        self.validate(data, media_type)

        attempts: list[StrategyAttempt] = []
        started = time.monotonic()

        for name, strategy in self.strategies:
            attempt_started = time.monotonic()
            logger.debug(f"Trying extraction strategy: {name}")

            try:
                text = self._run_with_timeout(strategy, data)
            except FutureTimeoutError:
                error = f"timed out after {self.timeout_seconds:g}s"
            except Exception as e:
                error = f"{type(e).__name__}: {e}"
            else:
                if text and text.strip():
                    result = ExtractionResult(
                        text=text,
                        strategy=name,
                        attempts=attempts,
                        duration_seconds=time.monotonic() - started,
                    )
                    logger.info(
                        f"Extracted {len(text)} characters with strategy {name} "
                        f"after {len(attempts)} failed attempt(s)"
                    )
                    return result
                error = "no text extracted"

            duration = time.monotonic() - attempt_started
            logger.debug(f"Extraction strategy {name} failed: {error}")
            attempts.append(StrategyAttempt(strategy=name, error=error, duration_seconds=duration))

        raise self._classify_failure(attempts)

    def extract_text(self, data: bytes, media_type: str | None = None) -> str:
        """Extract text and return it without strategy details."""
        return self.extract(data, media_type).text

    def extract_from_file(self, file_path: Path | str) -> ExtractionResult:
        """Extract text from a PDF file on disk.

        Args:
            file_path: Path to the PDF file

        Returns:
            ExtractionResult
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise InvalidFormat(f"File not found: {file_path}")

        return self.extract(file_path.read_bytes())

    def _classify_failure(self, attempts: list[StrategyAttempt]) -> ExtractionFailed:
        if not attempts:
            return ExtractionFailed("No extraction strategies configured", attempts)

        primary = attempts[0].error.lower()
        if any(signature in primary for signature in self.CORRUPTION_SIGNATURES):
            logger.error(f"PDF appears corrupted: {attempts[0].error}")
            return CorruptedDocument(
                f"PDF structure is corrupted ({attempts[0].error})",
                attempts
            )

        tried = ", ".join(f"{a.strategy} ({a.error})" for a in attempts)
        logger.error(f"All extraction strategies failed: {tried}")
        return ExtractionFailed(f"Failed to extract text from PDF. Tried: {tried}", attempts)

    def _run_with_timeout(self, strategy: Strategy, data: bytes) -> str:
        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(strategy, data)
            return future.result(timeout=self.timeout_seconds)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    # Strategies

    def _pdfplumber_limited(self, data: bytes) -> str:
        pages = list(range(1, self.max_pages + 1))
        with pdfplumber.open(io.BytesIO(data), pages=pages) as pdf:
            return "\n".join(page.extract_text() or "" for page in pdf.pages)

    def _pdfplumber_full(self, data: bytes) -> str:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            return "\n".join(page.extract_text() or "" for page in pdf.pages)

    def _pdfminer_tempfile(self, data: bytes) -> str:
        with temporary_pdf(data, self.temp_dir) as path:
            return pdfminer_extract_text(str(path))

    def _pdftotext_cli(self, data: bytes) -> str:
        with tempfile.TemporaryDirectory(dir=self.temp_dir) as workdir:
            source = Path(workdir) / "statement.pdf"
            target = Path(workdir) / "statement.txt"
            source.write_bytes(data)

            completed = subprocess.run(
                [self.pdftotext_path, "-layout", str(source), str(target)],
                capture_output=True,
                timeout=self.timeout_seconds,
                check=False,
            )
            if completed.returncode != 0:
                stderr = completed.stderr.decode("utf-8", errors="replace").strip()
                raise RuntimeError(f"pdftotext exited with {completed.returncode}: {stderr}")

            return target.read_text(encoding="utf-8", errors="replace")

    def _claude_vision(self, data: bytes) -> str:
        if self._client is None:
            self._client = anthropic.Anthropic(api_key=self.api_key)

        message = self._client.messages.create(
            model=self.model,
            max_tokens=8192,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "document",
                            "source": {
                                "type": "base64",
                                "media_type": "application/pdf",
                                "data": base64.standard_b64encode(data).decode("utf-8")
                            }
                        },
                        {
                            "type": "text",
                            "text": self.VISION_PROMPT
                        }
                    ]
                }
            ]
        )
        return message.content[0].text


def extract_pdf_text(data: bytes, config_dir: Path | str | None = None) -> str:
    """Convenience function to extract text from PDF bytes.

    Args:
        data: PDF file contents
        config_dir: Optional configuration directory

    Returns:
        Extracted text
    """
    return TextExtractor(config_dir=config_dir).extract_text(data)
