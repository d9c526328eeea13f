from dataclasses import dataclass, field
from typing import Optional, List, Union
from model.job import ErrorCode
from model.metadata import ShortFormMetadata


@dataclass
class ExtractionError:
    code: ErrorCode
    message: str
    details: Optional[str] = None
    retry_after_ms: Optional[int] = None


@dataclass
class ExtractionSuccess:
    metadata: ShortFormMetadata
    transcript: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    success: bool = field(default=True, init=False)


@dataclass
class ExtractionFailure:
    error: ExtractionError
    success: bool = field(default=False, init=False)


ExtractionResult = Union[ExtractionSuccess, ExtractionFailure]


@dataclass
class TranscriptResult:
    """Outcome of the secondary transcript step; never fails a job on its own."""

    text: Optional[str] = None
    error: Optional[ExtractionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.text)


@dataclass
class ExtractOptions:
    include_transcript: bool = False
