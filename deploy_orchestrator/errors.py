"""Error kinds and the tagged result type shared by tools and the RPC layer."""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Dict, List

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ErrorKind(str, Enum):
    """Every failure the orchestrator reports to a caller."""

    MISSING_CREDENTIAL = "MissingCredential"
    PROVIDER_ERROR = "ProviderError"
    NOT_FOUND = "NotFound"
    VALIDATION_ERROR = "ValidationError"
    UNKNOWN_TOOL = "UnknownTool"
    UNKNOWN_PROMPT = "UnknownPrompt"
    UNKNOWN_METHOD = "UnknownMethod"
    MALFORMED_REQUEST = "MalformedRequest"
    INTERNAL_ERROR = "InternalError"


# Numeric JSON-RPC codes surfaced in ``error.data.rpcCode`` for clients that
# only understand the standard integer codes.
RPC_CODES: Dict[ErrorKind, int] = {
    ErrorKind.MISSING_CREDENTIAL: -32001,
    ErrorKind.PROVIDER_ERROR: -32002,
    ErrorKind.NOT_FOUND: -32003,
    ErrorKind.VALIDATION_ERROR: -32602,
    ErrorKind.UNKNOWN_TOOL: -32602,
    ErrorKind.UNKNOWN_PROMPT: -32602,
    ErrorKind.UNKNOWN_METHOD: -32601,
    ErrorKind.MALFORMED_REQUEST: -32600,
    ErrorKind.INTERNAL_ERROR: -32603,
}

PARSE_ERROR_CODE = -32700


class DeploymentError(RuntimeError):
    """Base class for classified failures raised by providers and tools."""

    kind: ClassVar[ErrorKind] = ErrorKind.INTERNAL_ERROR


class MissingCredentialsError(DeploymentError):
    """Raised when a platform token is absent from the environment."""

    kind = ErrorKind.MISSING_CREDENTIAL


class ProviderError(DeploymentError):
    """Raised when a platform rejects a call or returns an unusable reply."""

    kind = ErrorKind.PROVIDER_ERROR


class NotFoundError(DeploymentError):
    """Raised when a name or identifier cannot be resolved on a platform."""

    kind = ErrorKind.NOT_FOUND


class ToolValidationError(DeploymentError):
    """Raised for missing or malformed tool and prompt arguments."""

    kind = ErrorKind.VALIDATION_ERROR


class UnknownPromptError(DeploymentError):
    """Raised when ``prompts/get`` names a prompt that is not registered."""

    kind = ErrorKind.UNKNOWN_PROMPT


class RpcError(BaseModel):
    """The ``error`` member of a response envelope."""

    code: ErrorKind
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def of(cls, kind: ErrorKind, message: str, *, rpc_code: int | None = None) -> "RpcError":
        return cls(code=kind, message=message, data={"rpcCode": rpc_code or RPC_CODES[kind]})

    def to_payload(self) -> Dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "data": dict(self.data)}


class ToolOutcome(BaseModel):
    """Result of a tool or prompt invocation: either content or an error, never both."""

    model_config = ConfigDict(frozen=True)

    content: List[Dict[str, Any]] | None = None
    error: RpcError | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "ToolOutcome":
        if (self.content is None) == (self.error is None):
            raise ValueError("ToolOutcome requires exactly one of 'content' or 'error'")
        return self

    @classmethod
    def success(cls, text: str) -> "ToolOutcome":
        return cls(content=[{"type": "text", "text": text}])

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "ToolOutcome":
        return cls(error=RpcError.of(kind, message))

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def text(self) -> str:
        """Concatenated text content, or the error message for failures."""

        if self.error is not None:
            return self.error.message
        return "\n".join(item.get("text", "") for item in self.content or [])
