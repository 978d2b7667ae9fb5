"""Typed exception hierarchy. Every error canvasflow can raise."""


class CanvasflowError(Exception):
    """Base exception for all canvasflow errors."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


class WorkflowValidationError(CanvasflowError):
    """Workflow cannot be executed (no nodes, start node missing)."""
    def __init__(self, message: str, violations: list = None, **kwargs):
        super().__init__(message, **kwargs)
        self.violations = violations or []


class BlockNotFoundError(CanvasflowError):
    """A node's type has no registered, runnable block."""
    def __init__(self, message: str, block_type: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.block_type = block_type


class BlockExecutionError(CanvasflowError):
    """A block's run() failed. Blocks may raise any exception; this one carries the node id."""
    def __init__(self, message: str, node_id: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.node_id = node_id


class BlockIOError(CanvasflowError):
    """Base for failures of the run context's fetch capability."""
    def __init__(self, message: str, url: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.url = url


class IOTimeoutError(BlockIOError):
    """Outbound call exceeded the per-call timeout."""
    def __init__(self, message: str, url: str = "", timeout_seconds: float = 0, **kwargs):
        super().__init__(message, url=url, **kwargs)
        self.timeout_seconds = timeout_seconds


class IOAbortedError(BlockIOError):
    """Outbound call was aborted because the workflow was stopped."""
    pass


class WorkflowLoadError(CanvasflowError):
    """Workflow or execution file is missing or malformed."""
    def __init__(self, message: str, path: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.path = path
