from typing import List, Optional


class PipelineDemoError(Exception):
  """Base class for errors that should stop a pipeline stage."""


class ToolNotFoundError(PipelineDemoError):
  def __init__(self, tool: str):
    super().__init__(f"required tool not found on PATH: {tool}")
    self.tool = tool


class CommandFailedError(PipelineDemoError):
  def __init__(self, cmd: List[str], returncode: int, output: Optional[str] = None):
    super().__init__(f"command failed with exit code {returncode}: {' '.join(cmd)}")
    self.cmd = cmd
    self.returncode = returncode
    self.output = output or ""


class ClusterAccessError(PipelineDemoError):
  """Raised when no usable kube config could be loaded."""
