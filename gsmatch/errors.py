"""Typed failures of the matching engine."""

__all__ = ["MatchingError", "NoStableMatching", "InvalidPreferenceList"]


class MatchingError(Exception):
  """Base class of all matching failures.

  Attributes:
    agent: id of the offending agent, or None if no single agent is to blame.
    side: "proposer", "responder", or None.
  """
  def __init__(self, message, agent=None, side=None):
    super().__init__(message, agent, side)
    self.message = message
    self.agent = agent
    self.side = side

  def __str__(self):
    if self.agent is None:
      return self.message
    return "{0} {1}: {2}".format(self.side or "agent", self.agent, self.message)


class NoStableMatching(MatchingError):
  """The procedure cannot complete a matching on this input.

  Raised when a proposer runs out of acceptable responders, when the two
  populations differ in size, or when a round makes no progress.
  """


class InvalidPreferenceList(MatchingError, ValueError):
  """A preference list names an unknown id, repeats an id, or has ties."""
