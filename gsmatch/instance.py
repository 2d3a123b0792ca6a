"""Two-sided stable matching library for python3.

Create a matching instance from preference lists, solve it with deferred
acceptance, and check any matching for blocking pairs.
"""

import collections

import numpy as np
from scipy import sparse as sp

import gsmatch.core
import gsmatch.utils
from gsmatch.errors import InvalidPreferenceList, NoStableMatching

__all__ = [
    "MatchingInstance", "StableMatching", "StabilityReport", "solve",
    "compute_matching", "check_stability", "find_blocking_pairs", "is_stable"
]

_OTHER_SIDE = {"proposer": "responder", "responder": "proposer"}


def _is_agent_id(x):
  """Check if x can be used as an agent id (a non-negative integer)."""
  if isinstance(x, (bool, np.bool_)):
    return False
  return isinstance(x, (int, np.integer)) and x >= 0


def _rank_map_2_pref_list(agent, side, rank_map):
  """Transform a rank map {id: rank} to a preference list.

  Only the order of ranks matters; gaps are allowed, ties are not.
  """
  for rank in rank_map.values():
    if not _is_agent_id(rank):
      raise InvalidPreferenceList(
          "rank {0!r} is not a non-negative integer".format(rank),
          agent=agent, side=side)
  if len(set(rank_map.values())) != len(rank_map):
    raise InvalidPreferenceList(
        "tied ranks in rank map", agent=agent, side=side)
  return [k for k, _ in sorted(rank_map.items(), key=lambda kv: kv[1])]


def _normalize_population(prefs, side):
  """Collect the preference lists of one side, keyed by agent id.

  Args:
    prefs: either a list of preference lists (the id of an agent is its
      position), or a dict from agent id to a preference list or a rank map.
    side: "proposer" or "responder", for error messages.

  Returns:
    A dict from int id to list of opposite-side ids, in increasing id order.
  """
  items = prefs.items() if isinstance(prefs, dict) else enumerate(prefs)
  population = {}
  for agent, li in items:
    if not _is_agent_id(agent):
      raise InvalidPreferenceList(
          "id {0!r} is not a non-negative integer".format(agent), side=side)
    agent = int(agent)
    if isinstance(li, dict):
      li = _rank_map_2_pref_list(agent, side, li)
    try:
      population[agent] = list(li)
    except TypeError:
      raise InvalidPreferenceList(
          "preference list {0!r} is not a sequence".format(li),
          agent=agent, side=side)
  return dict(sorted(population.items()))


def _sanity_check(side, population, other_ids):
  """Every listed id must exist on the other side and appear at most once."""
  other_side = _OTHER_SIDE[side]
  for agent, li in population.items():
    for i in li:
      if not _is_agent_id(i) or int(i) not in other_ids:
        raise InvalidPreferenceList(
            "unknown {0} {1!r} in preference list".format(other_side, i),
            agent=agent, side=side)
    if len(set(li)) != len(li):
      raise InvalidPreferenceList(
          "{0} listed more than once".format(other_side),
          agent=agent, side=side)


def _pref_list_2_rank_matrix(index_lists, num_other):
  """Transform preference lists (of column indices) to a rank matrix.

  Ranks are stored shifted by one in a sparse matrix, so that the implicit
  zeros mark unranked partners. Unranked entries get the value `num_other`,
  which is worse than every real rank.

  Returns:
    (len(index_lists), num_other) int32 array.
  """
  num_self = len(index_lists)
  if num_self == 0 or num_other == 0:
    return np.full((num_self, num_other), num_other, dtype=np.int32)
  I = [i for i, li in enumerate(index_lists) for _ in li]
  J = [j for li in index_lists for j in li]
  V = [k + 1 for li in index_lists for k in range(len(li))]
  rank = sp.coo_matrix(
      (V, (I, J)), shape=(num_self, num_other), dtype=np.int32).toarray() - 1
  rank[rank < 0] = num_other
  return np.ascontiguousarray(rank, dtype=np.int32)


class MatchingInstance():
  """Two-sided matching problem instance.

  An object storing the preferences of proposers and responders.

  Attributes:
    num_proposer: Number of proposers.
    num_responder: Number of responders.
    proposer_ids: Sorted list of proposer ids. The proposer with id
      `proposer_ids[i]` is stored at row i of `prop_rank`.
    responder_ids: Sorted list of responder ids, same convention.
    proposer_pref_list: A dict from proposer id to its preference list.
      `proposer_pref_list[p][j]` is the j-th most preferred responder of
      proposer p. Any responder not in the list is unacceptable to p.
    responder_pref_list: A dict from responder id to its preference list, same
      convention.
    prop_rank: (num_proposer, num_responder) int32 rank matrix. Entry (i, j)
      is the rank proposer i gives responder j, 0 being the best, or
      num_responder if j is unacceptable.
    resp_rank: (num_responder, num_proposer) int32 rank matrix, same
      convention.
  """
  def __init__(self, proposer_pref_list, responder_pref_list):
    """
    Create an instance of the matching problem.

    Args:
      proposer_pref_list: either a list of preference lists, indexed by
        proposer id, or a dict from proposer id to a preference list. A
        preference list is a list of responder ids, most preferred first. A
        rank map {responder id: rank} is accepted in place of a list.
      responder_pref_list: same for responders, listing proposer ids.

    Raises:
      InvalidPreferenceList: on unknown or repeated ids, or tied ranks.
    """
    self.proposer_pref_list = _normalize_population(
        proposer_pref_list, "proposer")
    self.responder_pref_list = _normalize_population(
        responder_pref_list, "responder")
    self.proposer_ids = list(self.proposer_pref_list)
    self.responder_ids = list(self.responder_pref_list)
    self.num_proposer = len(self.proposer_ids)
    self.num_responder = len(self.responder_ids)
    self._proposer_index = {p: i for i, p in enumerate(self.proposer_ids)}
    self._responder_index = {r: j for j, r in enumerate(self.responder_ids)}

    _sanity_check("proposer", self.proposer_pref_list, self._responder_index)
    _sanity_check("responder", self.responder_pref_list, self._proposer_index)
    for population in (self.proposer_pref_list, self.responder_pref_list):
      for agent, li in population.items():
        population[agent] = [int(i) for i in li]

    self.prop_rank = _pref_list_2_rank_matrix(
        [[self._responder_index[int(r)] for r in li]
         for li in self.proposer_pref_list.values()], self.num_responder)
    self.resp_rank = _pref_list_2_rank_matrix(
        [[self._proposer_index[int(p)] for p in li]
         for li in self.responder_pref_list.values()], self.num_proposer)

  def __repr__(self):
    s = "<MatchingInstance with {p} proposers and {r} responders>".format(
        p=self.num_proposer, r=self.num_responder
    )
    return s

  def proposer_index(self, p):
    """Row of proposer p in `prop_rank`."""
    return self._proposer_index[p]

  def responder_index(self, r):
    """Row of responder r in `resp_rank`."""
    return self._responder_index[r]

  def responder_rank_by_proposer(self, p, r):
    """Obtains the ranking of responder r by proposer p.

    The most preferred responder is of rank 0, the second is 1, and so on.
    An unacceptable responder is of rank `num_responder`.
    """
    return int(self.prop_rank[self._proposer_index[p],
                              self._responder_index[r]])

  def proposer_rank_by_responder(self, r, p):
    """Obtains the ranking of proposer p by responder r.

    Same convention as `responder_rank_by_proposer`.
    """
    return int(self.resp_rank[self._responder_index[r],
                              self._proposer_index[p]])

  def swap_roles(self):
    """Returns the instance in which the responders propose."""
    return MatchingInstance(self.responder_pref_list, self.proposer_pref_list)


class StableMatching():
  """Result of the deferred acceptance procedure.

  One can directly access this object to obtain the matching:
  e.g. for a `StableMatching` sol,
    `sol["p3"]` or `sol.p(3)` is the responder matched to proposer 3.
    `sol["r0"]` or `sol.r(0)` is the proposer matched to responder 0.
    `sol[(p, r)]` is True if proposer p is matched to responder r.
  Iterating over sol yields proposer ids; `dict(sol.items())` is the
  proposer -> responder mapping.

  Attributes:
    proposer_match: dict from proposer id to responder id.
    responder_match: dict from responder id to proposer id.
    num_rounds: number of propose/reject rounds performed.
    num_proposals: number of proposals made.
    instance: the `MatchingInstance` this matching belongs to.
  """
  def __init__(self, ins, prop_match, num_rounds=-1, num_proposals=-1):
    """
    Args:
      ins: a `MatchingInstance` object.
      prop_match: array of responder indices (rows of `ins.resp_rank`) for
        each proposer index, -1 for unmatched.
      num_rounds: number of rounds in the algorithm.
      num_proposals: number of proposals in the algorithm.
    """
    self.instance = ins
    self.num_rounds = num_rounds
    self.num_proposals = num_proposals
    self._prop_match = np.asarray(prop_match, dtype=np.int64)
    self.proposer_match = {
        ins.proposer_ids[i]: ins.responder_ids[j]
        for i, j in enumerate(self._prop_match) if j >= 0}
    self.responder_match = {r: p for p, r in self.proposer_match.items()}

  def __repr__(self):
    s = ["<StableMatching of {p} proposers, {r} responders".format(
        p=self.instance.num_proposer, r=self.instance.num_responder
    )]
    s += ["\tfound in {0} rounds>".format(self.num_rounds)]
    return "\n".join(s)

  def __len__(self):
    return len(self.proposer_match)

  def __iter__(self):
    return iter(self.proposer_match)

  def items(self):
    return self.proposer_match.items()

  def __getitem__(self, s):
    """Get matched responder/proposer.

    Args:
      s: either a tuple (proposer id, responder id), or a string indicating a
         proposer (e.g. "p10") or a responder (e.g. "r2").

    Returns:
      a bool if `s` is a pair; the matched id (None if unmatched) if `s` is a
        string.
    """
    if isinstance(s, tuple):
      p, r = s
      return self.proposer_match.get(p) == r
    elif isinstance(s, str):
      if s.startswith("p"):
        return self.get_proposer_match(int(s[1:]))
      elif s.startswith("r"):
        return self.get_responder_match(int(s[1:]))
    raise TypeError("Unrecognized index.")

  def get_proposer_match(self, p):
    return self.proposer_match.get(p)

  p = get_proposer_match

  def get_responder_match(self, r):
    return self.responder_match.get(r)

  r = get_responder_match

  def swap_roles(self):
    """Read a matching of the role-swapped instance from the other side.

    If this matching was obtained by solving `ins.swap_roles()`, the returned
    object is the same matching expressed as proposer -> responder of `ins`.
    """
    ins = self.instance.swap_roles()
    resp_match = np.full(ins.num_proposer, -1, dtype=np.int64)
    matched = np.nonzero(self._prop_match >= 0)[0]
    resp_match[self._prop_match[matched]] = matched
    return StableMatching(ins, resp_match, num_rounds=self.num_rounds,
                          num_proposals=self.num_proposals)


class StabilityReport(collections.namedtuple(
    "StabilityReport", ["blocking_pairs", "unmatched_proposers",
                        "unmatched_responders", "unknown", "conflicts"])):
  """Diagnostic of a candidate matching.

  Attributes:
    blocking_pairs: set of (proposer id, responder id) that would both rather
      be matched to each other.
    unmatched_proposers: sorted list of proposer ids with no partner.
    unmatched_responders: sorted list of responder ids with no partner.
    unknown: list of (proposer, responder) entries of the matching naming ids
      that are not in the instance. They are ignored.
    conflicts: list of (proposer id, responder id) entries dropped because the
      responder (or proposer) was already claimed by a pair it ranks higher.
  """
  __slots__ = ()

  @property
  def is_stable(self):
    return not self.blocking_pairs

  @property
  def is_complete(self):
    return not (self.unmatched_proposers or self.unmatched_responders or
                self.unknown or self.conflicts)


def _is_position_entry(x):
  if x is None:
    return True
  if isinstance(x, (bool, np.bool_)):
    return False
  return isinstance(x, (int, np.integer))


def _matching_2_arrays(ins, matching):
  """Transform a matching in any accepted form to two match arrays.

  Returns:
    prop_match, resp_match, unknown, conflicts
  """
  pairs, unknown = [], []
  if matching is None:
    entries = []
  elif hasattr(matching, "items"):
    entries = list(matching.items())
  else:
    try:
      entries = list(matching)
    except TypeError:
      entries = []
      unknown.append(matching)
  # a plain sequence of ids is indexed by proposer id, None or -1 = unmatched
  if entries and all(_is_position_entry(x) for x in entries):
    entries = [(p, r if r is not None and r >= 0 else None)
               for p, r in enumerate(entries)]

  for entry in entries:
    try:
      p, r = entry
    except (TypeError, ValueError):
      unknown.append(entry)
      continue
    if r is None:
      continue
    try:
      pairs.append((ins.proposer_index(p), ins.responder_index(r)))
    except (KeyError, TypeError):
      unknown.append((p, r))

  # each responder keeps the claimant it ranks best, then each proposer
  pairs.sort(key=lambda x: (x[1], ins.resp_rank[x[1], x[0]], x[0]))
  prop_match = np.full(ins.num_proposer, -1, dtype=np.int64)
  resp_match = np.full(ins.num_responder, -1, dtype=np.int64)
  kept, dropped = [], []
  for i, j in pairs:
    if resp_match[j] >= 0:
      dropped.append((i, j))
      continue
    resp_match[j] = i
    kept.append((i, j))
  kept.sort(key=lambda x: (x[0], ins.prop_rank[x[0], x[1]], x[1]))
  for i, j in kept:
    if prop_match[i] >= 0:
      dropped.append((i, j))
      resp_match[j] = -1
      continue
    prop_match[i] = j
  conflicts = [(ins.proposer_ids[i], ins.responder_ids[j]) for i, j in dropped]
  return prop_match, resp_match, unknown, conflicts


def check_stability(ins, matching, verbose=False):
  """Check a matching for blocking pairs.

  Never fails on a malformed matching: agents missing from it are unmatched,
  entries with unknown ids are ignored, and agents claimed twice keep their
  best claimed partner. All of these are listed in the report.

  Args:
    ins: a `MatchingInstance` object.
    matching: a `StableMatching`, a dict from proposer id to responder id
      (None for unmatched), an iterable of (proposer id, responder id), or a
      list of responder ids indexed by proposer id (None or -1 for unmatched).
    verbose: bool, optional
      If set to True, every blocking pair is printed.

  Returns:
    A `StabilityReport`.
  """
  prop_match, resp_match, unknown, conflicts = _matching_2_arrays(
      ins, matching)
  mask = gsmatch.utils.blocking_pair_mask(
      ins.prop_rank, ins.resp_rank, prop_match, resp_match)
  blocking_pairs = {(ins.proposer_ids[i], ins.responder_ids[j])
                    for i, j in zip(*np.nonzero(mask))}
  if verbose:
    for p, r in sorted(blocking_pairs):
      print("proposer {0} and responder {1} mutually prefer each other over "
            "their matches".format(p, r))
  return StabilityReport(
      blocking_pairs=blocking_pairs,
      unmatched_proposers=[ins.proposer_ids[i]
                           for i in np.nonzero(prop_match < 0)[0]],
      unmatched_responders=[ins.responder_ids[j]
                            for j in np.nonzero(resp_match < 0)[0]],
      unknown=unknown,
      conflicts=conflicts)


def solve(ins, verbose=False):
  """Solve a matching instance with proposer-proposing deferred acceptance.

  Args:
    ins: a `MatchingInstance` object.
    verbose: bool, optional
      If set to True, extra information will be printed when running the
      algorithm. Default is False.

  Returns:
    sol: a `StableMatching` object, the proposer-optimal stable matching.

  Raises:
    NoStableMatching: if the populations differ in size or some proposer
      exhausts its acceptable responders.
  """
  if ins.num_proposer != ins.num_responder:
    raise NoStableMatching(
        "{0} proposers cannot be matched one to one with {1} "
        "responders".format(ins.num_proposer, ins.num_responder))
  try:
    prop_match, resp_match, num_rounds, num_proposals = (
        gsmatch.core.deferred_acceptance(
            ins.prop_rank, ins.resp_rank, verbose=verbose))
  except NoStableMatching as e:
    if e.agent is None:
      raise
    raise NoStableMatching(
        e.message, agent=ins.proposer_ids[e.agent], side=e.side) from e
  if not gsmatch.utils.check_perfect(prop_match, resp_match):
    raise NoStableMatching("fixpoint is not a complete matching")
  sol = StableMatching(ins, prop_match, num_rounds=num_rounds,
                       num_proposals=num_proposals)
  if verbose:
    print("Matching is {0}.".format(
        "stable" if check_stability(ins, sol).is_stable else "NOT stable"))
  return sol


def compute_matching(proposers, responders, verbose=False):
  """Compute the proposer-optimal stable matching from preference lists.

  Args:
    proposers: preference lists of proposers, see `MatchingInstance`.
    responders: preference lists of responders, see `MatchingInstance`.
    verbose: print progress if True.

  Returns:
    A `StableMatching` object.
  """
  return solve(MatchingInstance(proposers, responders), verbose=verbose)


def find_blocking_pairs(proposers, responders, matching):
  """Set of (proposer id, responder id) blocking pairs of `matching`."""
  ins = MatchingInstance(proposers, responders)
  return check_stability(ins, matching).blocking_pairs


def is_stable(proposers, responders, matching):
  return not find_blocking_pairs(proposers, responders, matching)
