"""Stability checks and rank matrix helpers."""

import itertools

import numpy as np


def current_ranks(rank, match):
  """Rank each agent gives its current partner.

  Unmatched agents (match < 0) get the unranked value, i.e. they prefer any
  acceptable partner to staying unmatched.
  """
  unranked = rank.shape[1]
  cur = np.full(rank.shape[0], unranked, dtype=np.int64)
  matched = np.nonzero(match >= 0)[0]
  cur[matched] = rank[matched, match[matched]]
  return cur


def blocking_pair_mask(prop_rank, resp_rank, prop_match, resp_match):
  """Find all blocking pairs of a (possibly partial) matching.

  Args:
    prop_rank: (n_p, n_r) rank matrix of proposers.
    resp_rank: (n_r, n_p) rank matrix of responders.
    prop_match: responder of each proposer, -1 if unmatched.
    resp_match: proposer of each responder, -1 if unmatched.

  Returns:
    (n_p, n_r) boolean array, True at (p, r) if p strictly prefers r to its
    current partner and r strictly prefers p to its current partner.
  """
  prop_match = np.asarray(prop_match, dtype=np.int64)
  resp_match = np.asarray(resp_match, dtype=np.int64)
  prop_cur = current_ranks(prop_rank, prop_match)
  resp_cur = current_ranks(resp_rank, resp_match)
  prop_prefers = prop_rank < prop_cur[:, np.newaxis]
  resp_prefers = resp_rank.T < resp_cur[np.newaxis, :]
  return prop_prefers & resp_prefers


def check_perfect(prop_match, resp_match):
  """Check if the two match arrays describe one and the same bijection."""
  prop_match = np.asarray(prop_match, dtype=np.int64)
  resp_match = np.asarray(resp_match, dtype=np.int64)
  if len(prop_match) != len(resp_match):
    return False
  if np.any(prop_match < 0) or np.any(resp_match < 0):
    return False
  return bool(np.all(resp_match[prop_match] == np.arange(len(prop_match))))


def check_stable(prop_rank, resp_rank, prop_match):
  """Check if a proposer -> responder assignment has no blocking pair.

  Args:
    prop_rank: (n_p, n_r) rank matrix of proposers.
    resp_rank: (n_r, n_p) rank matrix of responders.
    prop_match: responder of each proposer, -1 if unmatched.

  Returns:
    True if no blocking pair exists.
  """
  prop_match = np.asarray(prop_match, dtype=np.int64)
  resp_match = np.full(resp_rank.shape[0], -1, dtype=np.int64)
  matched = np.nonzero(prop_match >= 0)[0]
  resp_match[prop_match[matched]] = matched
  return not np.any(
      blocking_pair_mask(prop_rank, resp_rank, prop_match, resp_match))


def enumerate_stable_matchings(prop_rank, resp_rank):
  """List all stable perfect matchings by brute force.

  Only meant for tiny instances, there are n! candidates.

  Returns:
    list of int64 arrays `prop_match`, in lexicographic order.
  """
  n = prop_rank.shape[0]
  if not prop_rank.shape == (n, n) == resp_rank.shape:
    raise ValueError("Brute force needs two populations of equal size.")
  stable = []
  for perm in itertools.permutations(range(n)):
    prop_match = np.array(perm, dtype=np.int64)
    # every pair must be mutually acceptable
    if np.any(prop_rank[np.arange(n), prop_match] >= n):
      continue
    if np.any(resp_rank[prop_match, np.arange(n)] >= n):
      continue
    if check_stable(prop_rank, resp_rank, prop_match):
      stable.append(prop_match)
  return stable


def recover_pref_lists(rank):
  """Recover preference lists (as column indices) from a rank matrix."""
  unranked = rank.shape[1]
  orders = np.argsort(rank, axis=1, kind="stable")
  return [[int(j) for j in orders[i] if rank[i, j] < unranked]
          for i in range(rank.shape[0])]
