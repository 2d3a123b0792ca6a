"""Deferred acceptance (Gale-Shapley) implementation.

All agents live in dense arrays indexed by position. A proposer's state is its
row of the boolean `rejected` matrix; a responder's state is its entry of the
`held` array (-1 when it holds nobody). Rank matrices use 0 for the most
preferred partner and the number of columns for unacceptable partners.

The round functions never modify their arguments, so a round is a pure map
(state, proposals) -> (new state, rejections). The price is a copy of the
(n_p, n_r) rejection matrix in every round.
"""

import collections
import time

import numba as nb
import numpy as np

from gsmatch.errors import NoStableMatching

__all__ = ["RoundState", "initial_state", "unassigned_proposers",
           "propose_phase", "reject_phase", "run_round", "deferred_acceptance"]


RoundState = collections.namedtuple("RoundState", ["rejected", "held"])


@nb.njit('void(int32[:,:], int64[:], int64[:], int64[:])')
def _hold_best(resp_rank, held, proposers, targets):
  """Let every responder keep its best proposal, in place.

  `held[r]` becomes the most preferred proposer among the current holder of r
  and every `proposers[k]` with `targets[k] == r`. A proposer ranked as
  unacceptable by r is never held. On equal rank the current holder, or else
  the earliest proposal, is kept; validated preference lists have no ties.
  """
  unranked = resp_rank.shape[1]
  for k in range(len(proposers)):
    p, r = proposers[k], targets[k]
    rank = resp_rank[r, p]
    if rank >= unranked:
      continue
    cur = held[r]
    if cur < 0 or rank < resp_rank[r, cur]:
      held[r] = p


def initial_state(num_proposer, num_responder):
  """Fresh per-run state: nobody rejected, nobody held."""
  return RoundState(
      rejected=np.zeros((num_proposer, num_responder), dtype=np.bool_),
      held=np.full(num_responder, -1, dtype=np.int64))


def unassigned_proposers(held, num_proposer):
  """Returns the increasing array of proposers not held by any responder."""
  held = np.asarray(held, dtype=np.int64)
  is_held = np.zeros(num_proposer, dtype=np.bool_)
  is_held[held[held >= 0]] = True
  return np.nonzero(~is_held)[0]


def propose_phase(prop_rank, state):
  """Propose step.

  Every unassigned proposer proposes to its most preferred responder that has
  not rejected it yet.

  Args:
    prop_rank: (n_p, n_r) rank matrix of proposers over responders.
    state: current `RoundState`.

  Returns:
    proposers: int64 array of proposing proposers.
    targets: int64 array, `targets[k]` is the responder `proposers[k]`
      proposes to.

  Raises:
    NoStableMatching: if an unassigned proposer has no acceptable responder
      left to propose to.
  """
  prop_rank = np.asarray(prop_rank)
  num_proposer, unranked = prop_rank.shape
  proposers = unassigned_proposers(state.held, num_proposer)
  if proposers.size == 0:
    return proposers, np.zeros(0, dtype=np.int64)
  if unranked == 0:
    raise NoStableMatching(
        "no responder to propose to",
        agent=int(proposers[0]), side="proposer")
  rejected = np.asarray(state.rejected)[proposers]
  masked = np.where(rejected, unranked, prop_rank[proposers])
  targets = np.argmin(masked, axis=1).astype(np.int64)
  exhausted = masked[np.arange(proposers.size), targets] >= unranked
  if np.any(exhausted):
    p = int(proposers[np.nonzero(exhausted)[0][0]])
    raise NoStableMatching(
        "rejected by every acceptable responder",
        agent=p, side="proposer")
  return proposers, targets


def reject_phase(resp_rank, state, proposers, targets):
  """Reject step.

  Every responder keeps the best of its held proposer and the new proposals,
  and rejects the rest. Rejections are recorded in the proposers' rows.

  Args:
    resp_rank: (n_r, n_p) rank matrix of responders over proposers.
    state: `RoundState` before the round.
    proposers, targets: output of `propose_phase`.

  Returns:
    A new `RoundState`, the rejected proposers and the responders that
    rejected them (as two aligned int64 arrays).
  """
  resp_rank = np.ascontiguousarray(resp_rank, dtype=np.int32)
  proposers = np.ascontiguousarray(proposers, dtype=np.int64)
  targets = np.ascontiguousarray(targets, dtype=np.int64)
  prev_held = np.asarray(state.held, dtype=np.int64)
  held = prev_held.copy()
  _hold_best(resp_rank, held, proposers, targets)

  # previous holders compete again with this round's proposals
  prev_r = np.nonzero(prev_held >= 0)[0]
  cand_p = np.concatenate((prev_held[prev_r], proposers))
  cand_r = np.concatenate((prev_r, targets))
  lost = held[cand_r] != cand_p
  rej_p, rej_r = cand_p[lost], cand_r[lost]

  rejected = np.array(state.rejected, dtype=np.bool_)
  rejected[rej_p, rej_r] = True
  return RoundState(rejected=rejected, held=held), rej_p, rej_r


def run_round(prop_rank, resp_rank, state):
  """One propose-then-reject round.

  Returns:
    new_state: the `RoundState` after the round.
    num_proposals: number of proposals made in this round.
    num_rejections: number of rejections issued in this round.
  """
  proposers, targets = propose_phase(prop_rank, state)
  if proposers.size == 0:
    return state, 0, 0
  new_state, rej_p, _ = reject_phase(resp_rank, state, proposers, targets)
  # unreachable from a consistent state: every proposal is held or rejected
  if rej_p.size == 0 and np.array_equal(new_state.held, state.held):
    raise NoStableMatching(
        "round made no progress", agent=int(proposers[0]), side="proposer")
  return new_state, proposers.size, rej_p.size


def deferred_acceptance(prop_rank, resp_rank, verbose=False):
  """Proposer-proposing deferred acceptance.

  Repeats `run_round` until every proposer is held by a responder.

  Args:
    prop_rank: (n_p, n_r) int32 rank matrix of proposers. Entry n_r marks an
      unacceptable responder.
    resp_rank: (n_r, n_p) int32 rank matrix of responders. Entry n_p marks an
      unacceptable proposer.
    verbose: print progress if True.

  Returns:
    prop_match: int64 array, responder matched to each proposer (-1 if none).
    resp_match: int64 array, proposer matched to each responder (-1 if none).
    num_rounds: number of rounds performed.
    num_proposals: total number of proposals made.
  """
  if not prop_rank.shape == resp_rank.shape[::-1]:
    raise ValueError("Rank matrix dimension mismatch.")
  prop_rank = np.ascontiguousarray(prop_rank, dtype=np.int32)
  resp_rank = np.ascontiguousarray(resp_rank, dtype=np.int32)
  num_proposer, num_responder = prop_rank.shape
  max_proposals = num_proposer * num_responder

  start_time = time.time()
  state = initial_state(num_proposer, num_responder)
  num_rounds, num_proposals = 0, 0
  while True:
    if num_rounds % 100 == 0 and verbose:
      print("current round: #{0}".format(num_rounds))
    state, round_proposals, _ = run_round(prop_rank, resp_rank, state)
    if round_proposals == 0:
      break
    num_rounds += 1
    num_proposals += round_proposals
    # a pair is proposed at most once, so this only guards broken round code
    if num_proposals > max_proposals:
      raise NoStableMatching(
          "More than {0} proposals without reaching a fixpoint.".format(
              max_proposals))
  end_time = time.time()
  if verbose:
    print("Matched in {0} rounds, {1} proposals, {2:.3f}s.".format(
        num_rounds, num_proposals, end_time - start_time))

  resp_match = state.held
  prop_match = np.full(num_proposer, -1, dtype=np.int64)
  matched = np.nonzero(resp_match >= 0)[0]
  prop_match[resp_match[matched]] = matched
  return prop_match, resp_match, num_rounds, num_proposals
